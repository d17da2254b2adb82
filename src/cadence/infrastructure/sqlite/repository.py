"""
SQLite repository for card records and the review log.

Opens one connection per `with` block; the block commits on success and
rolls back on error.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cadence.application.utils.common import ensure_aware, parse_timestamp
from cadence.domain.models import CardRecord, ReviewLogEntry, Stage

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cards (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    front TEXT,
    back TEXT,
    stage TEXT NOT NULL DEFAULT 'new',
    due_at TEXT,
    interval_days REAL NOT NULL DEFAULT 0,
    ease_factor REAL NOT NULL,
    repetitions INTEGER NOT NULL DEFAULT 0,
    lapses INTEGER NOT NULL DEFAULT 0,
    learning_step INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    last_reviewed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_cards_user_stage ON cards (user_id, stage, due_at);

CREATE TABLE IF NOT EXISTS review_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    card_id TEXT NOT NULL,
    rating TEXT NOT NULL,
    previous_stage TEXT NOT NULL,
    new_stage TEXT NOT NULL,
    previous_interval REAL NOT NULL,
    new_interval REAL NOT NULL,
    previous_ease REAL NOT NULL,
    new_ease REAL NOT NULL,
    new_due TEXT,
    reviewed_at TEXT NOT NULL,
    algorithm_version TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_logs_user_time ON review_logs (user_id, reviewed_at);
"""

CARD_COLUMNS = (
    "id",
    "front",
    "back",
    "stage",
    "due_at",
    "interval_days",
    "ease_factor",
    "repetitions",
    "lapses",
    "learning_step",
    "created_at",
    "last_reviewed_at",
)
PATCHABLE = frozenset(CARD_COLUMNS) - {"id"}


def to_db_timestamp(value: datetime | None) -> str | None:
    """UTC ISO-8601 with fixed precision so stored values sort as text."""
    if value is None:
        return None
    return ensure_aware(value).astimezone(timezone.utc).isoformat(timespec="microseconds")


def to_db_value(value: Any) -> Any:
    if isinstance(value, Stage):
        return value.value
    if isinstance(value, datetime):
        return to_db_timestamp(value)
    return value


class CardRepository:
    """
    Thin data-access layer over the cards database.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> "CardRepository":
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.conn is None:
            return
        try:
            if exc_type is None:
                self.conn.commit()
            else:
                self.conn.rollback()
        finally:
            self.conn.close()
            self.conn = None

    # ---------- Cards ----------

    def due_cards(self, user_id: str, now: datetime) -> list[CardRecord]:
        rows = self._db.execute(
            "SELECT * FROM cards WHERE user_id = ? AND stage != ? "
            "AND (due_at IS NULL OR due_at <= ?) ORDER BY due_at, id",
            (user_id, Stage.NEW.value, to_db_timestamp(now)),
        )
        return [self._row_to_card(row) for row in rows]

    def new_cards(self, user_id: str) -> list[CardRecord]:
        rows = self._db.execute(
            "SELECT * FROM cards WHERE user_id = ? AND stage = ? ORDER BY created_at, rowid",
            (user_id, Stage.NEW.value),
        )
        return [self._row_to_card(row) for row in rows]

    def all_cards(self, user_id: str) -> list[CardRecord]:
        rows = self._db.execute(
            "SELECT * FROM cards WHERE user_id = ? ORDER BY created_at, rowid", (user_id,)
        )
        return [self._row_to_card(row) for row in rows]

    def insert_card(self, user_id: str, card: CardRecord) -> None:
        values = {name: to_db_value(getattr(card, name)) for name in CARD_COLUMNS}
        values["user_id"] = user_id
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        self._db.execute(
            f"INSERT INTO cards ({columns}) VALUES ({placeholders})", tuple(values.values())
        )

    def update_card(self, card_id: str, changes: dict[str, Any]) -> bool:
        """Returns False when no card has this id."""
        unknown = set(changes) - PATCHABLE
        if unknown:
            raise ValueError(f"Cannot patch unknown card fields: {sorted(unknown)}")
        if not changes:
            row = self._db.execute("SELECT 1 FROM cards WHERE id = ?", (card_id,)).fetchone()
            return row is not None

        assignments = ", ".join(f"{name} = ?" for name in changes)
        params = [to_db_value(value) for value in changes.values()] + [card_id]
        cursor = self._db.execute(f"UPDATE cards SET {assignments} WHERE id = ?", params)
        return cursor.rowcount > 0

    def has_card(self, card_id: str) -> bool:
        row = self._db.execute("SELECT 1 FROM cards WHERE id = ?", (card_id,)).fetchone()
        return row is not None

    def delete_card(self, card_id: str) -> bool:
        cursor = self._db.execute("DELETE FROM cards WHERE id = ?", (card_id,))
        self._db.execute("DELETE FROM review_logs WHERE card_id = ?", (card_id,))
        return cursor.rowcount > 0

    # ---------- Review log ----------

    def insert_log(self, user_id: str, entry: ReviewLogEntry) -> None:
        self._db.execute(
            "INSERT INTO review_logs (user_id, card_id, rating, previous_stage, new_stage, "
            "previous_interval, new_interval, previous_ease, new_ease, new_due, reviewed_at, "
            "algorithm_version) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                user_id,
                entry.card_id,
                entry.rating.value,
                entry.previous_stage.value,
                entry.new_stage.value,
                entry.previous_interval,
                entry.new_interval,
                entry.previous_ease,
                entry.new_ease,
                to_db_timestamp(entry.new_due),
                to_db_timestamp(entry.reviewed_at),
                entry.algorithm_version,
            ),
        )

    def count_new_reviewed_between(self, user_id: str, start: datetime, end: datetime) -> int:
        """Distinct cards rated while New with start <= reviewed_at < end."""
        row = self._db.execute(
            "SELECT COUNT(DISTINCT card_id) FROM review_logs WHERE user_id = ? "
            "AND previous_stage = ? AND reviewed_at >= ? AND reviewed_at < ?",
            (user_id, Stage.NEW.value, to_db_timestamp(start), to_db_timestamp(end)),
        ).fetchone()
        return row[0] if row else 0

    # ---------- Helpers ----------

    @property
    def _db(self) -> sqlite3.Connection:
        if self.conn is None:
            raise RuntimeError("CardRepository used outside of a 'with' block")
        return self.conn

    def _row_to_card(self, row: sqlite3.Row) -> CardRecord:
        try:
            stage = Stage(row["stage"])
        except ValueError:
            logger.warning(f"Unknown stage {row['stage']!r} for card {row['id']}, treating as new")
            stage = Stage.NEW

        return CardRecord(
            id=row["id"],
            due_at=parse_timestamp(row["due_at"]),
            interval_days=row["interval_days"],
            ease_factor=row["ease_factor"],
            repetitions=row["repetitions"],
            lapses=row["lapses"],
            stage=stage,
            learning_step=row["learning_step"],
            created_at=parse_timestamp(row["created_at"]),
            last_reviewed_at=parse_timestamp(row["last_reviewed_at"]),
            front=row["front"],
            back=row["back"],
        )
