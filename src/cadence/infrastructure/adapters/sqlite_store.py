"""
SQLite Card Store: infrastructure adapter for a local database file.

Implements CardStore on top of CardRepository. Database errors surface as
StoreError so the review session can leave its queue untouched.
"""

import logging
import sqlite3
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Any

from cadence.domain.errors import StoreError
from cadence.domain.models import CardRecord, ReviewLogEntry
from cadence.domain.ports import CardStore
from cadence.infrastructure.sqlite.repository import CardRepository

logger = logging.getLogger(__name__)


class SqliteCardStore(CardStore):
    """
    Reads and writes card records in a SQLite database.

    Each call opens its own connection, so the store can be shared by
    several sessions (last write wins).
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    async def fetch_due_cards(self, user_id: str, now: datetime) -> list[CardRecord]:
        try:
            with CardRepository(self.db_path) as repo:
                return repo.due_cards(user_id, now)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to fetch due cards: {e}") from e

    async def fetch_new_cards(self, user_id: str) -> list[CardRecord]:
        try:
            with CardRepository(self.db_path) as repo:
                return repo.new_cards(user_id)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to fetch new cards: {e}") from e

    async def patch_card(self, card_id: str, changes: dict[str, Any]) -> None:
        try:
            with CardRepository(self.db_path) as repo:
                found = repo.update_card(card_id, changes)
        except sqlite3.Error as e:
            logger.error(f"Update failed for {card_id}: {e}")
            raise StoreError(f"Failed to save card {card_id}: {e}", card_id=card_id) from e

        if not found:
            raise StoreError(f"Card {card_id} not found", card_id=card_id)

    async def count_new_cards_reviewed_today(self, user_id: str, now: datetime) -> int:
        # Day boundaries follow the timezone of `now`
        start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        end = start + timedelta(days=1)
        try:
            with CardRepository(self.db_path) as repo:
                return repo.count_new_reviewed_between(user_id, start, end)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to count today's reviews: {e}") from e

    async def record_review(self, user_id: str, entry: ReviewLogEntry) -> None:
        try:
            with CardRepository(self.db_path) as repo:
                repo.insert_log(user_id, entry)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to log review: {e}", card_id=entry.card_id) from e

    async def add_card(self, user_id: str, card: CardRecord) -> None:
        try:
            with CardRepository(self.db_path) as repo:
                repo.insert_card(user_id, card)
        except sqlite3.IntegrityError as e:
            raise StoreError(f"Card {card.id} already exists", card_id=card.id) from e
        except sqlite3.Error as e:
            raise StoreError(f"Failed to add card {card.id}: {e}", card_id=card.id) from e

    async def card_exists(self, card_id: str) -> bool:
        try:
            with CardRepository(self.db_path) as repo:
                return repo.has_card(card_id)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to look up card {card_id}: {e}", card_id=card_id) from e

    async def delete_card(self, card_id: str) -> bool:
        try:
            with CardRepository(self.db_path) as repo:
                return repo.delete_card(card_id)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to delete card {card_id}: {e}", card_id=card_id) from e

    async def list_cards(self, user_id: str) -> list[CardRecord]:
        try:
            with CardRepository(self.db_path) as repo:
                return repo.all_cards(user_id)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list cards: {e}") from e
