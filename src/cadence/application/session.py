"""
Review session: the ordered queue of cards for one sitting.

Builds the queue by:
1. Taking every due card (Learning/Review stage, due_at <= now), oldest due first
2. Appending up to the day's remaining allowance of new cards, oldest created first
3. Re-inserting failed cards a few positions later as same-sitting retries

The only suspension point is the card store. A rating is persisted before
any queue state changes, so a failed write leaves the session retryable.
Callers must serialize calls; the session is not thread-safe.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Any

from cadence.application.progress import ProgressCalculator
from cadence.application.scheduler import IntervalScheduler
from cadence.application.utils.common import utcnow
from cadence.domain.constants import DEFAULT_NEW_CARDS_PER_DAY, DEFAULT_REQUEUE_OFFSET
from cadence.domain.errors import NoCurrentCardError, StoreError
from cadence.domain.models import (
    CardRecord,
    IntervalPreviews,
    ProgressSnapshot,
    QueueEntry,
    Rating,
    ReviewLogEntry,
    SessionCounters,
)
from cadence.domain.ports import CardStore

logger = logging.getLogger(__name__)

SCHEDULING_FIELDS = (
    "due_at",
    "interval_days",
    "ease_factor",
    "repetitions",
    "lapses",
    "stage",
    "learning_step",
    "last_reviewed_at",
)


def scheduling_changes(before: CardRecord, after: CardRecord) -> dict[str, Any]:
    """Partial record holding only the scheduling fields that changed."""
    return {
        name: getattr(after, name)
        for name in SCHEDULING_FIELDS
        if getattr(before, name) != getattr(after, name)
    }


def _renumber(entries: list[QueueEntry]) -> list[QueueEntry]:
    return [
        entry if entry.position == i else replace(entry, position=i)
        for i, entry in enumerate(entries)
    ]


class ReviewSession:
    """
    Owns the queue for the current sitting and mediates ratings, skips and removals.

    Follows Dependency Inversion: depends on the CardStore abstraction,
    not a concrete adapter.
    """

    def __init__(
        self,
        store: CardStore,
        user_id: str,
        scheduler: IntervalScheduler | None = None,
        new_cards_per_day: int = DEFAULT_NEW_CARDS_PER_DAY,
        requeue_offset: int = DEFAULT_REQUEUE_OFFSET,
        calculator: ProgressCalculator | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            store: The repository (port) holding card records.
            user_id: Owner of the cards being reviewed.
            scheduler: Optional custom scheduler; uses default config if not provided.
            new_cards_per_day: Daily cap on new cards (0 = unlimited).
            requeue_offset: Entries placed between a failed card and its retry.
            calculator: Optional custom progress calculator.
            clock: Returns the current time; defaults to UTC now.
        """
        self._store = store
        self.user_id = user_id
        self._scheduler = scheduler or IntervalScheduler()
        self._calc = calculator or ProgressCalculator()
        self._clock = clock or utcnow
        self.new_cards_per_day = max(0, new_cards_per_day)
        self.requeue_offset = max(1, requeue_offset)

        self._queue: list[QueueEntry] = []
        self._index = 0
        self._reviewed = 0
        self._cumulative_reviewed = 0
        self._total_new = 0
        self._available_today = 0
        self._rated_new_ids: set[str] = set()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    async def build(self, now: datetime | None = None) -> None:
        """
        Start a fresh sitting: due cards first, then capped new cards.

        Raises StoreError if the cards cannot be fetched; the previous
        queue is kept in that case.
        """
        now = now or self._clock()

        fetched_due = await self._store.fetch_due_cards(self.user_id, now)
        due = sorted(
            (card for card in fetched_due if card.is_due(now)),
            key=lambda card: (card.due_at or now, card.id),
        )
        new = [card for card in await self._store.fetch_new_cards(self.user_id) if card.is_new]

        allowance = await self._new_card_allowance(now)
        selected = new if allowance is None else new[:allowance]

        self._set_queue(due + selected)
        self._available_today = len(selected)
        self._total_new = len(new) - len(selected)
        self._cumulative_reviewed = 0
        self._rated_new_ids = set()

        logger.info(
            f"Built session for {self.user_id}: {len(due)} due, "
            f"{len(selected)} new, {self._total_new} new held back"
        )

    async def start_new_cards_session(
        self, ignore_limit: bool = False, now: datetime | None = None
    ) -> None:
        """
        Replace the queue with new cards only.

        Every card still New is eligible, oldest first, including ones queued
        earlier in the sitting but never rated.

        Args:
            ignore_limit: Bypass today's remaining allowance. Cards are still
                batched by `new_cards_per_day` when it is non-zero.
            now: Reference time for the daily allowance.
        """
        now = now or self._clock()

        new = [
            card
            for card in await self._store.fetch_new_cards(self.user_id)
            if card.is_new and card.id not in self._rated_new_ids
        ]

        if ignore_limit:
            batch = self.new_cards_per_day or len(new)
            selected = new[:batch]
        else:
            allowance = await self._new_card_allowance(now)
            selected = new if allowance is None else new[:allowance]

        self._set_queue(selected)
        self._available_today = len(selected)
        self._total_new = len(new) - len(selected)

        logger.info(
            f"Started new-cards session for {self.user_id}: {len(selected)} new "
            f"(ignore_limit={ignore_limit}), {self._total_new} held back"
        )

    async def restart(self, now: datetime | None = None) -> None:
        """Discard the sitting and rebuild it from the store."""
        await self.build(now)

    async def _new_card_allowance(self, now: datetime) -> int | None:
        """
        New cards still allowed today, or None when unlimited.

        If today's count cannot be read, no new cards are allowed rather
        than risking the cap.
        """
        if self.new_cards_per_day == 0:
            return None
        try:
            reviewed_today = await self._store.count_new_cards_reviewed_today(self.user_id, now)
        except StoreError as e:
            logger.warning(f"Could not count today's new cards for {self.user_id}: {e}")
            return 0
        return max(0, self.new_cards_per_day - reviewed_today)

    def _set_queue(self, cards: list[CardRecord]) -> None:
        self._queue = [QueueEntry(card=card, position=i) for i, card in enumerate(cards)]
        self._index = 0
        self._reviewed = 0

    # ------------------------------------------------------------------
    # Review loop
    # ------------------------------------------------------------------

    def current_card(self) -> QueueEntry | None:
        if self._index >= len(self._queue):
            return None
        return self._queue[self._index]

    def get_interval_previews(self, now: datetime | None = None) -> IntervalPreviews | None:
        """Labels for the four rating buttons; None when the sitting is over."""
        entry = self.current_card()
        if entry is None:
            return None
        return self._scheduler.preview(entry.card, now or self._clock())

    async def submit_review(self, rating: Rating, now: datetime | None = None) -> CardRecord:
        """
        Rate the current card and move on.

        The caller must have revealed the card first. On Again, a retry
        of the card is queued `requeue_offset` entries later.

        Returns:
            The card's updated record.

        Raises:
            NoCurrentCardError: The sitting has no current card.
            StoreError: The record could not be saved; nothing changed.
        """
        entry = self.current_card()
        if entry is None:
            raise NoCurrentCardError("No current card")

        rating = Rating(rating)
        now = now or self._clock()
        before = entry.card
        after = self._scheduler.schedule(before, rating, now)

        await self._store.patch_card(before.id, scheduling_changes(before, after))
        await self._log_review(before, after, rating, now)

        queue = list(self._queue)
        queue[self._index] = replace(entry, card=after)

        if rating == Rating.AGAIN:
            insert_at = min(len(queue), self._index + 1 + self.requeue_offset)
            queue.insert(insert_at, QueueEntry(card=after, is_again_requeue=True))
            logger.debug(f"Requeued {before.id} at position {insert_at}")

        if not entry.is_again_requeue:
            self._reviewed += 1
            self._cumulative_reviewed += 1
        if before.is_new:
            self._available_today = max(0, self._available_today - 1)
            self._rated_new_ids.add(before.id)

        self._queue = _renumber(queue)
        self._index += 1

        logger.info(
            f"Rated {before.id} {rating.value}: {before.stage.value} -> {after.stage.value}, "
            f"interval {after.interval_days}d"
        )
        return after

    async def _log_review(
        self, before: CardRecord, after: CardRecord, rating: Rating, now: datetime
    ) -> None:
        entry = ReviewLogEntry(
            card_id=before.id,
            rating=rating,
            previous_stage=before.stage,
            new_stage=after.stage,
            previous_interval=before.interval_days,
            new_interval=after.interval_days,
            previous_ease=before.ease_factor,
            new_ease=after.ease_factor,
            new_due=after.due_at,
            reviewed_at=now,
        )
        try:
            await self._store.record_review(self.user_id, entry)
        except StoreError as e:
            # The rating itself is saved; the log is best effort
            logger.warning(f"Failed to log review of {before.id}: {e}")

    def skip_card(self) -> None:
        """Move the current card to the end of the queue without rating it."""
        entry = self.current_card()
        if entry is None:
            return

        queue = list(self._queue)
        queue.append(queue.pop(self._index))
        self._queue = _renumber(queue)
        logger.debug(f"Skipped {entry.card_id}")

    def remove_card(self, card_id: str) -> int:
        """
        Drop every pending entry for a deleted card, retries included.

        Entries already passed are left alone, so counters never change
        retroactively. Returns the number of entries removed.
        """
        done = self._queue[: self._index]
        pending = [entry for entry in self._queue[self._index :] if entry.card_id != card_id]
        removed = len(self._queue) - len(done) - len(pending)

        if removed == 0:
            logger.debug(f"Card {card_id} not pending in session, nothing to remove")
            return 0

        self._queue = _renumber(done + pending)
        self._index = min(self._index, len(self._queue))
        logger.info(f"Removed {removed} entr{'y' if removed == 1 else 'ies'} for {card_id}")
        return removed

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def progress(self) -> ProgressSnapshot:
        return self._calc.compute(self._index, self._queue)

    def counters(self) -> SessionCounters:
        return SessionCounters(
            total_cards=self.total_cards,
            reviewed_count=self._reviewed,
            cumulative_reviewed_count=self._cumulative_reviewed,
            total_new_cards=self._total_new,
            new_cards_available_today=self._available_today,
            new_cards_per_day=self.new_cards_per_day,
            current_index=self._index,
        )

    @property
    def queue(self) -> tuple[QueueEntry, ...]:
        return tuple(self._queue)

    @property
    def due_cards(self) -> tuple[QueueEntry, ...]:
        """The whole sitting, as consumed by progress displays."""
        return self.queue

    @property
    def total_cards(self) -> int:
        return len(self._queue)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def reviewed_count(self) -> int:
        return self._reviewed

    @property
    def cumulative_reviewed_count(self) -> int:
        return self._cumulative_reviewed

    @property
    def total_new_cards(self) -> int:
        """New cards beyond today's allowance, offered as "learn N more"."""
        return self._total_new

    @property
    def new_cards_available_today(self) -> int:
        return self._available_today

    @property
    def is_complete(self) -> bool:
        return self.current_card() is None

    @property
    def status(self) -> str:
        """One of: empty (nothing queued), complete (exhausted), active."""
        if not self._queue:
            return "empty"
        if self.is_complete:
            return "complete"
        return "active"

