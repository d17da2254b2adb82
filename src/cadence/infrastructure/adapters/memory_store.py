"""
In-memory Card Store: dict-backed adapter.

Nothing survives the process. Used by tests and throwaway sessions.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from cadence.domain.errors import StoreError
from cadence.domain.models import CardRecord, ReviewLogEntry, Stage
from cadence.domain.ports import CardStore

logger = logging.getLogger(__name__)


class InMemoryCardStore(CardStore):
    """
    Keeps card records and the review log in plain dicts and lists.
    """

    def __init__(self, cards: dict[str, list[CardRecord]] | None = None):
        """
        Args:
            cards: Optional initial cards, keyed by user id.
        """
        self._cards: dict[str, CardRecord] = {}
        self._owners: dict[str, str] = {}
        self._logs: list[tuple[str, ReviewLogEntry]] = []

        for user_id, records in (cards or {}).items():
            for card in records:
                self._cards[card.id] = card
                self._owners[card.id] = user_id

    async def fetch_due_cards(self, user_id: str, now: datetime) -> list[CardRecord]:
        return [card for card in self._user_cards(user_id) if card.is_due(now)]

    async def fetch_new_cards(self, user_id: str) -> list[CardRecord]:
        new = [card for card in self._user_cards(user_id) if card.stage == Stage.NEW]
        # Cards without a creation time count as oldest, in insertion order
        undated = [card for card in new if card.created_at is None]
        dated = sorted(
            (card for card in new if card.created_at is not None),
            key=lambda card: card.created_at,
        )
        return undated + dated

    async def patch_card(self, card_id: str, changes: dict[str, Any]) -> None:
        card = self._cards.get(card_id)
        if card is None:
            raise StoreError(f"Card {card_id} not found", card_id=card_id)
        self._cards[card_id] = replace(card, **changes)

    async def count_new_cards_reviewed_today(self, user_id: str, now: datetime) -> int:
        today = now.date()
        return len(
            {
                entry.card_id
                for owner, entry in self._logs
                if owner == user_id
                and entry.previous_stage == Stage.NEW
                and _local_date(entry.reviewed_at, now) == today
            }
        )

    async def record_review(self, user_id: str, entry: ReviewLogEntry) -> None:
        self._logs.append((user_id, entry))

    async def add_card(self, user_id: str, card: CardRecord) -> None:
        if card.id in self._cards:
            raise StoreError(f"Card {card.id} already exists", card_id=card.id)
        self._cards[card.id] = card
        self._owners[card.id] = user_id

    async def card_exists(self, card_id: str) -> bool:
        return card_id in self._cards

    async def delete_card(self, card_id: str) -> bool:
        if card_id not in self._cards:
            return False
        del self._cards[card_id]
        del self._owners[card_id]
        self._logs = [(owner, e) for owner, e in self._logs if e.card_id != card_id]
        return True

    async def list_cards(self, user_id: str) -> list[CardRecord]:
        return list(self._user_cards(user_id))

    def get(self, card_id: str) -> CardRecord | None:
        return self._cards.get(card_id)

    def review_log(self, user_id: str) -> list[ReviewLogEntry]:
        return [entry for owner, entry in self._logs if owner == user_id]

    def _user_cards(self, user_id: str) -> list[CardRecord]:
        return [card for cid, card in self._cards.items() if self._owners[cid] == user_id]


def _local_date(moment: datetime, now: datetime):
    # Calendar day as seen from the caller's timezone
    if now.tzinfo is not None and moment.tzinfo is not None:
        moment = moment.astimezone(now.tzinfo)
    return moment.date()
