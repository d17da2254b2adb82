"""
Ports (interfaces) for card persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from .models import CardRecord, ReviewLogEntry


class CardStore(ABC):
    """
    Port for reading and patching card scheduling records.

    Implementations:
        - InMemoryCardStore: Dict-backed, for tests and throwaway sessions.
        - SqliteCardStore: Durable store in a local SQLite database.

    Any method may raise StoreError on a transient failure.
    """

    @abstractmethod
    async def fetch_due_cards(self, user_id: str, now: datetime) -> list[CardRecord]:
        """
        Fetch cards past their due date that are no longer new.

        Args:
            user_id: Owner of the cards.
            now: Reference time; cards with due_at <= now are returned.

        Returns:
            List of CardRecord objects in no particular order.
        """
        pass

    @abstractmethod
    async def fetch_new_cards(self, user_id: str) -> list[CardRecord]:
        """
        Fetch cards that have never been reviewed, oldest first.
        """
        pass

    @abstractmethod
    async def patch_card(self, card_id: str, changes: dict[str, Any]) -> None:
        """
        Apply a partial update to a card's scheduling record.

        Args:
            card_id: The card to update.
            changes: Field name -> new value, using CardRecord field names.
        """
        pass

    @abstractmethod
    async def count_new_cards_reviewed_today(self, user_id: str, now: datetime) -> int:
        """
        Count distinct cards first reviewed (rated while New) on the day of `now`.
        """
        pass

    @abstractmethod
    async def record_review(self, user_id: str, entry: ReviewLogEntry) -> None:
        """
        Append a rating to the review log.
        """
        pass

    # Tooling operations used by the CLI and API, outside the review loop.

    @abstractmethod
    async def add_card(self, user_id: str, card: CardRecord) -> None:
        pass

    @abstractmethod
    async def card_exists(self, card_id: str) -> bool:
        """True when any user owns a card with this id."""
        pass

    @abstractmethod
    async def delete_card(self, card_id: str) -> bool:
        """Delete a card and its log. Returns False when the card did not exist."""
        pass

    @abstractmethod
    async def list_cards(self, user_id: str) -> list[CardRecord]:
        pass
