"""Service for creating cards and importing them from deck files."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from ulid import ULID

from cadence.application.scheduler import new_card
from cadence.application.utils.common import utcnow
from cadence.application.utils.deck_file import parse_deck
from cadence.domain.models import CardRecord, SchedulerConfig
from cadence.domain.ports import CardStore

logger = logging.getLogger(__name__)


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"card_{ULID()}"


@dataclass
class ImportResult:
    added: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # ids already in the store


async def add_card(
    store: CardStore,
    user_id: str,
    front: str,
    back: str,
    card_id: str | None = None,
    created_at: datetime | None = None,
    config: SchedulerConfig | None = None,
) -> CardRecord:
    """Create a new-stage card and save it."""
    card = new_card(
        card_id or generate_card_id(),
        front=front,
        back=back,
        created_at=created_at or utcnow(),
        config=config,
    )
    await store.add_card(user_id, card)
    logger.info(f"Added card {card.id}")
    return card


async def import_deck(
    store: CardStore,
    user_id: str,
    path: Path,
    config: SchedulerConfig | None = None,
    now: datetime | None = None,
) -> ImportResult:
    """
    Add every card listed in a deck file.

    Cards whose id is already taken are skipped, so a deck can be
    re-imported after editing. Ids are checked across all users before
    anything is written. File order becomes creation order.
    """
    cards = parse_deck(path.read_text(encoding="utf-8"))
    existing = {card.id for card in await store.list_cards(user_id)}
    for deck_card in cards:
        if deck_card.id and deck_card.id not in existing and await store.card_exists(deck_card.id):
            logger.warning(f"Card id {deck_card.id} belongs to another user, skipping")
            existing.add(deck_card.id)

    start = now or utcnow()
    result = ImportResult()

    for i, deck_card in enumerate(cards):
        if deck_card.id and deck_card.id in existing:
            result.skipped.append(deck_card.id)
            continue

        # Spread creation times so oldest-first ordering follows the file
        card = await add_card(
            store,
            user_id,
            deck_card.front,
            deck_card.back,
            card_id=deck_card.id,
            created_at=start + timedelta(microseconds=i),
            config=config,
        )
        existing.add(card.id)
        result.added.append(card.id)

    logger.info(f"Imported {path.name}: {len(result.added)} added, {len(result.skipped)} skipped")
    return result
