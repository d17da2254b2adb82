"""
Card Store Factory
Centralizes the logic for selecting the card store and wiring a review session.
"""

import logging

from cadence.application.config import AppConfig
from cadence.application.scheduler import IntervalScheduler
from cadence.application.session import ReviewSession
from cadence.domain.ports import CardStore
from cadence.infrastructure.adapters.memory_store import InMemoryCardStore
from cadence.infrastructure.adapters.sqlite_store import SqliteCardStore

logger = logging.getLogger(__name__)


def get_card_store(config: AppConfig) -> CardStore:
    """
    Returns the CardStore implementation selected by config.
    """
    if config.backend == "memory":
        logger.debug("Card store: in-memory")
        return InMemoryCardStore()

    logger.debug(f"Card store: sqlite at {config.db_path}")
    return SqliteCardStore(config.db_path)


def create_review_session(
    config: AppConfig, store: CardStore, user_id: str | None = None
) -> ReviewSession:
    """
    Returns an unbuilt ReviewSession using the configured limits and scheduler.
    """
    return ReviewSession(
        store=store,
        user_id=user_id or config.user_id,
        scheduler=IntervalScheduler(config.scheduler_config()),
        new_cards_per_day=config.new_cards_per_day,
        requeue_offset=config.requeue_offset,
    )
