# Domain Package
from .errors import CadenceError, DeckFileError, NoCurrentCardError, StoreError
from .models import (
    CardRecord,
    IntervalPreviews,
    ProgressSnapshot,
    QueueEntry,
    Rating,
    ReviewLogEntry,
    SchedulerConfig,
    SessionCounters,
    Stage,
)
from .ports import CardStore

__all__ = [
    "CadenceError",
    "CardRecord",
    "CardStore",
    "DeckFileError",
    "IntervalPreviews",
    "NoCurrentCardError",
    "ProgressSnapshot",
    "QueueEntry",
    "Rating",
    "ReviewLogEntry",
    "SchedulerConfig",
    "SessionCounters",
    "Stage",
    "StoreError",
]
