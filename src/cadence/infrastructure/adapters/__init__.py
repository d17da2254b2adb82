# Card Store Adapters
from .memory_store import InMemoryCardStore
from .sqlite_store import SqliteCardStore

__all__ = ["InMemoryCardStore", "SqliteCardStore"]
