"""Storage layer for feed_sync."""

from .database import (
    SQLiteKeyValueStore,
    StorageAdapter,
    close_database,
    get_database,
    init_database,
)
from .storage_manager import StorageManager, get_storage, reset_storage

__all__ = [
    "SQLiteKeyValueStore",
    "StorageAdapter",
    "StorageManager",
    "close_database",
    "get_database",
    "get_storage",
    "init_database",
    "reset_storage",
]
