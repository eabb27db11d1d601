"""Key-value storage for feed_sync.

This module provides an async SQLite-backed key-value store. Each key holds
one JSON document (a whole entity collection).
Database location: ServerConfig.db_path (~/.feed_sync/feed_sync.db unless FEED_SYNC_DB_PATH is set)
"""

from typing import Optional, Protocol

import aiosqlite

from feed_sync.config import get_config
from feed_sync.errors import StorageError


class StorageAdapter(Protocol):
    """Minimal async key-value contract the StorageManager relies on."""

    async def get_item(self, key: str) -> Optional[str]:
        ...

    async def set_item(self, key: str, value: str) -> None:
        ...

    async def remove_item(self, key: str) -> None:
        ...


# Singleton connection
_db_connection: Optional[aiosqlite.Connection] = None


async def get_database() -> aiosqlite.Connection:
    """Get or create a singleton database connection.

    Returns:
        Active database connection
    """
    global _db_connection

    if _db_connection is None:
        db_path = get_config().db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)

        _db_connection = await aiosqlite.connect(db_path)
        _db_connection.row_factory = aiosqlite.Row
        await init_database(_db_connection)

    return _db_connection


async def init_database(db: Optional[aiosqlite.Connection] = None) -> None:
    """Initialize the key-value table if it doesn't exist.

    Args:
        db: Optional database connection (uses singleton if not provided)
    """
    if db is None:
        db = await get_database()

    await db.execute("""
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    await db.commit()


class SQLiteKeyValueStore:
    """StorageAdapter over one aiosqlite connection."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get_item(self, key: str) -> Optional[str]:
        try:
            cursor = await self._db.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

        if row is None:
            return None
        return row[0]

    async def set_item(self, key: str, value: str) -> None:
        try:
            await self._db.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value),
            )
            await self._db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to save '{key}': {e}") from e

    async def remove_item(self, key: str) -> None:
        try:
            await self._db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await self._db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to remove '{key}': {e}") from e


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection

    if _db_connection is not None:
        await _db_connection.close()
        _db_connection = None
