"""Shared fixtures for feed_sync tests."""

import aiosqlite
import pytest

from feed_sync.storage.database import SQLiteKeyValueStore, init_database
from feed_sync.storage.storage_manager import StorageManager


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def in_memory_db():
    """Create an in-memory database for testing."""
    db = await aiosqlite.connect(":memory:")
    db.row_factory = aiosqlite.Row
    await init_database(db)

    yield db

    await db.close()


@pytest.fixture
async def storage(in_memory_db):
    """StorageManager over the in-memory database."""
    return StorageManager(SQLiteKeyValueStore(in_memory_db))
