"""Entity collections on top of a key-value adapter.

Every load returns the full collection and every save replaces it. There is
no per-entity update and no transaction spanning two calls.
"""

import asyncio
import json
from typing import Any, Callable, List, Optional, TypeVar

from feed_sync.errors import StorageError
from feed_sync.models.schemas import Article, Category, Feed
from feed_sync.storage.database import (
    SQLiteKeyValueStore,
    StorageAdapter,
    get_database,
)

T = TypeVar("T")


class StorageManager:
    """Loads and saves feeds, articles and categories as JSON documents."""

    FEEDS_KEY = "feed_sync:feeds"
    ARTICLES_KEY = "feed_sync:articles"
    CATEGORIES_KEY = "feed_sync:categories"

    def __init__(self, adapter: StorageAdapter):
        self.adapter = adapter
        # Held around every read-modify-write of the collections
        self.write_lock = asyncio.Lock()

    # Feeds

    async def load_feeds(self) -> List[Feed]:
        return await self._load(self.FEEDS_KEY, Feed.from_dict)

    async def save_feeds(self, feeds: List[Feed]) -> None:
        await self._save(self.FEEDS_KEY, feeds)

    # Articles

    async def load_articles(self) -> List[Article]:
        return await self._load(self.ARTICLES_KEY, Article.from_dict)

    async def save_articles(self, articles: List[Article]) -> None:
        await self._save(self.ARTICLES_KEY, articles)

    # Categories

    async def load_categories(self) -> List[Category]:
        return await self._load(self.CATEGORIES_KEY, Category.from_dict)

    async def save_categories(self, categories: List[Category]) -> None:
        await self._save(self.CATEGORIES_KEY, categories)

    async def clear_all(self) -> None:
        """Remove every stored collection."""
        for key in (self.FEEDS_KEY, self.ARTICLES_KEY, self.CATEGORIES_KEY):
            await self.adapter.remove_item(key)

    async def _load(self, key: str, factory: Callable[[dict], T]) -> List[T]:
        data = await self.adapter.get_item(key)
        if not data:
            return []

        try:
            items = json.loads(data)
            if not isinstance(items, list):
                raise TypeError(f"expected a list, got {type(items).__name__}")
            return [factory(item) for item in items]
        except (ValueError, TypeError, KeyError) as e:
            raise StorageError(f"Stored data under '{key}' is unreadable: {e}") from e

    async def _save(self, key: str, entities: List[Any]) -> None:
        payload = json.dumps([entity.to_dict() for entity in entities], ensure_ascii=False)
        await self.adapter.set_item(key, payload)


_storage: Optional[StorageManager] = None


async def get_storage() -> StorageManager:
    """Get or create the StorageManager bound to the singleton database."""
    global _storage

    if _storage is None:
        _storage = StorageManager(SQLiteKeyValueStore(await get_database()))

    return _storage


def reset_storage() -> None:
    """Forget the cached StorageManager (used after close_database)."""
    global _storage
    _storage = None
