"""Category management: grouping feeds and the counts derived from them."""

import uuid
from typing import Dict, List, Optional

from feed_sync.errors import CategoryConflictError, CategoryNotFoundError
from feed_sync.log_system.unified_logger import UnifiedLogger
from feed_sync.models.schemas import Category, Feed
from feed_sync.storage.storage_manager import StorageManager

_UNSET = object()


class CategoryService:
    """Create, rename, reorder and delete categories."""

    def __init__(self, storage: StorageManager):
        self.storage = storage
        self.logger = UnifiedLogger.get_logger(__name__)

    async def create_category(
        self,
        name: str,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Category:
        """Create a category placed after the existing ones.

        Raises:
            CategoryConflictError: If a category already uses this name,
                compared case-insensitively
        """
        name = name.strip()
        if not name:
            raise ValueError("Category name must not be empty")

        async with self.storage.write_lock:
            categories = await self.storage.load_categories()
            _check_name_free(categories, name)

            category = Category(
                id=uuid.uuid4().hex,
                name=name,
                color=color,
                icon=icon,
                order=len(categories),
            )
            categories.append(category)
            await self.storage.save_categories(categories)

        self.logger.info(f"Created category {category.id} '{name}'")
        return category

    async def update_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        color=_UNSET,
        icon=_UNSET,
        order: Optional[int] = None,
    ) -> Category:
        async with self.storage.write_lock:
            categories = await self.storage.load_categories()
            category = _find(categories, category_id)

            if name is not None:
                name = name.strip()
                if not name:
                    raise ValueError("Category name must not be empty")
                if name != category.name:
                    _check_name_free(categories, name, ignore_id=category_id)
                    category.name = name
            if color is not _UNSET:
                category.color = color
            if icon is not _UNSET:
                category.icon = icon
            if order is not None:
                category.order = order

            await self.storage.save_categories(categories)

        return category

    async def delete_category(self, category_id: str, reassign_to: Optional[str] = None) -> int:
        """Delete a category, moving its feeds to reassign_to or to no category.

        Returns:
            Number of feeds moved

        Raises:
            CategoryNotFoundError: If either category id is unknown
        """
        async with self.storage.write_lock:
            categories = await self.storage.load_categories()
            _find(categories, category_id)
            if reassign_to is not None:
                _find(categories, reassign_to)

            feeds = await self.storage.load_feeds()
            moved = 0
            for feed in feeds:
                if feed.category_id == category_id:
                    feed.category_id = reassign_to
                    moved += 1

            if moved:
                await self.storage.save_feeds(feeds)
            await self.storage.save_categories([c for c in categories if c.id != category_id])

        self.logger.info(f"Deleted category {category_id}, moved {moved} feeds")
        return moved

    async def get_all_categories(self) -> List[Category]:
        """All categories sorted by order, with feed and unread counts filled in."""
        categories = await self.storage.load_categories()
        feeds = await self.storage.load_feeds()
        articles = await self.storage.load_articles()

        feed_category = {f.id: f.category_id for f in feeds}
        for category in categories:
            category.feed_count = sum(1 for f in feeds if f.category_id == category.id)
            category.unread_count = sum(
                1
                for a in articles
                if not a.is_read and feed_category.get(a.feed_id) == category.id
            )

        return sorted(categories, key=lambda c: c.order)

    async def get_category_by_id(self, category_id: str) -> Optional[Category]:
        categories = await self.get_all_categories()
        return next((c for c in categories if c.id == category_id), None)

    async def reorder_categories(self, category_ids: List[str]) -> List[Category]:
        """Set each listed category's order to its position in category_ids.

        Categories left out keep their current order.
        """
        async with self.storage.write_lock:
            categories = await self.storage.load_categories()
            for category_id in category_ids:
                _find(categories, category_id)

            positions = {cid: index for index, cid in enumerate(category_ids)}
            for category in categories:
                if category.id in positions:
                    category.order = positions[category.id]

            await self.storage.save_categories(categories)

        return sorted(categories, key=lambda c: c.order)

    async def get_feeds_by_category(self, category_id: str) -> List[Feed]:
        feeds = await self.storage.load_feeds()
        return [f for f in feeds if f.category_id == category_id]

    async def get_uncategorized_feeds(self) -> List[Feed]:
        feeds = await self.storage.load_feeds()
        return [f for f in feeds if not f.category_id]

    async def get_category_stats(self) -> Dict[str, int]:
        categories = await self.storage.load_categories()
        feeds = await self.storage.load_feeds()
        categorized = sum(1 for f in feeds if f.category_id)
        return {
            "total_categories": len(categories),
            "categorized_feeds": categorized,
            "uncategorized_feeds": len(feeds) - categorized,
        }


def _find(categories: List[Category], category_id: str) -> Category:
    for category in categories:
        if category.id == category_id:
            return category
    raise CategoryNotFoundError(category_id)


def _check_name_free(categories: List[Category], name: str, ignore_id: Optional[str] = None) -> None:
    for category in categories:
        if category.id != ignore_id and category.name.lower() == name.lower():
            raise CategoryConflictError(name)
