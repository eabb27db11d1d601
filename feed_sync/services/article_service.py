"""Article reading, filtering and state changes.

Every mutation saves the article collection first and then rewrites the feed
counters derived from it.
"""

from dataclasses import replace
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from feed_sync.errors import ArticleNotFoundError
from feed_sync.log_system.unified_logger import UnifiedLogger
from feed_sync.models.schemas import Article, ArticleFilter, SortOption, utcnow
from feed_sync.services.counters import recount_feeds
from feed_sync.storage.storage_manager import StorageManager

SORT_FIELDS = ("published_at", "title")


class ArticleService:
    """Queries and read/star state for stored articles."""

    def __init__(self, storage: StorageManager, clock: Optional[Callable] = None):
        self.storage = storage
        self._now = clock or utcnow
        self.logger = UnifiedLogger.get_logger(__name__)

    async def get_articles(
        self,
        filter: Optional[ArticleFilter] = None,
        sort: Optional[SortOption] = None,
    ) -> List[Article]:
        """Get stored articles, optionally filtered and sorted.

        Args:
            filter: Criteria to match; unset fields match everything
            sort: Sort order; storage order is kept when omitted

        Returns:
            List of matching Article objects
        """
        articles = await self.storage.load_articles()

        if filter is not None:
            articles = await self._apply_filter(articles, filter)
        if sort is not None:
            articles = _apply_sort(articles, sort)

        return articles

    async def get_article(self, article_id: str) -> Optional[Article]:
        articles = await self.storage.load_articles()
        return next((a for a in articles if a.id == article_id), None)

    async def get_articles_by_feed(
        self,
        feed_id: str,
        filter: Optional[ArticleFilter] = None,
        sort: Optional[SortOption] = None,
    ) -> List[Article]:
        feed_filter = _with(filter, feed_id=feed_id)
        return await self.get_articles(feed_filter, sort)

    async def search_articles(
        self, query: str, filter: Optional[ArticleFilter] = None
    ) -> List[Article]:
        """Case-insensitive substring search over title and content."""
        return await self.get_articles(_with(filter, search_query=query))

    async def get_starred_articles(
        self, filter: Optional[ArticleFilter] = None, sort: Optional[SortOption] = None
    ) -> List[Article]:
        return await self.get_articles(_with(filter, is_starred=True), sort)

    async def get_unread_articles(
        self, filter: Optional[ArticleFilter] = None, sort: Optional[SortOption] = None
    ) -> List[Article]:
        return await self.get_articles(_with(filter, is_read=False), sort)

    async def get_article_stats(self) -> Dict[str, int]:
        articles = await self.storage.load_articles()
        return {
            "total": len(articles),
            "unread": sum(1 for a in articles if not a.is_read),
            "starred": sum(1 for a in articles if a.is_starred),
        }

    # ─────────────────────────────────────────────────────────────
    # State changes
    # ─────────────────────────────────────────────────────────────

    async def update_article(
        self,
        article_id: str,
        is_read: Optional[bool] = None,
        is_starred: Optional[bool] = None,
    ) -> Article:
        """Set the read and/or starred flag of one article.

        Raises:
            ArticleNotFoundError: If no article has this id
        """
        async with self.storage.write_lock:
            articles = await self.storage.load_articles()
            article = next((a for a in articles if a.id == article_id), None)
            if article is None:
                raise ArticleNotFoundError(article_id)

            if is_read is not None:
                article.is_read = is_read
            if is_starred is not None:
                article.is_starred = is_starred

            await self._persist(articles)

        return article

    async def mark_as_read(self, article_id: str) -> Article:
        return await self.update_article(article_id, is_read=True)

    async def mark_as_unread(self, article_id: str) -> Article:
        return await self.update_article(article_id, is_read=False)

    async def toggle_star(self, article_id: str) -> Article:
        async with self.storage.write_lock:
            articles = await self.storage.load_articles()
            article = next((a for a in articles if a.id == article_id), None)
            if article is None:
                raise ArticleNotFoundError(article_id)

            article.is_starred = not article.is_starred
            await self._persist(articles)

        return article

    async def mark_feed_as_read(self, feed_id: str) -> int:
        """Mark every unread article of one feed as read.

        Returns:
            Number of articles changed
        """
        return await self._mark_read(lambda a: a.feed_id == feed_id)

    async def mark_all_as_read(self) -> int:
        return await self._mark_read(lambda a: True)

    async def cleanup_old_articles(self, max_age_days: int) -> int:
        """Delete unstarred articles published more than max_age_days ago.

        Returns:
            Number of articles removed
        """
        cutoff = self._now() - timedelta(days=max_age_days)

        async with self.storage.write_lock:
            articles = await self.storage.load_articles()
            kept = [a for a in articles if a.is_starred or a.published_at > cutoff]
            removed = len(articles) - len(kept)

            if removed:
                await self._persist(kept)

        self.logger.info(f"Cleaned up {removed} articles older than {max_age_days} days")
        return removed

    async def _mark_read(self, predicate: Callable[[Article], bool]) -> int:
        async with self.storage.write_lock:
            articles = await self.storage.load_articles()
            changed = 0
            for article in articles:
                if not article.is_read and predicate(article):
                    article.is_read = True
                    changed += 1

            if changed:
                await self._persist(articles)

        return changed

    async def _persist(self, articles: List[Article]) -> None:
        # Caller holds the write lock
        await self.storage.save_articles(articles)
        feeds = recount_feeds(await self.storage.load_feeds(), articles)
        await self.storage.save_feeds(feeds)

    async def _apply_filter(self, articles: List[Article], filter: ArticleFilter) -> List[Article]:
        feed_ids = None
        if filter.category_id is not None:
            feeds = await self.storage.load_feeds()
            feed_ids = {f.id for f in feeds if f.category_id == filter.category_id}

        query = filter.search_query.lower() if filter.search_query else None

        def matches(article: Article) -> bool:
            if filter.feed_id and article.feed_id != filter.feed_id:
                return False
            if feed_ids is not None and article.feed_id not in feed_ids:
                return False
            if filter.is_read is not None and article.is_read != filter.is_read:
                return False
            if filter.is_starred is not None and article.is_starred != filter.is_starred:
                return False
            if query and query not in article.title.lower() and query not in article.content.lower():
                return False
            if filter.start and article.published_at < filter.start:
                return False
            if filter.end and article.published_at > filter.end:
                return False
            return True

        return [a for a in articles if matches(a)]


def _apply_sort(articles: List[Article], sort: SortOption) -> List[Article]:
    if sort.field not in SORT_FIELDS:
        raise ValueError(f"Unsupported sort field: {sort.field}")

    if sort.field == "title":
        key = lambda a: a.title.lower()  # noqa: E731
    else:
        key = lambda a: a.published_at  # noqa: E731

    return sorted(articles, key=key, reverse=sort.direction == "desc")


def _with(filter: Optional[ArticleFilter], **overrides) -> ArticleFilter:
    """Copy of filter (or an empty one) with some fields replaced."""
    return replace(filter or ArticleFilter(), **overrides)
