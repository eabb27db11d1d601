"""Feed synchronization coordinator.

Drives feed refreshes end to end (fetch, reconcile, persist) and the feed
lifecycle operations that sit next to them: add, update, remove.

Persistence always writes the article collection before the feed
collection, so a crash between the two writes can leave stale feed counters
but never loses ingested articles. recompute_counts() repairs the counters.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Callable, List, Optional
from urllib.parse import urlsplit, urlunsplit

from feed_sync.errors import (
    CategoryNotFoundError,
    DuplicateFeedError,
    FeedFetchError,
    FeedNotFoundError,
    FeedSyncError,
)
from feed_sync.log_system.unified_logger import UnifiedLogger
from feed_sync.models.schemas import (
    Article,
    BatchRefreshResult,
    Feed,
    ParsedArticle,
    RefreshResult,
    utcnow,
)
from feed_sync.services.counters import recount_feeds
from feed_sync.services.feed_client import FeedFetchClient
from feed_sync.services.reconciler import ArticleReconciler
from feed_sync.storage.storage_manager import StorageManager

_UNSET = object()


def generate_id() -> str:
    """Opaque unique id for feeds and articles."""
    return uuid.uuid4().hex


class FeedSyncCoordinator:
    """Orchestrates refreshes and feed lifecycle against the storage collaborator."""

    def __init__(
        self,
        storage: StorageManager,
        client: Optional[FeedFetchClient] = None,
        reconciler: Optional[ArticleReconciler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.client = client or FeedFetchClient()
        self.reconciler = reconciler or ArticleReconciler()
        self._now = clock or utcnow
        self.logger = UnifiedLogger.get_logger(__name__)

    # ─────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────

    async def get_all_feeds(self) -> List[Feed]:
        return await self.storage.load_feeds()

    async def get_feed_by_id(self, feed_id: str) -> Optional[Feed]:
        feeds = await self.storage.load_feeds()
        return _find_feed(feeds, feed_id)

    # ─────────────────────────────────────────────────────────────
    # Refresh
    # ─────────────────────────────────────────────────────────────

    async def refresh_one(self, feed_id: str) -> RefreshResult:
        """Fetch one feed and ingest any articles not already stored.

        Args:
            feed_id: ID of the feed to refresh

        Returns:
            RefreshResult; fetch failures are reported here, not raised

        Raises:
            FeedNotFoundError: If no feed has this id
        """
        feed = await self.get_feed_by_id(feed_id)
        if feed is None:
            raise FeedNotFoundError(feed_id)

        self.logger.info(f"Refreshing feed {feed_id} ({feed.url})")

        try:
            document = await self.client.fetch(feed.url)
        except FeedFetchError as e:
            self.logger.warning(f"Refresh of feed {feed_id} failed: {e}")
            await self._record_fetch_error(feed_id, str(e))
            return RefreshResult(
                feed_id=feed_id,
                success=False,
                new_article_count=0,
                error=str(e),
                error_type=e.error_type.value,
            )

        async with self.storage.write_lock:
            feeds = await self.storage.load_feeds()
            stored = _find_feed(feeds, feed_id)
            if stored is None:
                # Removed while the fetch was in flight
                raise FeedNotFoundError(feed_id)

            articles = await self.storage.load_articles()
            fresh = self.reconciler.find_new_articles(feed_id, articles, document.articles)
            new_articles = [self._to_article(feed_id, parsed) for parsed in fresh]

            if new_articles:
                await self.storage.save_articles(articles + new_articles)

            now = self._now()
            stored.last_updated = now
            stored.last_fetched = now
            stored.unread_count += len(new_articles)
            stored.total_count += len(new_articles)
            stored.fetch_error = None
            await self.storage.save_feeds(feeds)

        self.logger.info(f"Feed {feed_id}: {len(new_articles)} new articles")
        return RefreshResult(feed_id=feed_id, success=True, new_article_count=len(new_articles))

    async def refresh_all(self) -> BatchRefreshResult:
        """Refresh every active feed concurrently.

        Returns:
            BatchRefreshResult with one RefreshResult per active feed; the
            batch itself never fails
        """
        feeds = await self.storage.load_feeds()
        active = [feed for feed in feeds if feed.is_active]

        self.logger.info(f"Refreshing {len(active)} of {len(feeds)} feeds")

        results = await asyncio.gather(*(self._refresh_isolated(feed.id) for feed in active))
        batch = BatchRefreshResult(results=list(results))

        self.logger.info(
            f"Batch refresh complete: {batch.total_new} new articles, "
            f"{batch.total_errors} failed feeds"
        )
        return batch

    async def _refresh_isolated(self, feed_id: str) -> RefreshResult:
        try:
            return await self.refresh_one(feed_id)
        except FeedSyncError as e:
            self.logger.error(f"Refresh of feed {feed_id} aborted: {e}")
            return RefreshResult(
                feed_id=feed_id,
                success=False,
                new_article_count=0,
                error=str(e),
                error_type=e.error_type,
            )
        except Exception as e:
            self.logger.error(f"Unexpected error refreshing feed {feed_id}: {e}", exc_info=True)
            return RefreshResult(
                feed_id=feed_id,
                success=False,
                new_article_count=0,
                error=str(e) or e.__class__.__name__,
                error_type="UNEXPECTED_ERROR",
            )

    async def _record_fetch_error(self, feed_id: str, error: str) -> None:
        async with self.storage.write_lock:
            feeds = await self.storage.load_feeds()
            stored = _find_feed(feeds, feed_id)
            if stored is None:
                return
            stored.fetch_error = error
            await self.storage.save_feeds(feeds)

    # ─────────────────────────────────────────────────────────────
    # Feed Management
    # ─────────────────────────────────────────────────────────────

    async def add_feed(
        self,
        url: str,
        category_id: Optional[str] = None,
        custom_title: Optional[str] = None,
    ) -> Feed:
        """Subscribe to a feed and store its current articles.

        Args:
            url: Feed URL
            category_id: Optional category to file the feed under
            custom_title: Optional title overriding the feed's own

        Returns:
            The created Feed

        Raises:
            FeedFetchError: If the URL is invalid or the feed cannot be fetched
            DuplicateFeedError: If the URL is already subscribed
            CategoryNotFoundError: If category_id does not exist
        """
        url = url.strip()
        self.logger.info(f"Adding feed: {url}")

        validation = await self.client.validate(url)
        if not validation.is_valid:
            raise FeedFetchError(
                validation.error_type,
                validation.error or "Feed validation failed",
                validation.status_code,
            )

        await self._check_new_subscription(url, category_id)

        document = await self.client.fetch(url)

        async with self.storage.write_lock:
            # Re-check under the lock; another add may have won the race
            await self._check_new_subscription(url, category_id)

            feed_id = generate_id()
            initial = self.reconciler.find_new_articles(feed_id, [], document.articles)
            new_articles = [self._to_article(feed_id, parsed) for parsed in initial]

            now = self._now()
            feed = Feed(
                id=feed_id,
                title=(custom_title or "").strip() or document.title,
                url=url,
                description=document.description,
                favicon=document.favicon,
                category_id=category_id,
                last_updated=now,
                last_fetched=now,
                unread_count=len(new_articles),
                total_count=len(new_articles),
                is_active=True,
            )

            if new_articles:
                articles = await self.storage.load_articles()
                await self.storage.save_articles(articles + new_articles)

            feeds = await self.storage.load_feeds()
            feeds.append(feed)
            await self.storage.save_feeds(feeds)

        self.logger.info(f"Added feed {feed.id} '{feed.title}' with {len(new_articles)} articles")
        return feed

    async def update_feed(
        self,
        feed_id: str,
        title: Optional[str] = None,
        category_id=_UNSET,
        refresh_interval=_UNSET,
        is_active: Optional[bool] = None,
    ) -> Feed:
        """Change user-editable feed properties.

        category_id and refresh_interval accept None to clear the value;
        leave them out to keep the current one.

        Raises:
            FeedNotFoundError: If no feed has this id
            CategoryNotFoundError: If category_id names an unknown category
        """
        if category_id is not _UNSET and category_id is not None:
            categories = await self.storage.load_categories()
            if not any(c.id == category_id for c in categories):
                raise CategoryNotFoundError(category_id)

        async with self.storage.write_lock:
            feeds = await self.storage.load_feeds()
            feed = _find_feed(feeds, feed_id)
            if feed is None:
                raise FeedNotFoundError(feed_id)

            if title is not None:
                feed.title = title
            if category_id is not _UNSET:
                feed.category_id = category_id
            if refresh_interval is not _UNSET:
                feed.refresh_interval = refresh_interval
            if is_active is not None:
                feed.is_active = is_active

            await self.storage.save_feeds(feeds)

        return feed

    async def remove_feed(self, feed_id: str) -> int:
        """Remove a feed and all of its articles.

        Args:
            feed_id: ID of the feed to remove

        Returns:
            Number of articles deleted

        Raises:
            FeedNotFoundError: If no feed has this id
        """
        async with self.storage.write_lock:
            feeds = await self.storage.load_feeds()
            remaining = [f for f in feeds if f.id != feed_id]
            if len(remaining) == len(feeds):
                raise FeedNotFoundError(feed_id)

            await self.storage.save_feeds(remaining)

            articles = await self.storage.load_articles()
            kept = [a for a in articles if a.feed_id != feed_id]
            removed = len(articles) - len(kept)
            if removed:
                await self.storage.save_articles(kept)

        self.logger.info(f"Removed feed {feed_id} and {removed} articles")
        return removed

    async def recompute_counts(self) -> List[Feed]:
        """Rebuild every feed's unread/total counters from stored articles."""
        async with self.storage.write_lock:
            articles = await self.storage.load_articles()
            feeds = recount_feeds(await self.storage.load_feeds(), articles)
            await self.storage.save_feeds(feeds)
        return feeds

    # ─────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────

    async def _check_new_subscription(self, url: str, category_id: Optional[str]) -> None:
        feeds = await self.storage.load_feeds()
        identity = _url_identity(url)
        if any(_url_identity(f.url) == identity for f in feeds):
            raise DuplicateFeedError(url)

        if category_id is not None:
            categories = await self.storage.load_categories()
            if not any(c.id == category_id for c in categories):
                raise CategoryNotFoundError(category_id)

    @staticmethod
    def _to_article(feed_id: str, parsed: ParsedArticle) -> Article:
        return Article(
            id=generate_id(),
            feed_id=feed_id,
            title=parsed.title,
            content=parsed.content,
            summary=parsed.summary,
            url=parsed.url,
            published_at=parsed.published_at,
            is_read=False,
            is_starred=False,
            author=parsed.author,
            guid=parsed.guid,
        )


def _find_feed(feeds: List[Feed], feed_id: str) -> Optional[Feed]:
    for feed in feeds:
        if feed.id == feed_id:
            return feed
    return None


def _url_identity(url: str) -> str:
    """Subscription identity: scheme and host ignore case, the rest is exact."""
    parts = urlsplit(url.strip())
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, parts.fragment)
    )
