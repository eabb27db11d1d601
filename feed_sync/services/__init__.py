"""Services for feed_sync."""

from .article_service import ArticleService
from .category_service import CategoryService
from .feed_client import FeedFetchClient
from .feed_sync import FeedSyncCoordinator
from .reconciler import ArticleReconciler

__all__ = [
    "ArticleReconciler",
    "ArticleService",
    "CategoryService",
    "FeedFetchClient",
    "FeedSyncCoordinator",
]
