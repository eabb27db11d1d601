"""Error types for feed_sync.

Fetch-level failures are described by a single FeedFetchError carrying a
FeedErrorType. Storage-level lookups and conflicts have their own classes so
callers can catch them individually.
"""

from enum import Enum
from typing import Optional


class FeedErrorType(str, Enum):
    """Classification of a failed feed fetch."""

    INVALID_URL = "INVALID_URL"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    NOT_FOUND = "NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    SERVER_ERROR = "SERVER_ERROR"
    PARSE_ERROR = "PARSE_ERROR"


class FeedSyncError(Exception):
    """Base class for all feed_sync errors."""

    error_type: str = "FEED_SYNC_ERROR"


class FeedFetchError(FeedSyncError):
    """A feed could not be fetched or parsed."""

    def __init__(
        self,
        error_type: FeedErrorType,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.status_code = status_code
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        return self._retryable

    def __str__(self) -> str:
        return f"{self.error_type.value}: {self.message}"


class FeedNotFoundError(FeedSyncError):
    """No stored feed has the requested id."""

    error_type = "FEED_NOT_FOUND"

    def __init__(self, feed_id: str):
        super().__init__(f"Feed with ID {feed_id} not found")
        self.feed_id = feed_id


class ArticleNotFoundError(FeedSyncError):
    """No stored article has the requested id."""

    error_type = "ARTICLE_NOT_FOUND"

    def __init__(self, article_id: str):
        super().__init__(f"Article with ID {article_id} not found")
        self.article_id = article_id


class CategoryNotFoundError(FeedSyncError):
    """No stored category has the requested id."""

    error_type = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        super().__init__(f"Category with ID {category_id} not found")
        self.category_id = category_id


class CategoryConflictError(FeedSyncError):
    """A category with the same name (case-insensitive) already exists."""

    error_type = "CATEGORY_CONFLICT"

    def __init__(self, name: str):
        super().__init__(f'Category with name "{name}" already exists')
        self.name = name


class DuplicateFeedError(FeedSyncError):
    """The feed URL is already subscribed."""

    error_type = "DUPLICATE_FEED"

    def __init__(self, url: str):
        super().__init__(f"Feed with URL '{url}' already exists")
        self.url = url


class StorageError(FeedSyncError):
    """The storage collaborator failed or returned unreadable data."""

    error_type = "STORAGE_ERROR"
