"""Data models for feed_sync.

This module defines the core data structures for feeds, articles and
categories, plus the transient results produced by a refresh.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from feed_sync.errors import FeedErrorType


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _dump_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Feed:
    """Represents a subscribed feed."""

    id: str
    title: str
    url: str
    last_updated: datetime
    description: Optional[str] = None
    favicon: Optional[str] = None
    category_id: Optional[str] = None
    last_fetched: Optional[datetime] = None
    unread_count: int = 0
    total_count: int = 0
    is_active: bool = True
    refresh_interval: Optional[int] = None
    fetch_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "favicon": self.favicon,
            "category_id": self.category_id,
            "last_updated": _dump_dt(self.last_updated),
            "last_fetched": _dump_dt(self.last_fetched),
            "unread_count": self.unread_count,
            "total_count": self.total_count,
            "is_active": self.is_active,
            "refresh_interval": self.refresh_interval,
            "fetch_error": self.fetch_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feed":
        return cls(
            id=data["id"],
            title=data["title"],
            url=data["url"],
            last_updated=_load_dt(data.get("last_updated")) or utcnow(),
            description=data.get("description"),
            favicon=data.get("favicon"),
            category_id=data.get("category_id"),
            last_fetched=_load_dt(data.get("last_fetched")),
            unread_count=int(data.get("unread_count", 0)),
            total_count=int(data.get("total_count", 0)),
            is_active=bool(data.get("is_active", True)),
            refresh_interval=data.get("refresh_interval"),
            fetch_error=data.get("fetch_error"),
        )


@dataclass
class Article:
    """Represents an article ingested from a feed."""

    id: str
    feed_id: str
    title: str
    content: str
    url: str
    published_at: datetime
    summary: Optional[str] = None
    is_read: bool = False
    is_starred: bool = False
    author: Optional[str] = None
    guid: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "feed_id": self.feed_id,
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "url": self.url,
            "published_at": _dump_dt(self.published_at),
            "is_read": self.is_read,
            "is_starred": self.is_starred,
            "author": self.author,
            "guid": self.guid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Article":
        return cls(
            id=data["id"],
            feed_id=data["feed_id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            url=data.get("url", ""),
            published_at=_load_dt(data.get("published_at")) or utcnow(),
            summary=data.get("summary"),
            is_read=bool(data.get("is_read", False)),
            is_starred=bool(data.get("is_starred", False)),
            author=data.get("author"),
            guid=data.get("guid"),
        )


@dataclass
class Category:
    """Represents a user-defined group of feeds."""

    id: str
    name: str
    order: int = 0
    color: Optional[str] = None
    icon: Optional[str] = None
    feed_count: int = 0
    unread_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "order": self.order,
            "color": self.color,
            "icon": self.icon,
            "feed_count": self.feed_count,
            "unread_count": self.unread_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=data["id"],
            name=data["name"],
            order=int(data.get("order", 0)),
            color=data.get("color"),
            icon=data.get("icon"),
            feed_count=int(data.get("feed_count", 0)),
            unread_count=int(data.get("unread_count", 0)),
        )


@dataclass
class ParsedArticle:
    """Represents a normalized article from a fetched feed."""

    title: str
    content: str
    url: str
    published_at: datetime
    summary: str = ""
    author: Optional[str] = None
    guid: Optional[str] = None


@dataclass
class ParsedFeedDocument:
    """A fetched and normalized feed. Never persisted directly."""

    title: str
    url: str
    description: Optional[str] = None
    favicon: Optional[str] = None
    feed_type: str = "rss"
    articles: List[ParsedArticle] = field(default_factory=list)


@dataclass
class ValidationResult:
    """Outcome of validating a feed URL."""

    is_valid: bool
    feed_type: Optional[str] = None
    title: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[FeedErrorType] = None
    status_code: Optional[int] = None


@dataclass
class RefreshResult:
    """Per-feed outcome of a refresh."""

    feed_id: str
    success: bool
    new_article_count: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feed_id": self.feed_id,
            "success": self.success,
            "new_article_count": self.new_article_count,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class BatchRefreshResult:
    """Aggregate of the per-feed results of one batch refresh."""

    results: List[RefreshResult] = field(default_factory=list)

    @property
    def total_new(self) -> int:
        return sum(r.new_article_count for r in self.results if r.success)

    @property
    def total_errors(self) -> int:
        return sum(1 for r in self.results if not r.success)


@dataclass
class ArticleFilter:
    """Criteria for selecting articles. Unset fields match everything."""

    feed_id: Optional[str] = None
    category_id: Optional[str] = None
    is_read: Optional[bool] = None
    is_starred: Optional[bool] = None
    search_query: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass
class SortOption:
    """Sort order for article listings."""

    field: str = "published_at"
    direction: str = "desc"
