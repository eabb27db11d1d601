"""Feed sync MCP tools.

This module provides MCP tools for managing subscriptions, refreshing feeds
and working through articles and categories.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import Context

from feed_sync.config import get_config
from feed_sync.log_system.unified_logger import UnifiedLogger
from feed_sync.models.schemas import Article, ArticleFilter, SortOption
from feed_sync.services.article_service import SORT_FIELDS, ArticleService
from feed_sync.services.category_service import CategoryService
from feed_sync.services.feed_client import FeedFetchClient
from feed_sync.services.feed_sync import FeedSyncCoordinator
from feed_sync.storage import get_storage


async def _coordinator() -> FeedSyncCoordinator:
    client = FeedFetchClient.from_config(get_config())
    return FeedSyncCoordinator(await get_storage(), client=client)


async def _articles() -> ArticleService:
    return ArticleService(await get_storage())


async def _categories() -> CategoryService:
    return CategoryService(await get_storage())


def _article_summary(article: Article, include_content: bool = False) -> Dict[str, Any]:
    data = {
        "id": article.id,
        "feed_id": article.feed_id,
        "title": article.title,
        "url": article.url,
        "summary": article.summary,
        "author": article.author,
        "published_at": article.published_at.isoformat(),
        "is_read": article.is_read,
        "is_starred": article.is_starred,
    }
    if include_content:
        data["content"] = article.content
    return data


def _parse_iso(value: str) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ─────────────────────────────────────────────────────────────
# Feeds
# ─────────────────────────────────────────────────────────────


async def add_feed(
    url: str,
    category_id: str = "",
    title: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Subscribe to an RSS or Atom feed and import its current articles.

    The URL is validated first; a malformed URL is rejected without any
    network request. Subscribing to the same URL twice is an error.

    Args:
        url: Feed URL (http or https)
        category_id: Category to file the feed under (empty string for none)
        title: Custom display title (empty string to use the feed's own title)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed: the created feed
        - error, error_type: if success is False
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"add_feed called: url={url}, category_id={category_id}")

    coordinator = await _coordinator()
    feed = await coordinator.add_feed(url, category_id=category_id or None, custom_title=title or None)

    return {
        "success": True,
        "feed": feed.to_dict(),
    }


async def remove_feed(feed_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Unsubscribe from a feed and delete all of its articles.

    This permanently deletes the feed and its articles, starred ones included.

    Args:
        feed_id: ID of the feed (from list_feeds)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - articles_deleted: count of articles removed
        - error, error_type: if the feed was not found
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"remove_feed called: feed_id={feed_id}")

    coordinator = await _coordinator()
    removed = await coordinator.remove_feed(feed_id)

    return {
        "success": True,
        "message": f"Removed feed {feed_id} and {removed} articles",
        "articles_deleted": removed,
    }


async def update_feed(
    feed_id: str,
    title: str = "",
    category_id: str = "",
    clear_category: bool = False,
    is_active: str = "",
    refresh_interval: int = 0,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Change a feed's title, category, active flag or refresh interval.

    Args:
        feed_id: ID of the feed to update
        title: New title (empty string keeps the current one)
        category_id: Move the feed to this category (empty string keeps the current one)
        clear_category: Remove the feed from its category
        is_active: "true" or "false" to resume or pause refreshing (empty string keeps it)
        refresh_interval: Refresh interval in minutes (0 keeps the current one)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed: the updated feed
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"update_feed called: feed_id={feed_id}")

    changes: Dict[str, Any] = {}
    if title:
        changes["title"] = title
    if clear_category:
        changes["category_id"] = None
    elif category_id:
        changes["category_id"] = category_id
    if refresh_interval > 0:
        changes["refresh_interval"] = refresh_interval
    if is_active:
        flag = is_active.strip().lower()
        if flag not in ("true", "false"):
            return {
                "success": False,
                "error": f"is_active must be 'true' or 'false', got '{is_active}'",
            }
        changes["is_active"] = flag == "true"

    coordinator = await _coordinator()
    feed = await coordinator.update_feed(feed_id, **changes)

    return {
        "success": True,
        "feed": feed.to_dict(),
    }


async def list_feeds(category_id: str = "", ctx: Context = None) -> Dict[str, Any]:
    """List subscribed feeds with their unread and total article counts.

    Args:
        category_id: Only feeds in this category (empty string for all feeds)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of feeds
        - feeds: list of feed objects
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"list_feeds called: category_id={category_id}")

    coordinator = await _coordinator()
    feeds = await coordinator.get_all_feeds()
    if category_id:
        feeds = [f for f in feeds if f.category_id == category_id]

    return {
        "success": True,
        "count": len(feeds),
        "feeds": [f.to_dict() for f in feeds],
    }


async def get_feed(feed_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Get one feed by ID."""
    coordinator = await _coordinator()
    feed = await coordinator.get_feed_by_id(feed_id)

    if feed is None:
        return {
            "success": False,
            "error": f"Feed with ID {feed_id} not found",
            "error_type": "FEED_NOT_FOUND",
        }

    return {
        "success": True,
        "feed": feed.to_dict(),
    }


async def validate_feed(url: str, ctx: Context = None) -> Dict[str, Any]:
    """Check whether a URL serves a parseable RSS or Atom feed without subscribing.

    Args:
        url: Candidate feed URL
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool (the check itself ran)
        - is_valid: bool
        - feed_type, title: when valid
        - error, error_type, status_code: when invalid
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"validate_feed called: url={url}")

    client = FeedFetchClient.from_config(get_config())
    result = await client.validate(url)

    return {
        "success": True,
        "is_valid": result.is_valid,
        "feed_type": result.feed_type,
        "title": result.title,
        "error": result.error,
        "error_type": result.error_type.value if result.error_type else None,
        "status_code": result.status_code,
    }


async def refresh_feed(feed_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Fetch one feed now and store any new articles.

    A fetch failure is reported in the result rather than as an error;
    retryable failures are retried a few times first.

    Args:
        feed_id: ID of the feed to refresh
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed_id, new_article_count
        - error, error_type: if the fetch failed
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"refresh_feed called: feed_id={feed_id}")

    coordinator = await _coordinator()
    result = await coordinator.refresh_one(feed_id)
    return result.to_dict()


async def refresh_all_feeds(ctx: Context = None) -> Dict[str, Any]:
    """Refresh every active feed concurrently.

    One failing feed never stops the others; each feed's outcome is listed.

    Returns:
        Dictionary with:
        - success: bool (always True once the batch has run)
        - feeds_refreshed: number of active feeds processed
        - total_new_articles, failed_feeds
        - results: per-feed results
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info("refresh_all_feeds called")

    coordinator = await _coordinator()
    batch = await coordinator.refresh_all()

    return {
        "success": True,
        "feeds_refreshed": len(batch.results),
        "total_new_articles": batch.total_new,
        "failed_feeds": batch.total_errors,
        "results": [r.to_dict() for r in batch.results],
    }


async def recompute_counts(ctx: Context = None) -> Dict[str, Any]:
    """Rebuild every feed's unread and total counts from the stored articles.

    Use this if the counts shown by list_feeds look wrong.

    Returns:
        Dictionary with:
        - success: bool
        - feeds: feeds with corrected counts
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info("recompute_counts called")

    coordinator = await _coordinator()
    feeds = await coordinator.recompute_counts()

    return {
        "success": True,
        "count": len(feeds),
        "feeds": [f.to_dict() for f in feeds],
    }


# ─────────────────────────────────────────────────────────────
# Articles
# ─────────────────────────────────────────────────────────────


async def list_articles(
    feed_id: str = "",
    category_id: str = "",
    unread_only: bool = False,
    starred_only: bool = False,
    search: str = "",
    since: str = "",
    before: str = "",
    sort_by: str = "published_at",
    sort_direction: str = "desc",
    limit: int = 50,
    include_content: bool = False,
    ctx: Context = None,
) -> Dict[str, Any]:
    """List articles with optional filters, newest first by default.

    Args:
        feed_id: Only articles from this feed (empty string for all)
        category_id: Only articles from feeds in this category (empty string for all)
        unread_only: Only unread articles
        starred_only: Only starred articles
        search: Case-insensitive text to find in title or content
        since: Only articles published at or after this ISO date (empty string for no filter)
        before: Only articles published at or before this ISO date (empty string for no filter)
        sort_by: "published_at" or "title"
        sort_direction: "asc" or "desc"
        limit: Maximum number of articles to return (0 for no limit)
        include_content: Include full article content in the response
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of articles returned
        - articles: list of article objects
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(
        f"list_articles called: feed_id={feed_id}, category_id={category_id}, "
        f"unread_only={unread_only}, starred_only={starred_only}, search={search}, limit={limit}"
    )

    try:
        start = _parse_iso(since)
        end = _parse_iso(before)
    except ValueError as e:
        return {
            "success": False,
            "error": f"Invalid date: {e}. Use ISO format like '2025-01-01' or '2025-01-01T00:00:00'",
        }

    if sort_by not in SORT_FIELDS or sort_direction not in ("asc", "desc"):
        return {
            "success": False,
            "error": f"Invalid sort: {sort_by} {sort_direction}",
        }

    article_filter = ArticleFilter(
        feed_id=feed_id or None,
        category_id=category_id or None,
        is_read=False if unread_only else None,
        is_starred=True if starred_only else None,
        search_query=search or None,
        start=start,
        end=end,
    )

    service = await _articles()
    articles = await service.get_articles(article_filter, SortOption(sort_by, sort_direction))
    if limit > 0:
        articles = articles[:limit]

    return {
        "success": True,
        "count": len(articles),
        "articles": [_article_summary(a, include_content) for a in articles],
    }


async def mark_article_read(article_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Mark a specific article as read.

    Args:
        article_id: ID of the article (from list_articles response)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - article: the updated article
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"mark_article_read called: article_id={article_id}")

    service = await _articles()
    article = await service.mark_as_read(article_id)

    return {
        "success": True,
        "article": _article_summary(article),
    }


async def mark_article_unread(article_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Mark a specific article as unread."""
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"mark_article_unread called: article_id={article_id}")

    service = await _articles()
    article = await service.mark_as_unread(article_id)

    return {
        "success": True,
        "article": _article_summary(article),
    }


async def toggle_article_star(article_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Star an article, or unstar it if it is already starred.

    Starred articles are never removed by cleanup.
    """
    service = await _articles()
    article = await service.toggle_star(article_id)

    return {
        "success": True,
        "article": _article_summary(article),
    }


async def mark_all_read(feed_id: str = "", ctx: Context = None) -> Dict[str, Any]:
    """Mark all unread articles as read, optionally only for one feed.

    Args:
        feed_id: Only mark articles from this feed (empty string marks all feeds)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - articles_marked_read: count of articles updated
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"mark_all_read called: feed_id={feed_id}")

    service = await _articles()
    if feed_id:
        coordinator = await _coordinator()
        if await coordinator.get_feed_by_id(feed_id) is None:
            return {
                "success": False,
                "error": f"Feed with ID {feed_id} not found",
                "error_type": "FEED_NOT_FOUND",
            }
        count = await service.mark_feed_as_read(feed_id)
    else:
        count = await service.mark_all_as_read()

    return {
        "success": True,
        "articles_marked_read": count,
        "feed_filter": feed_id or None,
    }


async def cleanup_old_articles(max_age_days: int = 30, ctx: Context = None) -> Dict[str, Any]:
    """Delete articles older than max_age_days. Starred articles are always kept.

    Args:
        max_age_days: Age limit in days, counted from publication date
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - articles_deleted: count of articles removed
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"cleanup_old_articles called: max_age_days={max_age_days}")

    if max_age_days < 1:
        return {
            "success": False,
            "error": f"max_age_days must be at least 1, got {max_age_days}",
        }

    service = await _articles()
    removed = await service.cleanup_old_articles(max_age_days)

    return {
        "success": True,
        "articles_deleted": removed,
    }


async def get_stats(ctx: Context = None) -> Dict[str, Any]:
    """Get article totals (all, unread, starred) and category totals."""
    articles = await _articles()
    categories = await _categories()

    return {
        "success": True,
        "articles": await articles.get_article_stats(),
        "categories": await categories.get_category_stats(),
    }


# ─────────────────────────────────────────────────────────────
# Categories
# ─────────────────────────────────────────────────────────────


async def create_category(
    name: str,
    color: str = "",
    icon: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Create a category for grouping feeds.

    Names are unique regardless of case.

    Args:
        name: Category name
        color: Display color (empty string for none)
        icon: Display icon (empty string for none)
        ctx: MCP Context object (injected automatically)
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"create_category called: name={name}")

    if not name.strip():
        return {
            "success": False,
            "error": "Category name must not be empty",
        }

    service = await _categories()
    category = await service.create_category(name, color=color or None, icon=icon or None)

    return {
        "success": True,
        "category": category.to_dict(),
    }


async def list_categories(ctx: Context = None) -> Dict[str, Any]:
    """List categories in display order with feed and unread counts."""
    service = await _categories()
    categories = await service.get_all_categories()

    return {
        "success": True,
        "count": len(categories),
        "categories": [c.to_dict() for c in categories],
    }


async def get_category(category_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Get one category by ID, with its feed and unread counts."""
    service = await _categories()
    category = await service.get_category_by_id(category_id)

    if category is None:
        return {
            "success": False,
            "error": f"Category with ID {category_id} not found",
            "error_type": "CATEGORY_NOT_FOUND",
        }

    return {
        "success": True,
        "category": category.to_dict(),
    }


async def update_category(
    category_id: str,
    name: str = "",
    color: str = "",
    icon: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Rename a category or change its color or icon.

    Args:
        category_id: ID of the category to update
        name: New name (empty string keeps the current one)
        color: New display color (empty string keeps the current one)
        icon: New display icon (empty string keeps the current one)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - category: the updated category
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"update_category called: category_id={category_id}, name={name}")

    if name and not name.strip():
        return {
            "success": False,
            "error": "Category name must not be empty",
        }

    changes: Dict[str, Any] = {}
    if name:
        changes["name"] = name
    if color:
        changes["color"] = color
    if icon:
        changes["icon"] = icon

    service = await _categories()
    category = await service.update_category(category_id, **changes)

    return {
        "success": True,
        "category": category.to_dict(),
    }


async def reorder_categories(category_ids: List[str], ctx: Context = None) -> Dict[str, Any]:
    """Set the display order of categories.

    Args:
        category_ids: Category IDs in the desired order; unlisted categories keep their place
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - categories: all categories in their new order
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"reorder_categories called: {len(category_ids)} ids")

    service = await _categories()
    await service.reorder_categories(category_ids)
    categories = await service.get_all_categories()

    return {
        "success": True,
        "categories": [c.to_dict() for c in categories],
    }


async def delete_category(
    category_id: str,
    reassign_to: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Delete a category. Its feeds move to another category or become uncategorized.

    Args:
        category_id: ID of the category to delete
        reassign_to: Category to move the feeds to (empty string leaves them uncategorized)
        ctx: MCP Context object (injected automatically)
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"delete_category called: category_id={category_id}, reassign_to={reassign_to}")

    service = await _categories()
    moved = await service.delete_category(category_id, reassign_to=reassign_to or None)

    return {
        "success": True,
        "feeds_moved": moved,
    }


# List of feed tools for registration
feed_tools = [
    add_feed,
    remove_feed,
    update_feed,
    list_feeds,
    get_feed,
    validate_feed,
    refresh_feed,
    refresh_all_feeds,
    recompute_counts,
    list_articles,
    mark_article_read,
    mark_article_unread,
    toggle_article_star,
    mark_all_read,
    cleanup_old_articles,
    get_stats,
    create_category,
    list_categories,
    get_category,
    update_category,
    reorder_categories,
    delete_category,
]
