"""Unit tests for the MCP tool layer.

Tools are called directly with storage patched to in-memory SQLite and HTTP
patched on httpx.AsyncClient. Registration is checked against the FastMCP
server instance.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from feed_sync.decorators.exception_handler import exception_handler
from feed_sync.decorators.tool_logger import tool_logger
from feed_sync.errors import FeedNotFoundError
from feed_sync.log_system.correlation import get_correlation_id
from feed_sync.tools import feed_tools as tools

from factories import make_article, make_feed, mock_response, patch_http, rss_document


pytestmark = pytest.mark.anyio

FEED_URL = "https://example.com/feed.xml"
RSS = rss_document(
    "Example Feed",
    [
        ("Post 1", "https://example.com/post1", "id-1"),
        ("Post 2", "https://example.com/post2", "id-2"),
    ],
)


def decorated(tool):
    return exception_handler(tool_logger(tool, {}))


@pytest.fixture
async def patched_storage(storage):
    with patch("feed_sync.tools.feed_tools.get_storage", AsyncMock(return_value=storage)):
        yield storage


class TestFeedTools:
    """Tests for subscription and refresh tools."""

    async def test_add_list_and_refresh(self, patched_storage):
        get = AsyncMock(return_value=mock_response(200, RSS))

        with patch_http(get):
            added = await tools.add_feed(FEED_URL, title="My Feed")
            refreshed = await tools.refresh_feed(added["feed"]["id"])

        assert added["success"] is True
        assert added["feed"]["title"] == "My Feed"
        assert added["feed"]["unread_count"] == 2
        assert refreshed == {
            "feed_id": added["feed"]["id"],
            "success": True,
            "new_article_count": 0,
            "error": None,
            "error_type": None,
        }

        listed = await tools.list_feeds()
        assert listed["count"] == 1
        assert listed["feeds"][0]["url"] == FEED_URL

    async def test_add_invalid_url_is_reported(self, patched_storage):
        with patch("feed_sync.services.feed_client.httpx.AsyncClient") as mock_client:
            result = await decorated(tools.add_feed)(url="not-a-url")

        assert result["success"] is False
        assert result["error_type"] == "INVALID_URL"
        mock_client.assert_not_called()

    async def test_validate_feed(self, patched_storage):
        get = AsyncMock(return_value=mock_response(404))

        with patch_http(get):
            result = await tools.validate_feed(FEED_URL)

        assert result["success"] is True
        assert result["is_valid"] is False
        assert result["error_type"] == "NOT_FOUND"
        assert result["status_code"] == 404

    async def test_refresh_all_reports_each_feed(self, patched_storage):
        await patched_storage.save_feeds([
            make_feed("good", url="https://example.com/good.xml"),
            make_feed("bad", url="https://example.com/bad.xml"),
        ])

        async def get(url):
            if url.endswith("bad.xml"):
                return mock_response(404)
            return mock_response(200, RSS)

        with patch_http(get):
            result = await tools.refresh_all_feeds()

        assert result["success"] is True
        assert result["feeds_refreshed"] == 2
        assert result["total_new_articles"] == 2
        assert result["failed_feeds"] == 1

    async def test_update_feed_flags(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1", category_id="c1")])

        result = await tools.update_feed("f1", clear_category=True, is_active="false")

        assert result["feed"]["category_id"] is None
        assert result["feed"]["is_active"] is False

    async def test_update_feed_rejects_bad_flag(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1")])

        result = await tools.update_feed("f1", is_active="maybe")

        assert result["success"] is False

    async def test_remove_feed(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1")])
        await patched_storage.save_articles([make_article("a", feed_id="f1")])

        result = await tools.remove_feed("f1")

        assert result["articles_deleted"] == 1

    async def test_remove_unknown_feed_is_structured_error(self, patched_storage):
        result = await decorated(tools.remove_feed)(feed_id="missing")

        assert result == {
            "success": False,
            "error": "Feed with ID missing not found",
            "error_type": "FEED_NOT_FOUND",
        }

    async def test_get_feed(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1")])

        assert (await tools.get_feed("f1"))["feed"]["id"] == "f1"
        assert (await tools.get_feed("missing"))["success"] is False

    async def test_recompute_counts_repairs_stale_counters(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1", unread_count=9, total_count=9)])
        await patched_storage.save_articles([
            make_article("a", feed_id="f1"),
            make_article("b", feed_id="f1", is_read=True),
        ])

        result = await tools.recompute_counts()

        assert result["success"] is True
        assert result["feeds"][0]["unread_count"] == 1
        assert result["feeds"][0]["total_count"] == 2
        stored = (await patched_storage.load_feeds())[0]
        assert (stored.unread_count, stored.total_count) == (1, 2)


class TestArticleTools:
    """Tests for listing and updating articles."""

    async def test_list_articles_filters_and_limits(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1")])
        await patched_storage.save_articles([
            make_article("a", feed_id="f1"),
            make_article("b", feed_id="f1", is_read=True),
            make_article("c", feed_id="f1"),
        ])

        result = await tools.list_articles(unread_only=True, limit=1)

        assert result["count"] == 1
        assert result["articles"][0]["is_read"] is False
        assert "content" not in result["articles"][0]

    async def test_list_articles_bad_date(self, patched_storage):
        result = await tools.list_articles(since="yesterday")

        assert result["success"] is False

    async def test_list_articles_bad_sort(self, patched_storage):
        result = await tools.list_articles(sort_by="author")

        assert result["success"] is False

    async def test_read_unread_star(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1")])
        await patched_storage.save_articles([make_article("a", feed_id="f1")])

        assert (await tools.mark_article_read("a"))["article"]["is_read"] is True
        assert (await tools.mark_article_unread("a"))["article"]["is_read"] is False
        assert (await tools.toggle_article_star("a"))["article"]["is_starred"] is True

    async def test_mark_all_read(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1")])
        await patched_storage.save_articles([make_article("a", feed_id="f1"), make_article("b", feed_id="f1")])

        assert (await tools.mark_all_read())["articles_marked_read"] == 2
        assert (await tools.mark_all_read(feed_id="missing"))["success"] is False

    async def test_cleanup_old_articles_keeps_starred_and_recent(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1")])
        await patched_storage.save_articles([
            make_article("old", feed_id="f1"),
            make_article("old-starred", feed_id="f1", is_starred=True),
            make_article("recent", feed_id="f1", published_at=datetime.now(timezone.utc)),
        ])

        result = await tools.cleanup_old_articles(max_age_days=30)

        assert result == {"success": True, "articles_deleted": 1}
        assert [a.id for a in await patched_storage.load_articles()] == ["old-starred", "recent"]

    async def test_cleanup_rejects_non_positive_age(self, patched_storage):
        await patched_storage.save_articles([make_article("old")])

        result = await tools.cleanup_old_articles(max_age_days=0)

        assert result["success"] is False
        assert len(await patched_storage.load_articles()) == 1

    async def test_get_stats(self, patched_storage):
        await patched_storage.save_feeds([make_feed("f1", category_id="c1"), make_feed("f2", url="https://two.example.com")])
        await patched_storage.save_articles([
            make_article("a", feed_id="f1", is_starred=True),
            make_article("b", feed_id="f2", is_read=True),
        ])

        result = await tools.get_stats()

        assert result["articles"] == {"total": 2, "unread": 1, "starred": 1}
        assert result["categories"] == {
            "total_categories": 0,
            "categorized_feeds": 1,
            "uncategorized_feeds": 1,
        }


class TestCategoryTools:
    """Tests for category tools."""

    async def test_create_list_delete(self, patched_storage):
        created = await tools.create_category("Tech", color="#123")
        conflict = await decorated(tools.create_category)(name="TECH")
        listed = await tools.list_categories()
        deleted = await tools.delete_category(created["category"]["id"])

        assert created["category"]["color"] == "#123"
        assert conflict["error_type"] == "CATEGORY_CONFLICT"
        assert listed["count"] == 1
        assert deleted == {"success": True, "feeds_moved": 0}

    async def test_get_and_update_category(self, patched_storage):
        created = await tools.create_category("Tech", color="#123")
        category_id = created["category"]["id"]

        updated = await tools.update_category(category_id, name="  Technology ", icon="chip")
        fetched = await tools.get_category(category_id)

        assert updated["category"]["name"] == "Technology"
        assert updated["category"]["color"] == "#123"
        assert fetched["category"]["icon"] == "chip"
        assert (await tools.get_category("missing"))["error_type"] == "CATEGORY_NOT_FOUND"

    async def test_update_category_conflict_and_blank_name(self, patched_storage):
        await tools.create_category("Tech")
        news = await tools.create_category("News")
        news_id = news["category"]["id"]

        conflict = await decorated(tools.update_category)(category_id=news_id, name=" tech ")
        blank = await tools.update_category(news_id, name="   ")

        assert conflict["error_type"] == "CATEGORY_CONFLICT"
        assert blank["success"] is False
        assert (await tools.get_category(news_id))["category"]["name"] == "News"

    async def test_reorder_categories(self, patched_storage):
        ids = [(await tools.create_category(name))["category"]["id"] for name in ("A", "B", "C")]

        result = await tools.reorder_categories([ids[2], ids[0], ids[1]])
        missing = await decorated(tools.reorder_categories)(category_ids=["missing"])

        assert [c["name"] for c in result["categories"]] == ["C", "A", "B"]
        assert missing["error_type"] == "CATEGORY_NOT_FOUND"


class TestDecorators:
    """Tests for the decorator chain applied at registration."""

    async def test_tool_logger_sets_and_restores_correlation_id(self):
        seen = []

        async def record(ctx=None):
            seen.append(get_correlation_id())
            return {"success": True}

        result = await tool_logger(record, {})()

        assert result == {"success": True}
        assert seen[0].startswith("req_")
        assert get_correlation_id() != seen[0]

    async def test_exception_handler_reraises_unexpected_errors(self):
        async def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await exception_handler(broken)()

    async def test_exception_handler_converts_domain_errors(self):
        async def missing():
            raise FeedNotFoundError("x")

        result = await exception_handler(missing)()

        assert result["error_type"] == "FEED_NOT_FOUND"

    async def test_wrappers_keep_tool_metadata(self):
        wrapped = decorated(tools.add_feed)

        assert wrapped.__name__ == "add_feed"
        assert wrapped.__doc__ == tools.add_feed.__doc__


class TestServerRegistration:
    """Tests that every tool is registered with the MCP server."""

    async def test_all_tools_registered(self):
        from feed_sync.server.app import server

        registered = await server.list_tools()
        names = {tool.name for tool in registered}

        assert names == {tool.__name__ for tool in tools.feed_tools}
        assert len(names) == 22

    async def test_no_kwargs_in_tool_schemas(self):
        from feed_sync.server.app import server

        for tool in await server.list_tools():
            properties = tool.inputSchema.get("properties", {})
            assert "kwargs" not in properties, tool.name
