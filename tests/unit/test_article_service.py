"""Unit tests for article queries and read/star state."""

import pytest
from datetime import datetime, timedelta, timezone

from feed_sync.errors import ArticleNotFoundError
from feed_sync.models.schemas import ArticleFilter, SortOption
from feed_sync.services.article_service import ArticleService

from factories import make_article, make_feed


pytestmark = pytest.mark.anyio

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def days_ago(n: int) -> datetime:
    return NOW - timedelta(days=n)


@pytest.fixture
async def service(storage):
    await storage.save_feeds([
        make_feed("f1", category_id="c1"),
        make_feed("f2", url="https://other.example.com/feed"),
    ])
    await storage.save_articles([
        make_article("a1", feed_id="f1", title="Python news", published_at=days_ago(1)),
        make_article("a2", feed_id="f1", title="Rust news", is_read=True, published_at=days_ago(3)),
        make_article("a3", feed_id="f2", title="Gardening", content="python in the garden",
                     is_starred=True, published_at=days_ago(40)),
        make_article("a4", feed_id="f2", title="Cooking", published_at=days_ago(60)),
    ])
    return ArticleService(storage, clock=lambda: NOW)


class TestQueries:
    """Tests for filtering, sorting and lookups."""

    async def test_all_articles_in_storage_order(self, service):
        articles = await service.get_articles()

        assert [a.id for a in articles] == ["a1", "a2", "a3", "a4"]

    async def test_filter_by_feed_and_read_state(self, service):
        articles = await service.get_articles(ArticleFilter(feed_id="f1", is_read=False))

        assert [a.id for a in articles] == ["a1"]

    async def test_filter_by_category(self, service):
        articles = await service.get_articles(ArticleFilter(category_id="c1"))

        assert {a.id for a in articles} == {"a1", "a2"}

    async def test_filter_by_date_range(self, service):
        articles = await service.get_articles(ArticleFilter(start=days_ago(50), end=days_ago(2)))

        assert [a.id for a in articles] == ["a2", "a3"]

    async def test_search_matches_title_or_content(self, service):
        articles = await service.search_articles("PYTHON")

        assert [a.id for a in articles] == ["a1", "a3"]

    async def test_sort_by_date_ascending(self, service):
        articles = await service.get_articles(sort=SortOption("published_at", "asc"))

        assert [a.id for a in articles] == ["a4", "a3", "a2", "a1"]

    async def test_sort_by_title_descending(self, service):
        articles = await service.get_articles(sort=SortOption("title", "desc"))

        assert [a.title for a in articles] == ["Rust news", "Python news", "Gardening", "Cooking"]

    async def test_unknown_sort_field(self, service):
        with pytest.raises(ValueError):
            await service.get_articles(sort=SortOption("author", "asc"))

    async def test_articles_by_feed(self, service):
        articles = await service.get_articles_by_feed("f2")

        assert [a.id for a in articles] == ["a3", "a4"]

    async def test_starred_and_unread(self, service):
        assert [a.id for a in await service.get_starred_articles()] == ["a3"]
        assert [a.id for a in await service.get_unread_articles()] == ["a1", "a3", "a4"]

    async def test_get_article(self, service):
        assert (await service.get_article("a2")).title == "Rust news"
        assert await service.get_article("missing") is None

    async def test_stats(self, service):
        assert await service.get_article_stats() == {"total": 4, "unread": 3, "starred": 1}


class TestStateChanges:
    """Tests for read/star updates and the feed counters they maintain."""

    async def test_mark_as_read_updates_counters(self, service, storage):
        article = await service.mark_as_read("a1")

        assert article.is_read is True
        feeds = {f.id: f for f in await storage.load_feeds()}
        assert feeds["f1"].unread_count == 0
        assert feeds["f1"].total_count == 2

    async def test_mark_as_unread(self, service, storage):
        await service.mark_as_unread("a2")

        feeds = {f.id: f for f in await storage.load_feeds()}
        assert feeds["f1"].unread_count == 2

    async def test_toggle_star_twice(self, service):
        first = await service.toggle_star("a1")
        second = await service.toggle_star("a1")

        assert first.is_starred is True
        assert second.is_starred is False

    async def test_update_article_sets_both_flags(self, service):
        article = await service.update_article("a4", is_read=True, is_starred=True)

        stored = await service.get_article("a4")
        assert article.is_read and article.is_starred
        assert stored.is_read and stored.is_starred

    async def test_unknown_article(self, service):
        with pytest.raises(ArticleNotFoundError):
            await service.mark_as_read("missing")
        with pytest.raises(ArticleNotFoundError):
            await service.toggle_star("missing")

    async def test_mark_feed_as_read(self, service, storage):
        changed = await service.mark_feed_as_read("f2")

        assert changed == 2
        feeds = {f.id: f for f in await storage.load_feeds()}
        assert feeds["f2"].unread_count == 0
        assert feeds["f1"].unread_count == 1

    async def test_mark_all_as_read(self, service, storage):
        assert await service.mark_all_as_read() == 3
        assert await service.mark_all_as_read() == 0
        assert all(f.unread_count == 0 for f in await storage.load_feeds())

    async def test_cleanup_keeps_starred_and_recent(self, service, storage):
        removed = await service.cleanup_old_articles(30)

        assert removed == 1
        assert [a.id for a in await storage.load_articles()] == ["a1", "a2", "a3"]
        feeds = {f.id: f for f in await storage.load_feeds()}
        assert feeds["f2"].total_count == 1
