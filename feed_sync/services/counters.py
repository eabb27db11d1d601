"""Feed counters derived from article state."""

from collections import Counter
from typing import Iterable, List

from feed_sync.models.schemas import Article, Feed


def recount_feeds(feeds: List[Feed], articles: Iterable[Article]) -> List[Feed]:
    """Set unread_count and total_count of each feed from stored articles.

    Feeds are updated in place and returned for convenience.
    """
    totals: Counter = Counter()
    unread: Counter = Counter()

    for article in articles:
        totals[article.feed_id] += 1
        if not article.is_read:
            unread[article.feed_id] += 1

    for feed in feeds:
        feed.total_count = totals[feed.id]
        feed.unread_count = unread[feed.id]

    return feeds
