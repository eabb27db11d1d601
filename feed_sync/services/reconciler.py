"""Article reconciliation.

Decides which freshly parsed articles are new for a feed. Reconciliation is
strictly additive: it only selects from the parsed list and never touches
stored articles.
"""

from typing import Iterable, List, Set, Union

from feed_sync.models.schemas import Article, ParsedArticle


class ArticleReconciler:
    """Computes the genuinely new subset of a parsed article list."""

    def find_new_articles(
        self,
        feed_id: str,
        existing_articles: Iterable[Article],
        parsed_articles: Iterable[ParsedArticle],
    ) -> List[ParsedArticle]:
        """Return parsed articles not already stored for feed_id.

        Two articles match when both carry a guid and the guids are equal,
        or when at least one of them lacks a guid and their urls are equal.
        Only stored articles of feed_id are considered. Source order is kept
        and repeats within parsed_articles collapse to the first occurrence.

        Args:
            feed_id: Feed the parsed articles belong to
            existing_articles: Stored articles (any feed; filtered here)
            parsed_articles: Articles from the latest fetch

        Returns:
            New articles in source order
        """
        guids: Set[str] = set()
        urls_without_guid: Set[str] = set()
        all_urls: Set[str] = set()

        for article in existing_articles:
            if article.feed_id != feed_id:
                continue
            self._remember(article, guids, urls_without_guid, all_urls)

        new_articles: List[ParsedArticle] = []
        for article in parsed_articles:
            if article.guid:
                seen = article.guid in guids or article.url in urls_without_guid
            else:
                seen = article.url in all_urls

            if seen:
                continue

            new_articles.append(article)
            self._remember(article, guids, urls_without_guid, all_urls)

        return new_articles

    @staticmethod
    def _remember(
        article: Union[Article, ParsedArticle],
        guids: Set[str],
        urls_without_guid: Set[str],
        all_urls: Set[str],
    ) -> None:
        all_urls.add(article.url)
        if article.guid:
            guids.add(article.guid)
        else:
            urls_without_guid.add(article.url)
