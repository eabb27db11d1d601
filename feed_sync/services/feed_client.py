"""Feed fetch client.

This module fetches RSS/Atom feeds over HTTP, parses them with feedparser,
classifies failures and normalizes entries into ParsedArticle objects.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, List, Optional
from urllib.parse import urlparse

import feedparser
import httpx
from bs4 import BeautifulSoup

from feed_sync.config import DEFAULT_USER_AGENT, ServerConfig
from feed_sync.errors import FeedErrorType, FeedFetchError
from feed_sync.log_system.unified_logger import UnifiedLogger
from feed_sync.models.schemas import (
    ParsedArticle,
    ParsedFeedDocument,
    ValidationResult,
    utcnow,
)

ACCEPT_HEADER = "application/rss+xml, application/atom+xml, application/xml, text/xml"

# Substrings httpx/OS resolvers use for DNS failures
DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated",
)


@dataclass
class RawFeedItem:
    """Loosely-typed fields of one feed entry, as feedparser exposes them."""

    title: Optional[str] = None
    content: Optional[str] = None
    content_encoded: Optional[str] = None
    content_snippet: Optional[str] = None
    summary: Optional[str] = None
    link: Optional[str] = None
    pub_date: Optional[datetime] = None
    creator: Optional[str] = None
    author: Optional[str] = None
    guid: Optional[str] = None
    id: Optional[str] = None


def is_valid_feed_url(url: str) -> bool:
    """Return True if url is an absolute http(s) URL httpx can request."""
    if not isinstance(url, str) or not url.strip():
        return False
    url = url.strip()
    try:
        parsed = urlparse(url)
        # Raises ValueError for a non-numeric or out-of-range port
        parsed.port
        httpx.URL(url)
    except (ValueError, httpx.InvalidURL):
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    return not any(char.isspace() for char in parsed.netloc)


def classify_status(status_code: int) -> FeedFetchError:
    """Map an HTTP error status to a classified FeedFetchError."""
    if status_code == 404:
        return FeedFetchError(
            FeedErrorType.NOT_FOUND, "Feed not found (404)", status_code, retryable=False
        )
    if status_code == 403:
        return FeedFetchError(
            FeedErrorType.ACCESS_DENIED, "Access denied (403)", status_code, retryable=False
        )
    if status_code == 429:
        return FeedFetchError(
            FeedErrorType.NETWORK_ERROR, "Rate limited (429)", status_code, retryable=True
        )
    if status_code >= 500:
        return FeedFetchError(
            FeedErrorType.SERVER_ERROR, f"Server error ({status_code})", status_code, retryable=True
        )
    return FeedFetchError(
        FeedErrorType.NETWORK_ERROR, f"HTTP error ({status_code})", status_code, retryable=False
    )


def classify_error(error: BaseException) -> FeedFetchError:
    """Turn any exception raised during a fetch into a FeedFetchError.

    Order: network level, HTTP status, parse level, then a retryable
    NETWORK_ERROR fallback.
    """
    if isinstance(error, FeedFetchError):
        return error

    if isinstance(error, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return FeedFetchError(
            FeedErrorType.INVALID_URL, f"Invalid URL: {error}", retryable=False
        )

    if isinstance(error, httpx.TimeoutException):
        return FeedFetchError(FeedErrorType.TIMEOUT_ERROR, "Request timed out", retryable=True)

    if isinstance(error, httpx.ConnectError):
        message = str(error).lower()
        if any(marker in message for marker in DNS_FAILURE_MARKERS):
            text = "Domain not found or network connection failed"
        else:
            text = "Connection refused by server"
        return FeedFetchError(FeedErrorType.NETWORK_ERROR, text, retryable=True)

    if isinstance(error, httpx.HTTPStatusError):
        return classify_status(error.response.status_code)

    message = str(error) or error.__class__.__name__
    if "timeout" in message.lower():
        return FeedFetchError(FeedErrorType.TIMEOUT_ERROR, "Request timed out", retryable=True)

    return FeedFetchError(FeedErrorType.NETWORK_ERROR, message, retryable=True)


class FeedFetchClient:
    """Fetches and normalizes feeds with a bounded retry policy."""

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        user_agent: str = DEFAULT_USER_AGENT,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.user_agent = user_agent
        self._sleep = sleep or asyncio.sleep
        self.logger = UnifiedLogger.get_logger(__name__)

    @classmethod
    def from_config(cls, config: ServerConfig) -> "FeedFetchClient":
        return cls(
            timeout=config.fetch_timeout,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            user_agent=config.user_agent,
        )

    async def validate(self, url: str) -> ValidationResult:
        """Check that url points at a parseable RSS/Atom feed.

        Args:
            url: Feed URL to validate

        Returns:
            ValidationResult; never raises for fetch failures
        """
        if not is_valid_feed_url(url):
            return ValidationResult(
                is_valid=False,
                error="Invalid URL format - must be a valid HTTP or HTTPS URL",
                error_type=FeedErrorType.INVALID_URL,
            )

        try:
            document = await self.fetch(url)
        except FeedFetchError as e:
            return ValidationResult(
                is_valid=False,
                error=e.message,
                error_type=e.error_type,
                status_code=e.status_code,
            )

        return ValidationResult(
            is_valid=True,
            feed_type=document.feed_type,
            title=document.title,
        )

    async def fetch(self, url: str) -> ParsedFeedDocument:
        """Fetch, parse and normalize a feed.

        Args:
            url: Feed URL

        Returns:
            ParsedFeedDocument

        Raises:
            FeedFetchError: classified failure after the retry policy is applied
        """
        if not is_valid_feed_url(url):
            raise FeedFetchError(
                FeedErrorType.INVALID_URL,
                "Invalid URL format - must be a valid HTTP or HTTPS URL",
            )

        parsed = await self._fetch_with_retries(url)
        document = self._build_document(url, parsed)
        self.logger.info(f"Parsed {len(document.articles)} articles from {url}")
        return document

    async def _fetch_with_retries(self, url: str) -> Any:
        last_error: Optional[FeedFetchError] = None

        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent, "Accept": ACCEPT_HEADER},
        ) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    return await self._fetch_once(client, url)
                except Exception as e:
                    last_error = classify_error(e)

                if not last_error.retryable:
                    self.logger.warning(f"Giving up on {url}: {last_error}")
                    raise last_error

                self.logger.warning(
                    f"Attempt {attempt}/{self.max_retries} for {url} failed: {last_error}"
                )
                if attempt < self.max_retries:
                    await self._sleep(self.retry_delay)

        self.logger.error(f"Failed to fetch feed {url} after {self.max_retries} attempts")
        raise last_error

    async def _fetch_once(self, client: httpx.AsyncClient, url: str) -> Any:
        self.logger.debug(f"Fetching feed: {url}")
        response = await client.get(url)

        if response.status_code >= 400:
            raise classify_status(response.status_code)

        # Raw bytes so feedparser honours the encoding the XML declares
        parsed = feedparser.parse(response.content, response_headers=dict(response.headers))

        if parsed.bozo and not parsed.entries:
            raise FeedFetchError(
                FeedErrorType.PARSE_ERROR,
                f"Invalid XML: {parsed.get('bozo_exception', 'unreadable document')}",
            )
        if not parsed.get("version") and not parsed.entries:
            raise FeedFetchError(FeedErrorType.PARSE_ERROR, "Not a feed")

        return parsed

    def _build_document(self, url: str, parsed: Any) -> ParsedFeedDocument:
        meta = parsed.feed
        version = parsed.get("version") or ""

        return ParsedFeedDocument(
            title=(meta.get("title") or "").strip() or "Unknown Feed",
            description=meta.get("description") or meta.get("subtitle") or None,
            url=url,
            favicon=extract_favicon(meta.get("link")),
            feed_type="atom" if version.startswith("atom") else "rss",
            articles=[normalize_item(raw_item_from_entry(e)) for e in parsed.entries],
        )


def raw_item_from_entry(entry: dict) -> RawFeedItem:
    """Copy the fields the engine uses out of a feedparser entry."""
    encoded = None
    for block in entry.get("content") or []:
        if block.get("value"):
            encoded = block["value"]
            break

    description = entry.get("description")

    return RawFeedItem(
        title=entry.get("title"),
        content=description,
        content_encoded=encoded,
        content_snippet=_content_snippet(description or encoded),
        summary=entry.get("summary"),
        link=entry.get("link"),
        pub_date=_parse_date(entry),
        creator=entry.get("dc_creator") or entry.get("creator"),
        author=entry.get("author"),
        guid=entry.get("guid"),
        id=entry.get("id"),
    )


def normalize_item(item: RawFeedItem, now: Optional[datetime] = None) -> ParsedArticle:
    """Apply the field fallbacks and produce a ParsedArticle."""
    return ParsedArticle(
        title=(item.title or "").strip() or "Untitled Article",
        content=item.content or item.content_encoded or item.content_snippet or "",
        summary=item.content_snippet or item.summary or "",
        url=(item.link or "").strip(),
        published_at=item.pub_date or now or utcnow(),
        author=item.creator or item.author or None,
        guid=item.guid or item.id or None,
    )


def extract_favicon(site_link: Optional[str]) -> Optional[str]:
    """Derive ``scheme://host/favicon.ico`` from the feed's site link."""
    if not site_link:
        return None
    try:
        parsed = urlparse(site_link)
        hostname = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not hostname:
        return None
    return f"{parsed.scheme}://{hostname}/favicon.ico"


def _content_snippet(html: Optional[str]) -> Optional[str]:
    """Plain-text rendering of an entry's HTML body."""
    if not html:
        return None
    text = BeautifulSoup(html, "lxml").get_text(separator=" ", strip=True)
    return text or None


def _parse_date(entry: dict) -> Optional[datetime]:
    """Parse the publication date from a feed entry.

    Args:
        entry: Feed entry dict

    Returns:
        timezone-aware datetime if parsed successfully, None otherwise
    """
    for field_name in ["published", "updated", "created"]:
        value = entry.get(f"{field_name}_parsed") or entry.get(field_name, "")

        if not value:
            continue

        # feedparser's struct_time is always UTC
        if isinstance(value, tuple):
            try:
                return datetime(*value[:6], tzinfo=timezone.utc)
            except (ValueError, TypeError):
                continue

        # RFC 2822 (common in RSS)
        try:
            return _as_utc(parsedate_to_datetime(value))
        except (ValueError, TypeError):
            pass

        # ISO 8601 (common in Atom)
        try:
            return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except (ValueError, AttributeError):
            pass

    return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
