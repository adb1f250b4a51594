"""
RSS Collector Node - Fetches feeds and normalizes entries into articles.

This node:
1. Fetches each configured feed using httpx (async HTTP)
2. Parses the feed using feedparser
3. Converts every entry into a CanonicalArticle
4. Resolves an image for each entry through a fallback chain, ending in a
   best-effort Open-Graph scrape of the article page
5. Handles errors gracefully (one bad feed never aborts the batch)

LangGraph Integration:
- Input: PipelineState (nothing required)
- Output: {"raw_articles": [...], "collection_errors": [...]}

Configuration:
- Feeds are configured in crenews.config.DEFAULT_RSS_FEEDS
- Can be overridden by passing feeds parameter (useful for testing)
"""

import asyncio
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from urllib.parse import urlsplit, urlunsplit

import feedparser
import httpx
import structlog
from bs4 import BeautifulSoup

from crenews.config import DEFAULT_RSS_FEEDS, FeedConfig, get_settings
from crenews.fallbacks import first_non_empty
from crenews.articles import CanonicalArticle
from crenews.graph.state import CollectionError, PipelineState

logger = structlog.get_logger()

USER_AGENT = "Mozilla/5.0 (compatible; CRENewsBot/1.0)"

_WHITESPACE_RE = re.compile(r"\s+")


# === Dates ===


def parse_published_date(entry: dict) -> datetime:
    """
    Extract publication date from a feed entry.

    RSS feeds store dates in various fields and formats:
    - published_parsed: Pre-parsed tuple (most reliable)
    - published: RFC 2822 string
    - updated_parsed/updated: Fallback for Atom feeds

    Returns UTC datetime, or current time if parsing fails.
    """
    for field in ["published_parsed", "updated_parsed"]:
        if parsed := entry.get(field):
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue

    for field in ["published", "updated"]:
        if date_str := entry.get(field):
            try:
                parsed_date = parsedate_to_datetime(date_str)
            except (TypeError, ValueError, IndexError):
                continue
            if parsed_date.tzinfo is None:
                parsed_date = parsed_date.replace(tzinfo=timezone.utc)
            return parsed_date

    logger.warning("Could not parse date, using current time", entry_title=entry.get("title"))
    return datetime.now(timezone.utc)


# === Text helpers ===


def strip_html(html: str | None) -> str:
    """Return the visible text of an HTML fragment with whitespace collapsed."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def sanitize_image_url(url: str | None) -> str | None:
    """
    Validate and normalize an image URL before storage.

    Only http(s) URLs with a host are accepted. Protocol-relative URLs
    become https. Query strings and fragments (usually resize or tracking
    parameters) are dropped.
    """
    if not url:
        return None
    url = url.strip()
    if url.startswith("//"):
        url = "https:" + url

    try:
        parts = urlsplit(url)
    except ValueError:
        return None

    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return None

    return urlunsplit((parts.scheme.lower(), parts.netloc, parts.path, "", ""))


# === Image fallback chain ===
# Each producer looks at one place in the entry and returns a URL or None.


def image_from_media_content(entry: dict) -> str | None:
    """media:content attachment typed as an image (higher resolution)."""
    for media in entry.get("media_content") or []:
        media_type = media.get("type") or ""
        if media_type.startswith("image/") or media.get("medium") == "image":
            if url := media.get("url"):
                return url
    return None


def image_from_enclosure(entry: dict) -> str | None:
    """Enclosure tagged with an image MIME type."""
    for enclosure in entry.get("enclosures") or []:
        if (enclosure.get("type") or "").startswith("image/"):
            if url := enclosure.get("href") or enclosure.get("url"):
                return url
    return None


def image_from_thumbnail(entry: dict) -> str | None:
    """media:thumbnail (lower resolution)."""
    for thumbnail in entry.get("media_thumbnail") or []:
        if url := thumbnail.get("url"):
            return url
    return None


def image_from_html_body(entry: dict) -> str | None:
    """First <img src> in the entry's HTML content or summary."""
    bodies = [content.get("value") for content in entry.get("content") or []]
    bodies.append(entry.get("summary"))

    for body in bodies:
        if not body or "<img" not in body:
            continue
        img = BeautifulSoup(body, "html.parser").find("img", src=True)
        if img is not None:
            return img["src"]
    return None


IMAGE_PRODUCERS = [
    image_from_media_content,
    image_from_enclosure,
    image_from_thumbnail,
    image_from_html_body,
]


def extract_image_url(entry: dict) -> str | None:
    """Resolve an image from the entry itself (no network)."""
    return first_non_empty(IMAGE_PRODUCERS, entry, transform=sanitize_image_url)


def extract_og_image(html: str) -> str | None:
    """Pull the og:image meta tag out of a page."""
    soup = BeautifulSoup(html, "html.parser")
    meta = soup.find("meta", attrs={"property": "og:image"}) or soup.find(
        "meta", attrs={"name": "og:image"}
    )
    if meta is None:
        return None
    return sanitize_image_url(meta.get("content"))


async def fetch_og_image(
    client: httpx.AsyncClient,
    article_url: str,
    timeout: float = 5.0,
) -> str | None:
    """
    Best-effort Open-Graph image scrape of an article page.

    Any failure (timeout, HTTP error, unparseable page) yields None.
    """
    if not sanitize_image_url(article_url):
        return None

    try:
        response = await client.get(article_url, timeout=timeout)
        response.raise_for_status()
        return extract_og_image(response.text)
    except Exception as e:
        logger.warning(
            "Could not fetch Open-Graph image",
            article_url=article_url,
            error=str(e),
            error_type=type(e).__name__,
        )
        return None


# === Description fallback chain ===


def description_from_snippet(entry: dict) -> str | None:
    """Summary that the feed already marks as plain text."""
    detail = entry.get("summary_detail") or {}
    if detail.get("type") == "text/plain" and detail.get("value"):
        return _WHITESPACE_RE.sub(" ", detail["value"]).strip()
    return None


def description_from_summary(entry: dict) -> str | None:
    return strip_html(entry.get("summary"))


def description_from_content(entry: dict) -> str | None:
    for content in entry.get("content") or []:
        if text := strip_html(content.get("value")):
            return text
    return strip_html(entry.get("description"))


DESCRIPTION_PRODUCERS = [
    description_from_snippet,
    description_from_summary,
    description_from_content,
]


def extract_description(entry: dict) -> str | None:
    """Plain-text description: snippet, then summary, then full content."""
    return first_non_empty(DESCRIPTION_PRODUCERS, entry)


# === Entry -> article ===


def build_article(entry: dict, source_id: str) -> CanonicalArticle:
    """
    Convert a feed entry to a CanonicalArticle.

    Never raises for a malformed entry: any field that cannot be
    extracted degrades to its empty value.
    """
    log = logger.bind(source_id=source_id, link=entry.get("link"))

    try:
        image_url = extract_image_url(entry)
    except Exception as e:
        log.warning("Image extraction failed", error=str(e))
        image_url = None

    try:
        description = extract_description(entry)
    except Exception as e:
        log.warning("Description extraction failed", error=str(e))
        description = None

    return {
        "title": (entry.get("title") or "").strip(),
        "link": (entry.get("link") or "").strip(),
        "source_id": source_id,
        "published_at": parse_published_date(entry),
        "image_url": image_url,
        "description": description,
    }


async def fetch_single_feed(
    client: httpx.AsyncClient,
    feed_config: FeedConfig,
    timeout: float = 10.0,
    og_timeout: float = 5.0,
    og_semaphore: asyncio.Semaphore | None = None,
) -> tuple[list[CanonicalArticle], list[CollectionError]]:
    """
    Fetch and parse a single feed.

    Args:
        client: Shared httpx client (for connection pooling)
        feed_config: FeedConfig with source_id and url
        timeout: Timeout for the feed request
        og_timeout: Timeout for each Open-Graph page scrape
        og_semaphore: Optional limit on concurrent page scrapes

    Returns:
        Tuple of (articles, errors) - errors are non-fatal
    """
    feed_url = feed_config.url
    articles: list[CanonicalArticle] = []
    errors: list[CollectionError] = []

    log = logger.bind(source_id=feed_config.source_id, feed_url=feed_url)

    def record_error(error_type: str, message: str) -> None:
        errors.append(
            CollectionError(
                source_type="rss",
                source_id=feed_config.source_id,
                error_type=error_type,
                error_message=message,
                timestamp=datetime.now(timezone.utc),
            )
        )

    try:
        log.info("Fetching RSS feed")
        response = await client.get(feed_url, timeout=timeout)
        response.raise_for_status()

        feed = feedparser.parse(response.text)

        if feed.bozo and feed.bozo_exception:
            # feedparser sets 'bozo' for malformed feeds; use what parsed
            log.warning("Feed has parse errors", error=str(feed.bozo_exception))
            if not feed.entries:
                raise ValueError(f"Unparseable feed: {feed.bozo_exception}")

        articles = [build_article(entry, feed_config.source_id) for entry in feed.entries]

        # Fill missing images from the article pages themselves
        async def fill_image(article: CanonicalArticle) -> None:
            if article["image_url"] or not article["link"]:
                return
            if og_semaphore is None:
                article["image_url"] = await fetch_og_image(client, article["link"], og_timeout)
                return
            async with og_semaphore:
                article["image_url"] = await fetch_og_image(client, article["link"], og_timeout)

        await asyncio.gather(*(fill_image(article) for article in articles))

        log.info("Feed processed", article_count=len(articles))

    except httpx.HTTPStatusError as e:
        log.error("HTTP error fetching feed", status_code=e.response.status_code)
        articles = []
        record_error(
            "HTTPStatusError",
            f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
        )

    except httpx.RequestError as e:
        log.error("Request error fetching feed", error=str(e))
        articles = []
        record_error(type(e).__name__, str(e))

    except Exception as e:
        log.exception("Unexpected error processing feed")
        articles = []
        record_error(type(e).__name__, str(e))

    return articles, errors


async def collect_feeds(
    feeds: list[FeedConfig],
    timeout: float = 10.0,
    og_timeout: float = 5.0,
    max_concurrent_scrapes: int = 10,
) -> tuple[list[CanonicalArticle], list[CollectionError]]:
    """
    Fetch all feeds concurrently and flatten the results.

    A failing feed contributes an error and no articles; siblings are
    unaffected.
    """
    all_articles: list[CanonicalArticle] = []
    all_errors: list[CollectionError] = []

    og_semaphore = asyncio.Semaphore(max_concurrent_scrapes)

    async with httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    ) as client:
        tasks = [
            fetch_single_feed(client, feed, timeout, og_timeout, og_semaphore) for feed in feeds
        ]
        results = await asyncio.gather(*tasks)

    for articles, errors in results:
        all_articles.extend(articles)
        all_errors.extend(errors)

    return all_articles, all_errors


async def rss_collector(
    state: PipelineState,
    feeds: list[FeedConfig] | None = None,
) -> dict:
    """
    LangGraph node: Collect articles from all configured feeds.

    Args:
        state: Current graph state
        feeds: Optional list of feeds (defaults to DEFAULT_RSS_FEEDS)

    Returns:
        Partial state update with raw_articles and collection_errors
    """
    feeds_to_collect = feeds if feeds is not None else DEFAULT_RSS_FEEDS
    settings = get_settings()

    logger.info("Starting RSS collection", feed_count=len(feeds_to_collect))

    articles, errors = await collect_feeds(
        feeds_to_collect,
        timeout=settings.feed_timeout_seconds,
        og_timeout=settings.og_image_timeout_seconds,
    )

    logger.info(
        "RSS collection complete",
        total_articles=len(articles),
        total_errors=len(errors),
    )

    return {
        "raw_articles": articles,
        "collection_errors": errors,
    }


def create_rss_collector_node(feeds: list[FeedConfig] | None = None):
    """
    Factory function to create an RSS collector node with custom feeds.

    Usage:
        builder.add_node("rss_collector", create_rss_collector_node(custom_feeds))
    """

    async def node(state: PipelineState) -> dict:
        return await rss_collector(state, feeds=feeds)

    return node
