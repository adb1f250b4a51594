"""
Store Node - Persists collected articles, skipping links already stored.

This node:
1. Drops entries without a link (nothing to dedup on)
2. Drops repeated links within this run (first occurrence wins)
3. Groups the rest by source and saves each group with save_articles()

Deduplication against previous runs happens in the database: the insert
is ON CONFLICT (link) DO NOTHING, so running the pipeline twice over the
same feeds saves nothing the second time.

LangGraph Integration:
- Input: PipelineState with raw_articles
- Output: {"saved_count": int}
"""

import structlog

from crenews.config import DEFAULT_RSS_FEEDS, FeedConfig
from crenews.db.connection import get_db_pool
from crenews.db.repository import save_articles
from crenews.articles import CanonicalArticle
from crenews.graph.state import PipelineState

logger = structlog.get_logger()


def group_by_source(articles: list[CanonicalArticle]) -> dict[str, list[CanonicalArticle]]:
    """
    Group articles by source_id, dropping link-less and repeated links.

    Returns:
        Dict of source_id -> articles, in first-seen order
    """
    grouped: dict[str, list[CanonicalArticle]] = {}
    seen_links: set[str] = set()
    skipped = 0

    for article in articles:
        link = (article.get("link") or "").strip()
        if not link or link in seen_links:
            skipped += 1
            continue

        seen_links.add(link)
        grouped.setdefault(article["source_id"], []).append(article)

    if skipped:
        logger.debug("Skipped link-less or repeated entries", skipped=skipped)

    return grouped


async def store(state: PipelineState, feeds: list[FeedConfig] | None = None) -> dict:
    """
    LangGraph node: Save new articles to the database.

    Args:
        state: Current graph state with raw_articles
        feeds: Feed configs used to name sources (defaults to DEFAULT_RSS_FEEDS)

    Returns:
        Partial state update with saved_count
    """
    articles = state.get("raw_articles", [])

    logger.info("Starting article store", article_count=len(articles))

    if not articles:
        logger.warning("No articles to store")
        return {"saved_count": 0}

    feeds_by_id = {feed.source_id: feed for feed in (feeds if feeds is not None else DEFAULT_RSS_FEEDS)}
    grouped = group_by_source(articles)

    pool = await get_db_pool()
    saved_count = 0

    async with pool.acquire() as conn:
        for source_id, source_articles in grouped.items():
            feed = feeds_by_id.get(source_id)
            saved = await save_articles(
                conn,
                source_articles,
                source_id=source_id,
                source_name=feed.name if feed else source_id,
                is_national=feed.is_national if feed else False,
            )
            logger.info(
                "Source stored",
                source_id=source_id,
                candidates=len(source_articles),
                saved=saved,
            )
            saved_count += saved

    logger.info(
        "Article store complete",
        saved_count=saved_count,
        duplicates=len(articles) - saved_count,
    )

    return {"saved_count": saved_count}


def create_store_node(feeds: list[FeedConfig] | None = None):
    """
    Factory function to create a store node that names sources from custom feeds.

    Usage:
        builder.add_node("store", create_store_node(custom_feeds))
    """

    async def node(state: PipelineState) -> dict:
        return await store(state, feeds=feeds)

    return node
