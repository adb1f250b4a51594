"""
Categorize Node - Writes classification results and closes out articles.

For each relevant article, the county/city/tag results (aligned by index
with relevant_articles) are linked in the join tables and the article is
flagged is_categorized. Each article is written in its own transaction,
so a failure leaves that article uncategorized for the next run without
affecting the others.

LangGraph Integration:
- Input: PipelineState with relevant_articles, county_results, city_results, tag_results
- Output: {"categorized_count": int}
"""

import structlog

from crenews.db.connection import get_db_pool
from crenews.db.repository import link_cities, link_counties, link_tags, mark_categorized
from crenews.graph.state import PipelineState
from crenews.vocabulary import OTHER_COUNTY

logger = structlog.get_logger()


def _result_at(results: list[list[str]], index: int, default: list[str]) -> list[str]:
    return results[index] if index < len(results) else default


async def categorize(state: PipelineState) -> dict:
    articles = state.get("relevant_articles", [])

    if not articles:
        return {"categorized_count": 0}

    county_results = state.get("county_results", [])
    city_results = state.get("city_results", [])
    tag_results = state.get("tag_results", [])

    pool = await get_db_pool()
    categorized = 0

    async with pool.acquire() as conn:
        for index, article in enumerate(articles):
            counties = _result_at(county_results, index, [OTHER_COUNTY])
            try:
                async with conn.transaction():
                    await link_counties(conn, article["id"], counties)
                    await link_cities(conn, article["id"], _result_at(city_results, index, []))
                    await link_tags(conn, article["id"], _result_at(tag_results, index, []))
                    await mark_categorized(conn, article["id"])
                categorized += 1
            except Exception as e:
                logger.error(
                    "Failed to categorize article",
                    article_id=article["id"],
                    error=str(e),
                    error_type=type(e).__name__,
                )

    logger.info("Categorization written", categorized=categorized, total=len(articles))

    return {"categorized_count": categorized}
