"""
Relevance Node - Filters out articles that are not about real estate.

This node:
1. Loads a batch of uncategorized articles (newest first)
2. Asks the classifier for one relevant/irrelevant verdict per article
3. Marks the rejected ones is_relevant=false, is_categorized=true so they
   are never reconsidered
4. Passes the relevant ones on to the classification stages

The filter fails open: if the classifier is missing, unreachable or
returns garbage, every article is kept. Losing a real article is worse
than letting an off-topic one through.

LangGraph Integration:
- Input: PipelineState
- Output: {"relevant_articles": [...], "pending_count": int, "irrelevant_count": int}
"""

from collections.abc import Mapping, Sequence

import structlog
from pydantic import BaseModel, Field

from crenews.classifier import ClassificationService, get_classifier
from crenews.config import get_settings
from crenews.db.connection import get_db_pool
from crenews.db.repository import list_uncategorized_articles, mark_irrelevant
from crenews.graph.state import PipelineState
from crenews.prompts import format_articles

logger = structlog.get_logger()


class RelevanceVerdicts(BaseModel):
    """Schema for the relevance filter's structured output."""

    relevant: list[bool] = Field(
        description="One boolean per article, in order. true = relevant to commercial/mid-market real estate."
    )


RELEVANCE_PROMPT = """You are a content filter for a mid-market real estate news aggregator. This platform focuses on:
- Commercial real estate (office, retail, industrial, hospitality)
- Multifamily residential properties (apartments, condos, townhomes)
- Real estate development, construction, and zoning
- Property investment, acquisitions, sales, and financing
- Real estate market trends, analysis, and data
- Government policy and regulations affecting real estate
- Infrastructure projects affecting property values

EXCLUDE articles about:
- General news or content unrelated to real estate

For each article below, determine if it's relevant to commercial/mid-market real estate.

CRITICAL: You must return EXACTLY {count} boolean values, one for each article in order (true = relevant, false = not relevant).

Articles:
{articles}
"""


def normalize_length(verdicts: Sequence[bool], size: int) -> list[bool]:
    """
    Force the verdict list to exactly size entries.

    Missing verdicts are padded with True; extra ones are dropped.
    """
    verdicts = [bool(v) for v in verdicts]
    if len(verdicts) < size:
        logger.warning("Relevance output too short, padding with True", got=len(verdicts), expected=size)
        return verdicts + [True] * (size - len(verdicts))
    if len(verdicts) > size:
        logger.warning("Relevance output too long, truncating", got=len(verdicts), expected=size)
        return verdicts[:size]
    return verdicts


async def check_relevance(
    articles: Sequence[Mapping],
    classifier: ClassificationService | None,
    model: str | None = None,
) -> list[bool]:
    """
    Decide for each article whether it belongs to the CRE domain.

    Args:
        articles: Items with title and description
        classifier: Classification service, or None if not configured
        model: Model name (defaults to settings.classifier_model)

    Returns:
        One boolean per article, same order
    """
    if not articles:
        return []

    if classifier is None:
        logger.warning("Classifier unavailable, treating all articles as relevant")
        return [True] * len(articles)

    prompt = RELEVANCE_PROMPT.format(count=len(articles), articles=format_articles(articles))

    try:
        result: RelevanceVerdicts = await classifier.classify(
            model or get_settings().classifier_model,
            prompt,
            response_schema=RelevanceVerdicts,
            operation="check-article-relevance",
        )
    except Exception as e:
        logger.error(
            "Relevance check failed, treating all articles as relevant",
            error=str(e),
            error_type=type(e).__name__,
        )
        return [True] * len(articles)

    return normalize_length(result.relevant, len(articles))


async def relevance(
    state: PipelineState,
    classifier: ClassificationService | None = None,
) -> dict:
    """
    LangGraph node: Load pending articles and drop the irrelevant ones.

    Args:
        state: Current graph state
        classifier: Optional service override (defaults to get_classifier())

    Returns:
        Partial state update with relevant_articles, pending_count, irrelevant_count
    """
    settings = get_settings()
    classifier = classifier or get_classifier(settings)

    pool = await get_db_pool()

    async with pool.acquire() as conn:
        pending = await list_uncategorized_articles(conn, limit=settings.categorize_batch_size)

    logger.info("Starting relevance check", pending_count=len(pending))

    if not pending:
        return {"relevant_articles": [], "pending_count": 0, "irrelevant_count": 0}

    # No connection is held while the classifier runs
    verdicts = await check_relevance(pending, classifier, model=settings.classifier_model)

    relevant_articles = [a for a, keep in zip(pending, verdicts) if keep]
    irrelevant_ids = [a["id"] for a, keep in zip(pending, verdicts) if not keep]

    if irrelevant_ids:
        async with pool.acquire() as conn:
            await mark_irrelevant(conn, irrelevant_ids)

    logger.info(
        "Relevance check complete",
        relevant=len(relevant_articles),
        irrelevant=len(irrelevant_ids),
    )

    return {
        "relevant_articles": relevant_articles,
        "pending_count": len(pending),
        "irrelevant_count": len(irrelevant_ids),
    }
