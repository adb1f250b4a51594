"""
Interest-based ranking of digest sections.

A subscriber can describe what they care about in free text. When they
have, each section's candidates (already newest first) are handed to the
classifier, which picks the best matches by index with a one-line
rationale. Without interests, without a classifier, or when the call
fails, the section is simply the newest articles up to its limit.
"""

from collections.abc import Sequence
from datetime import datetime

import structlog
from pydantic import BaseModel, Field

from crenews.articles import DigestArticle
from crenews.classifier import ClassificationService
from crenews.config import get_settings

logger = structlog.get_logger()

# Candidates shown to the classifier per section
MAX_CANDIDATES = 50


class InterestPick(BaseModel):
    index: int = Field(description="0-based index of the article in the list")
    rationale: str = Field(default="", description="Why the article matches the interests")


class InterestPicks(BaseModel):
    """Schema for the interest ranking's structured output."""

    picks: list[InterestPick] = Field(description="Selected articles, best match first")


NATIONAL_PROMPT = """You are a real estate news curator. Select the {limit} most relevant articles for a subscriber with these interests:

"{interests}"

Articles:
{articles}

Return up to {limit} picks, best match first. Each pick has "index" (0-based article index) and "rationale" (a brief explanation of why the article is relevant).
Prioritize articles from LinkedIn sources when multiple articles cover similar topics.
"""

LOCAL_PROMPT = """You are a real estate news curator. Select the {limit} most relevant LOCAL articles for a subscriber with these interests:

"{interests}"

Subscriber's preferred counties: {counties}
Subscriber's preferred cities: {cities}

Articles:
{articles}

Return up to {limit} picks, best match first. Each pick has "index" (0-based article index) and "rationale" (a brief explanation of why the article is relevant).
Select the articles that best match:
1. The subscriber's geographic preferences (counties/cities)
2. The subscriber's stated interests
"""


def _joined(values: Sequence[str]) -> str:
    return ", ".join(values) if values else "none"


def format_candidates(articles: Sequence[DigestArticle]) -> str:
    blocks = []
    for index, article in enumerate(articles):
        published = article["published_at"]
        date = published.strftime("%Y-%m-%d") if isinstance(published, datetime) else str(published)
        blocks.append(
            "\n".join(
                [
                    f"{index}. Title: {article['title']}",
                    f"   Description: {article.get('description') or 'No description'}",
                    f"   Source: {article['source_name']}",
                    f"   Date: {date}",
                    f"   Tags: {_joined(article['tags'])}",
                    f"   Counties: {_joined(article['counties'])}",
                    f"   Cities: {_joined(article['cities'])}",
                ]
            )
        )
    return "\n\n".join(blocks)


def apply_picks(
    articles: Sequence[DigestArticle],
    picks: Sequence[InterestPick],
    limit: int,
) -> list[DigestArticle]:
    """
    Map picks back onto articles.

    Out-of-range and repeated indices are ignored. A non-empty rationale
    is attached to the returned copy of the article.
    """
    selected: list[DigestArticle] = []
    seen: set[int] = set()

    for pick in picks:
        if len(selected) >= limit:
            break
        if not 0 <= pick.index < len(articles) or pick.index in seen:
            continue
        seen.add(pick.index)

        article = dict(articles[pick.index])
        rationale = pick.rationale.strip()
        if rationale:
            article["rationale"] = rationale
        selected.append(article)

    return selected


async def rank_by_interests(
    articles: Sequence[DigestArticle],
    interests: str,
    limit: int,
    classifier: ClassificationService | None,
    section: str = "national",
    counties: Sequence[str] = (),
    cities: Sequence[str] = (),
    model: str | None = None,
) -> list[DigestArticle]:
    """
    Pick up to limit articles for a subscriber's stated interests.

    Args:
        articles: Section candidates, newest first
        interests: Display form of the subscriber's interests ("" for none)
        limit: Maximum articles to return
        classifier: Classification service, or None if not configured
        section: "national" or "local"; local also weighs counties/cities
        model: Model name (defaults to settings.classifier_model)

    Returns:
        The picked articles in ranked order, or the newest limit articles
        when ranking is skipped or produces nothing usable
    """
    newest = list(articles[:limit])

    if not articles or not interests.strip() or classifier is None:
        return newest

    candidates = list(articles[:MAX_CANDIDATES])
    operation = f"filter-{section}-articles"

    if section == "local":
        prompt = LOCAL_PROMPT.format(
            limit=limit,
            interests=interests,
            counties=_joined(counties) if counties else "all",
            cities=_joined(cities) if cities else "all",
            articles=format_candidates(candidates),
        )
    else:
        prompt = NATIONAL_PROMPT.format(
            limit=limit,
            interests=interests,
            articles=format_candidates(candidates),
        )

    try:
        result: InterestPicks = await classifier.classify(
            model or get_settings().classifier_model,
            prompt,
            response_schema=InterestPicks,
            operation=operation,
        )
    except Exception as e:
        logger.error(
            "Interest ranking failed, using newest articles",
            section=section,
            error=str(e),
            error_type=type(e).__name__,
        )
        return newest

    selected = apply_picks(candidates, result.picks, limit)
    if not selected:
        logger.warning("Interest ranking picked nothing usable, using newest articles", section=section)
        return newest

    logger.info("Interest ranking applied", section=section, selected=len(selected), candidates=len(candidates))
    return selected
