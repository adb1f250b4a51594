"""
Compose Node - Newsletter titles and article rewrites.

Two generation helpers used around the digest:
- generate_batch_title(): a TLDR-style subject line from the top articles
- rewrite_articles(): clean titles and short descriptions for posts that
  arrive without a usable headline

Generation is never allowed to lose content. If a call fails, or returns
fewer or blank items, the original text is used for that article.

LangGraph Integration (node):
- Input: PipelineState with relevant_articles
- Output: {"relevant_articles": [...], "rewritten_count": int}
  Articles with a blank stored title get a generated title/description,
  which is also written back to the database.
"""

from collections.abc import Mapping, Sequence

import structlog
from pydantic import BaseModel, Field

from crenews.classifier import ClassificationService, get_classifier
from crenews.config import get_settings
from crenews.db.connection import get_db_pool
from crenews.db.repository import update_article_text
from crenews.graph.state import PipelineState

logger = structlog.get_logger()

DEFAULT_NEWSLETTER_TITLE = "CRE News"


class GeneratedTitles(BaseModel):
    titles: list[str] = Field(description="One title per post, in order, each under 80 characters.")


class GeneratedDescriptions(BaseModel):
    descriptions: list[str] = Field(
        description="One 1-2 sentence description per post, in order, each under 200 characters."
    )


BATCH_TITLE_PROMPT = """You are a newsletter editor for commercial real estate news. Based on the following top articles, create a newsletter subject line in the style of TLDR or similar news aggregators.

The format should be a comma-separated list of 3-4 concise headlines, each highlighting a key story. Keep each headline short (5-8 words max), engaging, and professional.

Articles:
{articles}

Examples of good formats:
- "San Jose Tower Secures Funding, Fight For Affordable Housing, New Presidio Apartments"
- "Palo Alto Office Market Rebounds, Peninsula Development Surge, Bay Area Rental Trends"

Return ONLY the subject line, no quotes or extra text.
"""

TITLES_PROMPT = """You are a real estate news editor. For each post, generate a clear, engaging title.

Posts:
{posts}

Titles should be:
- Clear and concise (under 80 characters)
- Professional and engaging
- Focused on the key real estate insight or news
- Free of clickbait or excessive punctuation
"""

DESCRIPTIONS_PROMPT = """You are a real estate news editor. For each post, generate a concise description.

Posts:
{posts}

Descriptions should be:
- 1-2 sentences summarizing the key points
- Professional and informative
- Under 200 characters
- Focused on the main real estate insight or impact
"""


def _format_headlines(articles: Sequence[Mapping]) -> str:
    lines = []
    for index, article in enumerate(articles, start=1):
        line = f"{index}. {article.get('title') or ''}"
        description = article.get("description")
        if description:
            line += f" - {description[:100]}..."
        lines.append(line)
    return "\n".join(lines)


def _format_posts(articles: Sequence[Mapping]) -> str:
    return "\n\n".join(
        f"{index}. Content: {article.get('description') or 'No content'}"
        for index, article in enumerate(articles)
    )


async def generate_batch_title(
    articles: Sequence[Mapping],
    classifier: ClassificationService | None,
    limit: int = 4,
    model: str | None = None,
) -> str:
    """
    Generate a newsletter subject line from the top articles.

    Returns:
        The headline, or DEFAULT_NEWSLETTER_TITLE on any failure
    """
    if not articles or classifier is None:
        return DEFAULT_NEWSLETTER_TITLE

    prompt = BATCH_TITLE_PROMPT.format(articles=_format_headlines(articles[:limit]))

    try:
        text = await classifier.classify(
            model or get_settings().composer_model,
            prompt,
            operation="generate-newsletter-title",
        )
    except Exception as e:
        logger.error("Newsletter title generation failed", error=str(e), error_type=type(e).__name__)
        return DEFAULT_NEWSLETTER_TITLE

    title = str(text or "").strip().strip('"').strip("'").strip()
    return title or DEFAULT_NEWSLETTER_TITLE


def _merge(generated: Sequence[str] | None, originals: list[str]) -> list[str]:
    """Take generated[i] when it is a non-blank string, else originals[i]."""
    generated = list(generated or [])
    merged = []
    for index, original in enumerate(originals):
        candidate = generated[index] if index < len(generated) else None
        if isinstance(candidate, str) and candidate.strip():
            merged.append(candidate.strip())
        else:
            merged.append(original)
    return merged


async def rewrite_articles(
    articles: Sequence[Mapping],
    classifier: ClassificationService | None,
    model: str | None = None,
) -> tuple[list[str], list[str]]:
    """
    Generate a title and a description for each article.

    Titles and descriptions are two independent calls; either one failing
    only affects its own field.

    Returns:
        (titles, descriptions), both aligned with articles
    """
    original_titles = [article.get("title") or "" for article in articles]
    original_descriptions = [article.get("description") or "" for article in articles]

    if not articles or classifier is None:
        return original_titles, original_descriptions

    model = model or get_settings().composer_model
    posts = _format_posts(articles)

    try:
        titles_result: GeneratedTitles = await classifier.classify(
            model,
            TITLES_PROMPT.format(posts=posts),
            response_schema=GeneratedTitles,
            operation="generate-article-titles",
        )
        titles = _merge(titles_result.titles, original_titles)
    except Exception as e:
        logger.error("Title generation failed", error=str(e), error_type=type(e).__name__)
        titles = original_titles

    try:
        descriptions_result: GeneratedDescriptions = await classifier.classify(
            model,
            DESCRIPTIONS_PROMPT.format(posts=posts),
            response_schema=GeneratedDescriptions,
            operation="generate-article-descriptions",
        )
        descriptions = _merge(descriptions_result.descriptions, original_descriptions)
    except Exception as e:
        logger.error("Description generation failed", error=str(e), error_type=type(e).__name__)
        descriptions = original_descriptions

    return titles, descriptions


async def compose(
    state: PipelineState,
    classifier: ClassificationService | None = None,
) -> dict:
    """
    LangGraph node: Give untitled articles a generated title and description.

    Returns:
        Partial state update with relevant_articles (updated copies) and rewritten_count
    """
    articles = state.get("relevant_articles", [])
    untitled = [i for i, article in enumerate(articles) if not (article.get("title") or "").strip()]

    if not untitled:
        return {"rewritten_count": 0}

    settings = get_settings()
    classifier = classifier or get_classifier(settings)

    logger.info("Rewriting untitled articles", count=len(untitled))

    targets = [articles[i] for i in untitled]
    titles, descriptions = await rewrite_articles(targets, classifier, model=settings.composer_model)

    updated = [dict(article) for article in articles]
    rewritten = 0

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        for index, title, description in zip(untitled, titles, descriptions):
            article = updated[index]
            if title == (article.get("title") or "") and description == (article.get("description") or ""):
                continue
            try:
                await update_article_text(conn, article["id"], title, description or None)
            except Exception as e:
                logger.error(
                    "Failed to save rewritten article",
                    article_id=article["id"],
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            article["title"] = title
            article["description"] = description or None
            rewritten += 1

    logger.info("Rewrite complete", rewritten=rewritten, untitled=len(untitled))

    return {"relevant_articles": updated, "rewritten_count": rewritten}
