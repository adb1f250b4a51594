"""
Tags Node - Assigns topical tags from TAG_CATEGORIES.

One batched call per run. The output is not validated against the
taxonomy; on failure every article gets no tags.

LangGraph Integration:
- Input: PipelineState with relevant_articles
- Output: {"tag_results": [[...]]}
"""

from collections.abc import Mapping, Sequence

import structlog
from pydantic import BaseModel, Field

from crenews.classifier import ClassificationService, get_classifier
from crenews.config import get_settings
from crenews.graph.state import PipelineState
from crenews.prompts import format_articles
from crenews.vocabulary import TAG_CATEGORIES

logger = structlog.get_logger()


class TagAssignments(BaseModel):
    tags: list[list[str]] = Field(description="One list of tags per article, in order.")


TAG_PROMPT = """You are a real estate news categorizer. For each article, assign relevant tags from these categories:

{categories}

Articles:
{articles}

Return one list of tags per article, in order. Choose the most relevant tags from the categories above.

Example: [["multi-family", "development"], ["financing", "investment"], ["office"]]
"""


def format_categories(categories: Mapping[str, str] = TAG_CATEGORIES) -> str:
    return "\n".join(f"{name}: {description}" for name, description in categories.items())


async def classify_tags(
    articles: Sequence[Mapping],
    classifier: ClassificationService | None,
    model: str | None = None,
) -> list[list[str]]:
    """Return one tag list per article; [] for every article on failure."""
    if not articles:
        return []

    if classifier is None:
        return [[] for _ in articles]

    prompt = TAG_PROMPT.format(categories=format_categories(), articles=format_articles(articles))

    try:
        result: TagAssignments = await classifier.classify(
            model or get_settings().classifier_model,
            prompt,
            response_schema=TagAssignments,
            operation="categorize-tags",
        )
    except Exception as e:
        logger.error("Tag classification failed", error=str(e), error_type=type(e).__name__)
        return [[] for _ in articles]

    raw = list(result.tags)
    return [list(raw[i]) if i < len(raw) else [] for i in range(len(articles))]


async def tags(
    state: PipelineState,
    classifier: ClassificationService | None = None,
) -> dict:
    """LangGraph node: Tag relevant articles."""
    articles = state.get("relevant_articles", [])

    logger.info("Starting tag classification", article_count=len(articles))

    if not articles:
        return {"tag_results": []}

    settings = get_settings()
    classifier = classifier or get_classifier(settings)

    results = await classify_tags(articles, classifier, model=settings.classifier_model)

    logger.info("Tag classification complete", tagged=sum(1 for t in results if t))

    return {"tag_results": results}
