"""
Geography Node - Assigns counties and cities to relevant articles.

Counties come from a closed vocabulary. The classifier sometimes answers
with near-misses ("Miami-Dade County" instead of "Miami-Dade"), so its
output goes through validate_then_retry(): invalid names are dropped, and
only the affected articles are sent back once with the rejected names
spelled out. Whatever is still invalid after that becomes "Other".

Cities are free text and are taken as returned (trimmed, deduplicated).
The current counties are passed along as context so city answers stay
consistent with them.

LangGraph Integration:
- Input: PipelineState with relevant_articles
- Output: {"county_results": [[...]], "city_results": [[...]]}
"""

from collections.abc import Mapping, Sequence, Set
from functools import partial

import structlog
from pydantic import BaseModel, Field

from crenews.classifier import ClassificationService, get_classifier
from crenews.config import get_settings
from crenews.articles import ClassificationInput
from crenews.graph.state import PipelineState
from crenews.prompts import format_articles
from crenews.validation import validate_against_vocabulary, validate_then_retry
from crenews.vocabulary import COUNTY_VOCABULARY, OTHER_COUNTY

logger = structlog.get_logger()


# === Pydantic Schemas for structured output ===


class CountyAssignments(BaseModel):
    counties: list[list[str]] = Field(
        description="One list of county names per article, in order. "
        'Use ["Other"] for articles not specific to any listed county.'
    )


class CityAssignments(BaseModel):
    cities: list[list[str]] = Field(
        description="One list of city names per article, in order. Empty list if no city is mentioned."
    )


# === Prompt Templates ===

COUNTY_PROMPT = """You are a real estate news categorizer. For each article, determine which US counties it relates to.

Available counties: {counties}

For each article you will see:
- Title and description
- Previous county categorization (if any)
- A validator reason explaining why the previous categorization might be incorrect (if available)

You MUST use this context to improve the county categorization.

Articles:
{articles}

Return one list of county names per article, in order. Use "Other" for articles not specific to any particular county.

Example: [["Los Angeles"], ["Other"], ["San Francisco", "Alameda"]]
"""

COUNTY_RETRY_PROMPT = """You are a real estate news categorizer. For each article below, determine which US counties it relates to.

Available counties (you MUST use exact names from this list): {counties}

IMPORTANT: The previous attempt returned invalid county names: {rejected}. These are NOT valid. You must map these to the correct county names from the available list above.

Articles:
{articles}

Return one list of county names per article, in order. Use "Other" for articles not specific to any particular county.

CRITICAL: Only return county names that exactly match the available counties list. If unsure, use "Other".
"""

CITY_PROMPT = """You are a real estate news categorizer. For each article, identify specific US cities mentioned.

For each article you will see:
- Title and description
- Previous county and city categorization (if any)
- A validator reason explaining why the previous categorization might be incorrect (if available)

You MUST use this context to improve the city categorization.

Articles:
{articles}

Only include cities that are explicitly mentioned in the article. Use standard city names (e.g., "New York" not "NYC", "Los Angeles" not "LA").

Return one list of city names per article, in order. Leave the list empty if no specific city is mentioned.

Example: [["New York", "Brooklyn"], [], ["Los Angeles", "Santa Monica"]]
"""


def _vocabulary_list(vocabulary: Set[str]) -> str:
    return ", ".join(sorted(vocabulary))


async def classify_counties(
    articles: Sequence[ClassificationInput],
    classifier: ClassificationService | None,
    vocabulary: Set[str] = COUNTY_VOCABULARY,
    model: str | None = None,
) -> list[list[str]]:
    """
    Assign vocabulary counties to each article.

    Args:
        articles: Items with title, description and optional re-run context
        classifier: Classification service, or None if not configured
        vocabulary: Allowed county names (must contain "Other")
        model: Model name (defaults to settings.classifier_model)

    Returns:
        One non-empty list of vocabulary counties per article
    """
    if not articles:
        return []

    fallback = [[OTHER_COUNTY] for _ in articles]

    if classifier is None:
        logger.warning("Classifier unavailable, assigning Other to all articles")
        return fallback

    model = model or get_settings().classifier_model
    counties_list = _vocabulary_list(vocabulary)

    prompt = COUNTY_PROMPT.format(
        counties=counties_list,
        articles=format_articles(articles, include_context=True),
    )

    try:
        first: CountyAssignments = await classifier.classify(
            model, prompt, response_schema=CountyAssignments, operation="categorize-counties"
        )
    except Exception as e:
        logger.error("County classification failed", error=str(e), error_type=type(e).__name__)
        return fallback

    async def retry_invoker(flagged: list[ClassificationInput], rejected: list[str]) -> list[list[str]]:
        retry_prompt = COUNTY_RETRY_PROMPT.format(
            counties=counties_list,
            rejected=", ".join(rejected),
            articles=format_articles(flagged),
        )
        retry: CountyAssignments = await classifier.classify(
            model, retry_prompt, response_schema=CountyAssignments, operation="retry-county-categorization"
        )
        return retry.counties

    validator = partial(validate_against_vocabulary, vocabulary=vocabulary, fallback=OTHER_COUNTY)

    return await validate_then_retry(articles, first.counties, validator, retry_invoker)


def _clean_cities(values: Sequence[str] | None) -> list[str]:
    cities: list[str] = []
    for value in values or []:
        name = value.strip() if isinstance(value, str) else ""
        if name and name not in cities:
            cities.append(name)
    return cities


async def classify_cities(
    articles: Sequence[ClassificationInput],
    classifier: ClassificationService | None,
    model: str | None = None,
) -> list[list[str]]:
    """
    Extract mentioned cities for each article.

    No vocabulary and no retry. Any failure yields an empty list per article.
    """
    if not articles:
        return []

    if classifier is None:
        return [[] for _ in articles]

    prompt = CITY_PROMPT.format(articles=format_articles(articles, include_context=True))

    try:
        result: CityAssignments = await classifier.classify(
            model or get_settings().classifier_model,
            prompt,
            response_schema=CityAssignments,
            operation="categorize-cities",
        )
    except Exception as e:
        logger.error("City classification failed", error=str(e), error_type=type(e).__name__)
        return [[] for _ in articles]

    raw = list(result.cities)
    return [_clean_cities(raw[i]) if i < len(raw) else [] for i in range(len(articles))]


def to_classification_input(article: Mapping, counties: list[str] | None = None) -> ClassificationInput:
    item = ClassificationInput(title=article.get("title") or "", description=article.get("description"))
    if counties:
        item["current_counties"] = counties
    return item


async def geography(
    state: PipelineState,
    classifier: ClassificationService | None = None,
) -> dict:
    """
    LangGraph node: Classify counties, then cities, for relevant articles.

    Returns:
        Partial state update with county_results and city_results
    """
    articles = state.get("relevant_articles", [])

    logger.info("Starting geography classification", article_count=len(articles))

    if not articles:
        return {"county_results": [], "city_results": []}

    settings = get_settings()
    classifier = classifier or get_classifier(settings)

    inputs = [to_classification_input(article) for article in articles]
    counties = await classify_counties(inputs, classifier, model=settings.classifier_model)

    # Cities see the freshly assigned counties as context
    city_inputs = [to_classification_input(article, c) for article, c in zip(articles, counties)]
    cities = await classify_cities(city_inputs, classifier, model=settings.classifier_model)

    logger.info(
        "Geography classification complete",
        article_count=len(articles),
        other_count=sum(1 for c in counties if c == [OTHER_COUNTY]),
    )

    return {"county_results": counties, "city_results": cities}
