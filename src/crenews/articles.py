"""
Article records shared by the collector, the store and the newsletter.

They live outside crenews.graph so crenews.db can use them without
importing the graph package.

1. CanonicalArticle - Feed entries normalized by the collector
2. StoredArticle - Rows loaded back from the articles table
3. ClassificationInput - What the classifiers see for each article
4. DigestArticle - Categorized articles as placed in a newsletter
"""

from datetime import datetime
from typing import NotRequired, TypedDict


class CanonicalArticle(TypedDict):
    """
    A feed entry after normalization.

    title and link are empty strings when the feed omits them; the
    optional fields are None when no fallback produced a value.
    """

    title: str
    link: str
    source_id: str
    published_at: datetime
    image_url: str | None
    description: str | None
    # Only written when the batch is saved as pre-categorized
    counties: NotRequired[list[str]]
    cities: NotRequired[list[str]]
    tags: NotRequired[list[str]]


class StoredArticle(TypedDict):
    """An article row as read back from the store."""

    id: int
    link: str
    title: str
    description: str | None
    source_id: str
    published_at: datetime


class ClassificationInput(TypedDict):
    """
    One article as presented to a classifier.

    The current_* fields and reason are only set for re-runs, where a
    reviewer has flagged the existing categorization as wrong.
    """

    title: str
    description: NotRequired[str | None]
    current_counties: NotRequired[list[str]]
    current_cities: NotRequired[list[str]]
    reason: NotRequired[str | None]


class DigestArticle(TypedDict):
    """A categorized article ready to be placed in a newsletter."""

    id: int
    title: str
    link: str
    description: str
    published_at: datetime
    source_name: str
    is_national: bool
    image_url: str | None
    counties: list[str]
    cities: list[str]
    tags: list[str]
    # Set when the article was picked for the subscriber's interests
    rationale: NotRequired[str]
