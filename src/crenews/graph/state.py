"""
LangGraph state schemas for the CRE news pipeline.

This module defines:
1. CollectionError - Errors during collection (non-fatal)
2. PipelineState - The main graph state passed between nodes

The article records the state carries are in crenews.articles.
"""

import operator
from datetime import datetime
from typing import Annotated, Literal, TypedDict

from crenews.articles import CanonicalArticle, StoredArticle


class CollectionError(TypedDict):
    """
    Non-fatal error during collection.

    One failing feed never aborts the batch; the error is logged and
    carried through to the run summary.
    """

    source_type: Literal["rss"]
    source_id: str
    error_type: str
    error_message: str
    timestamp: datetime


class PipelineState(TypedDict, total=False):
    """
    Main state for the pipeline graph.

    START -> rss_collector -> store -> relevance -> geography -> tags
          -> compose -> categorize -> newsletter -> publish -> END

    `total=False` means nodes return partial updates. The list fields of
    the classification stages are aligned by index with relevant_articles.
    """

    # === Input (set at pipeline start) ===
    run_id: str
    run_date: datetime

    # === Collection ===
    raw_articles: Annotated[list[CanonicalArticle], operator.add]
    collection_errors: Annotated[list[CollectionError], operator.add]

    # === Store ===
    saved_count: int

    # === Classification ===
    pending_count: int
    relevant_articles: list[StoredArticle]
    irrelevant_count: int
    county_results: list[list[str]]
    city_results: list[list[str]]
    tag_results: list[list[str]]
    rewritten_count: int
    categorized_count: int

    # === Newsletter ===
    newsletters_sent: int
    newsletters_failed: int

    # === Output ===
    publication_payload: dict
