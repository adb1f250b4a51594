"""
LangGraph pipeline for the CRE news pipeline.

This package contains:
- state.py: State schemas (PipelineState, CollectionError)
- nodes/: Individual pipeline nodes
- orchestrator.py: Graph wiring and execution

Usage:
    from crenews.graph import run_crenews

    result = await run_crenews()
"""

from crenews.articles import CanonicalArticle, DigestArticle, StoredArticle
from crenews.graph.orchestrator import create_graph, get_graph, run_crenews, run_pipeline
from crenews.graph.state import CollectionError, PipelineState

__all__ = [
    # Orchestration
    "create_graph",
    "get_graph",
    "run_crenews",
    "run_pipeline",
    # State types
    "PipelineState",
    "CanonicalArticle",
    "StoredArticle",
    "DigestArticle",
    "CollectionError",
]
