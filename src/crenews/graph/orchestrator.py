"""
LangGraph Orchestrator - Wires all nodes into a complete pipeline.

Pipeline Flow:
    START
      ↓
    RSS Collector
      ↓
    Store            (dedup on link)
      ↓
    Relevance        (drops off-topic articles)
      ↓
    Geography        (counties with targeted retry, then cities)
      ↓
    Tags
      ↓
    Compose          (titles for untitled posts)
      ↓
    Categorize       (writes assignments)
      ↓
    Newsletter       (due subscribers only)
      ↓
    Publish
      ↓
    END

Every stage works on what the store holds, not only on what this run
collected: articles left uncategorized by an earlier failed run are picked
up by the next one.

Usage:
    from crenews.graph.orchestrator import run_crenews

    result = await run_crenews()
"""

import uuid
from datetime import datetime, timezone

import structlog
from langgraph.graph import END, START, StateGraph

from crenews.graph.nodes import (
    categorize,
    compose,
    geography,
    newsletter,
    publish,
    relevance,
    rss_collector,
    store,
    tags,
)
from crenews.graph.state import PipelineState

logger = structlog.get_logger()


def create_graph() -> StateGraph:
    """
    Create and compile the pipeline graph.

    Returns:
        Compiled StateGraph ready for execution
    """
    logger.info("Creating pipeline graph")

    builder = StateGraph(PipelineState)

    builder.add_node("rss_collector", rss_collector)
    builder.add_node("store", store)
    builder.add_node("relevance", relevance)
    builder.add_node("geography", geography)
    builder.add_node("tags", tags)
    builder.add_node("compose", compose)
    builder.add_node("categorize", categorize)
    builder.add_node("newsletter", newsletter)
    builder.add_node("publish", publish)

    # Strictly sequential: each stage reads what the previous one wrote
    builder.add_edge(START, "rss_collector")
    builder.add_edge("rss_collector", "store")
    builder.add_edge("store", "relevance")
    builder.add_edge("relevance", "geography")
    builder.add_edge("geography", "tags")
    builder.add_edge("tags", "compose")
    builder.add_edge("compose", "categorize")
    builder.add_edge("categorize", "newsletter")
    builder.add_edge("newsletter", "publish")
    builder.add_edge("publish", END)

    graph = builder.compile()

    logger.info("Graph compiled successfully")
    return graph


def generate_run_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"run_{timestamp}_{uuid.uuid4().hex[:8]}"


async def run_pipeline(
    graph: StateGraph,
    run_id: str | None = None,
    run_date: datetime | None = None,
) -> dict:
    """
    Execute the pipeline.

    Args:
        graph: Compiled StateGraph from create_graph()
        run_id: Optional unique ID for this run (auto-generated if None)
        run_date: Time the run is scheduled for (defaults to now, UTC).
            Newsletter slots are matched against this time.

    Returns:
        The publication_payload from the final state
    """
    run_id = run_id or generate_run_id()
    run_date = run_date or datetime.now(timezone.utc)

    logger.info("Starting pipeline run", run_id=run_id, run_date=run_date.isoformat())

    initial_state: PipelineState = {
        "run_id": run_id,
        "run_date": run_date,
    }

    final_state = await graph.ainvoke(initial_state)

    payload = final_state.get("publication_payload", {})
    stats = payload.get("stats", {})

    logger.info(
        "Pipeline run complete",
        run_id=run_id,
        articles_saved=stats.get("articles_saved", 0),
        articles_categorized=stats.get("articles_categorized", 0),
        newsletters_sent=stats.get("newsletters_sent", 0),
        errors=stats.get("collection_errors", 0),
    )

    return payload


# Cache the compiled graph (expensive to create repeatedly)
_cached_graph: StateGraph | None = None


def get_graph() -> StateGraph:
    """Get or create the compiled graph (cached)."""
    global _cached_graph

    if _cached_graph is None:
        _cached_graph = create_graph()

    return _cached_graph


async def run_crenews(run_date: datetime | None = None) -> dict:
    """
    High-level function to run the full pipeline once.

    Example:
        result = await run_crenews()
        print(f"Saved {result['stats']['articles_saved']} new articles")
    """
    graph = get_graph()
    return await run_pipeline(graph, run_date=run_date)
