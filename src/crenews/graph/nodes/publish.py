"""
Publish Node - Builds the run summary and records the run.

This is the final node before END in the LangGraph. The payload is what
POST /run and `crenews run` return.

LangGraph Integration:
- Input: PipelineState with the counters set by every stage
- Output: {"publication_payload": {...}}
"""

from datetime import datetime, timezone
from typing import Any

import structlog

from crenews.db.connection import get_db_pool
from crenews.db.repository import record_pipeline_run
from crenews.graph.state import PipelineState

logger = structlog.get_logger()


def generate_summary_stats(state: PipelineState) -> dict[str, Any]:
    """Collect the per-stage counters into one dict."""
    return {
        "articles_collected": len(state.get("raw_articles", [])),
        "articles_saved": state.get("saved_count", 0),
        "articles_pending": state.get("pending_count", 0),
        "articles_irrelevant": state.get("irrelevant_count", 0),
        "articles_rewritten": state.get("rewritten_count", 0),
        "articles_categorized": state.get("categorized_count", 0),
        "newsletters_sent": state.get("newsletters_sent", 0),
        "newsletters_failed": state.get("newsletters_failed", 0),
        "collection_errors": len(state.get("collection_errors", [])),
    }


def count_by_source(state: PipelineState) -> dict[str, int]:
    counts: dict[str, int] = {}
    for article in state.get("raw_articles", []):
        counts[article["source_id"]] = counts.get(article["source_id"], 0) + 1
    return counts


async def publish(state: PipelineState) -> dict:
    """
    LangGraph node: Format the run payload and record it in pipeline_runs.

    Recording is best effort; a failure is logged and the payload is still returned.
    """
    run_id = state.get("run_id", "unknown")
    run_date = state.get("run_date", datetime.now(timezone.utc))
    stats = generate_summary_stats(state)

    payload = {
        "meta": {
            "run_id": run_id,
            "run_date": run_date.isoformat(),
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "version": "1.0",
        },
        "stats": stats,
        "source_distribution": count_by_source(state),
        "errors": [
            {
                "source_type": e["source_type"],
                "source_id": e["source_id"],
                "error": e["error_message"],
            }
            for e in state.get("collection_errors", [])
        ],
    }

    try:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await record_pipeline_run(conn, run_id, run_date, stats)
    except Exception as e:
        logger.error("Failed to record pipeline run", run_id=run_id, error=str(e))

    logger.info("Publication payload created", run_id=run_id, **stats)

    return {"publication_payload": payload}
