"""
LangGraph nodes for the CRE news pipeline.

Each node is an async function that:
- Takes PipelineState as input
- Returns a dict with partial state updates
- Handles errors gracefully (logs but doesn't crash)

Nodes:
- rss_collector: Fetch and normalize feeds
- store: Save new articles (dedup on link)
- relevance: Drop articles outside the CRE domain
- geography: Assign counties and cities
- tags: Assign topical tags
- compose: Rewrite untitled articles
- categorize: Write assignments and mark articles categorized
- newsletter: Send digests to due subscribers
- publish: Format the run summary
"""

from crenews.graph.nodes.categorize import categorize
from crenews.graph.nodes.compose import compose
from crenews.graph.nodes.geography import geography
from crenews.graph.nodes.newsletter import newsletter
from crenews.graph.nodes.publish import publish
from crenews.graph.nodes.relevance import relevance
from crenews.graph.nodes.rss_collector import rss_collector
from crenews.graph.nodes.store import store
from crenews.graph.nodes.tags import tags

__all__ = [
    "rss_collector",
    "store",
    "relevance",
    "geography",
    "tags",
    "compose",
    "categorize",
    "newsletter",
    "publish",
]
