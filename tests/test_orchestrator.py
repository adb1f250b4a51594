"""
Tests for the graph orchestrator.

Key testing strategies:
1. Test graph creation and compilation
2. Test end-to-end pipeline flow with mocked nodes
3. Test run ID generation and run_date handling
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from crenews.graph.orchestrator import (
    create_graph,
    generate_run_id,
    get_graph,
    run_crenews,
    run_pipeline,
)

NODE_NAMES = [
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


class TestCreateGraph:
    def test_creates_valid_graph(self):
        graph = create_graph()

        assert graph is not None

    def test_graph_has_all_nodes(self):
        graph = create_graph()

        for name in NODE_NAMES:
            assert name in graph.nodes


class TestGetGraph:
    def test_returns_same_graph(self):
        """Should return the same cached graph instance."""
        import crenews.graph.orchestrator as orchestrator

        orchestrator._cached_graph = None

        graph1 = get_graph()
        graph2 = get_graph()

        assert graph1 is graph2
        assert orchestrator._cached_graph is graph1


def test_generate_run_id_format():
    run_id = generate_run_id()

    assert run_id.startswith("run_")
    assert run_id != generate_run_id()


class TestRunPipeline:
    @pytest.fixture
    def mock_graph(self):
        """Create a mock graph that returns a valid final state."""
        graph = MagicMock()
        graph.ainvoke = AsyncMock(
            return_value={
                "publication_payload": {
                    "meta": {"run_id": "test-run"},
                    "stats": {"articles_saved": 4, "collection_errors": 1},
                    "errors": [],
                }
            }
        )
        return graph

    async def test_returns_publication_payload(self, mock_graph):
        result = await run_pipeline(mock_graph)

        assert result["meta"] == {"run_id": "test-run"}
        assert result["stats"]["articles_saved"] == 4

    async def test_passes_initial_state(self, mock_graph):
        run_date = datetime(2024, 12, 27, 17, 0, tzinfo=UTC)

        await run_pipeline(mock_graph, run_id="test-123", run_date=run_date)

        initial_state = mock_graph.ainvoke.call_args[0][0]
        assert initial_state == {"run_id": "test-123", "run_date": run_date}

    async def test_defaults_run_id_and_date(self, mock_graph):
        await run_pipeline(mock_graph)

        initial_state = mock_graph.ainvoke.call_args[0][0]
        assert initial_state["run_id"].startswith("run_")
        assert initial_state["run_date"].tzinfo is not None

    async def test_handles_empty_payload(self, mock_graph):
        mock_graph.ainvoke = AsyncMock(return_value={})

        assert await run_pipeline(mock_graph) == {}


async def test_run_crenews_uses_cached_graph():
    import crenews.graph.orchestrator as orchestrator

    mock_graph = MagicMock()
    mock_graph.ainvoke = AsyncMock(return_value={"publication_payload": {"stats": {}}})
    run_date = datetime(2024, 12, 27, 17, 0, tzinfo=UTC)

    with patch.object(orchestrator, "get_graph", return_value=mock_graph):
        result = await run_crenews(run_date=run_date)

    assert result == {"stats": {}}
    assert mock_graph.ainvoke.call_args[0][0]["run_date"] == run_date


class TestIntegrationWithMockedNodes:
    """
    Runs the real graph with every node replaced by a mock, so the flow
    is exercised without feeds, the classification service or a database.
    """

    async def test_full_pipeline_flow(self):
        article = {
            "id": 1,
            "link": "https://example.com/a",
            "title": "Warehouse sells",
            "description": "A deal",
            "source_id": "globest",
            "published_at": datetime.now(UTC),
        }
        order = []

        def node(name, update):
            async def run(state, *args, **kwargs):
                order.append(name)
                return update

            return AsyncMock(side_effect=run)

        mocks = {
            "rss_collector": node(
                "rss_collector", {"raw_articles": [dict(article)], "collection_errors": []}
            ),
            "store": node("store", {"saved_count": 1}),
            "relevance": node(
                "relevance",
                {"relevant_articles": [article], "pending_count": 1, "irrelevant_count": 0},
            ),
            "geography": node(
                "geography", {"county_results": [["Orange"]], "city_results": [["Irvine"]]}
            ),
            "tags": node("tags", {"tag_results": [["industrial"]]}),
            "compose": node("compose", {"rewritten_count": 0}),
            "categorize": node("categorize", {"categorized_count": 1}),
            "newsletter": node("newsletter", {"newsletters_sent": 2, "newsletters_failed": 0}),
            "publish": node(
                "publish",
                {"publication_payload": {"meta": {"run_id": "test"}, "stats": {"articles_saved": 1}}},
            ),
        }

        with (
            patch("crenews.graph.orchestrator.rss_collector", mocks["rss_collector"]),
            patch("crenews.graph.orchestrator.store", mocks["store"]),
            patch("crenews.graph.orchestrator.relevance", mocks["relevance"]),
            patch("crenews.graph.orchestrator.geography", mocks["geography"]),
            patch("crenews.graph.orchestrator.tags", mocks["tags"]),
            patch("crenews.graph.orchestrator.compose", mocks["compose"]),
            patch("crenews.graph.orchestrator.categorize", mocks["categorize"]),
            patch("crenews.graph.orchestrator.newsletter", mocks["newsletter"]),
            patch("crenews.graph.orchestrator.publish", mocks["publish"]),
        ):
            graph = create_graph()
            result = await run_pipeline(graph, run_id="test")

        assert result == {"meta": {"run_id": "test"}, "stats": {"articles_saved": 1}}
        assert order == NODE_NAMES

        # Later stages see what earlier ones wrote
        publish_state = mocks["publish"].call_args[0][0]
        assert publish_state["saved_count"] == 1
        assert publish_state["county_results"] == [["Orange"]]
        assert publish_state["newsletters_sent"] == 2
