"""Tests for the relevance filter."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from crenews.classifier import ClassificationError
from crenews.db.repository import MARK_IRRELEVANT_SQL
from crenews.graph.nodes.relevance import (
    RelevanceVerdicts,
    check_relevance,
    normalize_length,
    relevance,
)


def make_row(article_id: int, title: str = "Article") -> dict:
    return {
        "id": article_id,
        "link": f"https://example.com/{article_id}",
        "title": title,
        "description": "Description",
        "source_id": "globest",
        "published_at": datetime(2024, 12, 23, tzinfo=timezone.utc),
    }


ARTICLES = [{"title": f"Article {i}", "description": None} for i in range(3)]


class TestNormalizeLength:
    def test_exact(self):
        assert normalize_length([True, False, True], 3) == [True, False, True]

    def test_short_output_padded_with_true(self):
        assert normalize_length([False], 3) == [False, True, True]

    def test_long_output_truncated(self):
        assert normalize_length([False, True, False, False], 2) == [False, True]


class TestCheckRelevance:
    async def test_verdicts_in_order(self, classifier):
        classifier.classify.return_value = RelevanceVerdicts(relevant=[True, False, True])

        result = await check_relevance(ARTICLES, classifier, model="m")

        assert result == [True, False, True]
        prompt = classifier.classify.await_args.args[1]
        assert "EXACTLY 3 boolean values" in prompt
        assert "0. Title: Article 0" in prompt

    async def test_length_is_normalized(self, classifier):
        classifier.classify.return_value = RelevanceVerdicts(relevant=[False])

        assert await check_relevance(ARTICLES, classifier, model="m") == [False, True, True]

    async def test_unconfigured_classifier_fails_open(self):
        assert await check_relevance(ARTICLES, None) == [True, True, True]

    @pytest.mark.parametrize(
        "error",
        [
            ClassificationError("check-article-relevance", 3),
            ValueError("Service returned no structured output"),
        ],
    )
    async def test_service_failure_fails_open(self, classifier, error):
        classifier.classify.side_effect = error

        assert await check_relevance(ARTICLES, classifier, model="m") == [True, True, True]

    def test_schema_rejects_non_boolean_output(self):
        with pytest.raises(ValidationError):
            RelevanceVerdicts(relevant=["maybe"])

    async def test_empty_batch(self, classifier):
        assert await check_relevance([], classifier) == []
        classifier.classify.assert_not_called()


class TestRelevanceNode:
    async def test_marks_irrelevant_and_passes_relevant_on(
        self, classifier, mock_get_pool, mock_connection
    ):
        mock_connection.fetch.return_value = [make_row(1), make_row(2), make_row(3)]
        classifier.classify.return_value = RelevanceVerdicts(relevant=[True, False, True])

        with patch("crenews.graph.nodes.relevance.get_db_pool", mock_get_pool):
            result = await relevance({}, classifier=classifier)

        assert [a["id"] for a in result["relevant_articles"]] == [1, 3]
        assert result["pending_count"] == 3
        assert result["irrelevant_count"] == 1
        mock_connection.execute.assert_awaited_once_with(MARK_IRRELEVANT_SQL, [2])

    async def test_nothing_pending(self, classifier, mock_get_pool, mock_connection):
        with patch("crenews.graph.nodes.relevance.get_db_pool", mock_get_pool):
            result = await relevance({}, classifier=classifier)

        assert result == {"relevant_articles": [], "pending_count": 0, "irrelevant_count": 0}
        classifier.classify.assert_not_called()

    async def test_unconfigured_service_keeps_everything(self, mock_get_pool, mock_connection):
        mock_connection.fetch.return_value = [make_row(1), make_row(2)]

        with (
            patch("crenews.graph.nodes.relevance.get_db_pool", mock_get_pool),
            patch("crenews.graph.nodes.relevance.get_classifier", return_value=None),
        ):
            result = await relevance({})

        assert len(result["relevant_articles"]) == 2
        mock_connection.execute.assert_not_called()

    async def test_no_connection_held_while_classifying(
        self, classifier, mock_get_pool, mock_pool, mock_connection
    ):
        mock_connection.fetch.return_value = [make_row(1), make_row(2)]
        held = []

        async def classify(*args, **kwargs):
            held.append(mock_pool.in_use)
            return RelevanceVerdicts(relevant=[False, True])

        classifier.classify.side_effect = classify

        with patch("crenews.graph.nodes.relevance.get_db_pool", mock_get_pool):
            result = await relevance({}, classifier=classifier)

        assert held == [0]
        assert result["irrelevant_count"] == 1
        mock_connection.execute.assert_awaited_once_with(MARK_IRRELEVANT_SQL, [1])
