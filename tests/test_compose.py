"""Tests for newsletter titles and article rewrites."""

from unittest.mock import patch

import pytest

from crenews.classifier import ClassificationError
from crenews.db.repository import UPDATE_ARTICLE_TEXT_SQL
from crenews.graph.nodes.compose import (
    DEFAULT_NEWSLETTER_TITLE,
    GeneratedDescriptions,
    GeneratedTitles,
    compose,
    generate_batch_title,
    rewrite_articles,
)

ARTICLES = [
    {"title": "San Jose tower secures funding", "description": "A $300M construction loan closed."},
    {"title": "Presidio apartments approved", "description": None},
    {"title": "Oakland office vacancy climbs", "description": "Vacancy hit 30%."},
    {"title": "Peninsula life science slows", "description": ""},
    {"title": "Fifth article is not used", "description": "Ignored."},
]


class TestGenerateBatchTitle:
    async def test_uses_top_four_articles(self, classifier):
        classifier.classify.return_value = "San Jose Tower Funded, Presidio Apartments, Oakland Vacancy"

        title = await generate_batch_title(ARTICLES, classifier, model="m")

        assert title == "San Jose Tower Funded, Presidio Apartments, Oakland Vacancy"
        prompt = classifier.classify.await_args.args[1]
        assert "4. Peninsula life science slows" in prompt
        assert "Fifth article" not in prompt
        # Plain-text generation, no schema
        assert classifier.classify.await_args.kwargs.get("response_schema") is None

    async def test_strips_quotes(self, classifier):
        classifier.classify.return_value = '"Big Week In Bay Area CRE"'

        assert await generate_batch_title(ARTICLES, classifier, model="m") == "Big Week In Bay Area CRE"

    @pytest.mark.parametrize("answer", ["", "   ", '""'])
    async def test_empty_output_falls_back(self, classifier, answer):
        classifier.classify.return_value = answer

        assert await generate_batch_title(ARTICLES, classifier, model="m") == DEFAULT_NEWSLETTER_TITLE

    async def test_failure_falls_back(self, classifier):
        classifier.classify.side_effect = ClassificationError("generate-newsletter-title", 3)

        assert await generate_batch_title(ARTICLES, classifier, model="m") == DEFAULT_NEWSLETTER_TITLE

    async def test_no_classifier_or_articles(self, classifier):
        assert await generate_batch_title(ARTICLES, None) == DEFAULT_NEWSLETTER_TITLE
        assert await generate_batch_title([], classifier) == DEFAULT_NEWSLETTER_TITLE


class TestRewriteArticles:
    async def test_generated_text_used(self, classifier):
        articles = ARTICLES[:2]
        classifier.classify.side_effect = [
            GeneratedTitles(titles=["Title A", "Title B"]),
            GeneratedDescriptions(descriptions=["Desc A", "Desc B"]),
        ]

        titles, descriptions = await rewrite_articles(articles, classifier, model="m")

        assert titles == ["Title A", "Title B"]
        assert descriptions == ["Desc A", "Desc B"]

    async def test_malformed_output_passes_originals_through(self, classifier):
        """Missing or blank generated items fall back to the original text."""
        articles = ARTICLES[:3]
        classifier.classify.side_effect = [
            GeneratedTitles(titles=["New A", "  "]),
            GeneratedDescriptions(descriptions=[]),
        ]

        titles, descriptions = await rewrite_articles(articles, classifier, model="m")

        assert titles == ["New A", ARTICLES[1]["title"], ARTICLES[2]["title"]]
        assert descriptions == [ARTICLES[0]["description"], "", ARTICLES[2]["description"]]

    async def test_one_call_failing_only_affects_its_field(self, classifier):
        articles = ARTICLES[:1]
        classifier.classify.side_effect = [
            ClassificationError("generate-article-titles", 3),
            GeneratedDescriptions(descriptions=["Fresh description"]),
        ]

        titles, descriptions = await rewrite_articles(articles, classifier, model="m")

        assert titles == [ARTICLES[0]["title"]]
        assert descriptions == ["Fresh description"]

    async def test_total_failure_echoes_input(self, classifier):
        classifier.classify.side_effect = ClassificationError("generate", 3)

        titles, descriptions = await rewrite_articles(ARTICLES, classifier, model="m")

        assert titles == [a["title"] for a in ARTICLES]
        assert descriptions == [a["description"] or "" for a in ARTICLES]


class TestComposeNode:
    async def test_nothing_untitled(self, classifier):
        state = {"relevant_articles": [{"id": 1, "title": "Has a title", "description": "x"}]}

        assert await compose(state, classifier=classifier) == {"rewritten_count": 0}
        classifier.classify.assert_not_called()

    async def test_rewrites_untitled_and_persists(self, classifier, mock_get_pool, mock_connection):
        state = {
            "relevant_articles": [
                {"id": 1, "title": "Keeps its title", "description": "a"},
                {"id": 2, "title": "", "description": "Excited to share we closed a 120-unit deal..."},
            ]
        }
        classifier.classify.side_effect = [
            GeneratedTitles(titles=["Firm Closes 120-Unit Multifamily Deal"]),
            GeneratedDescriptions(descriptions=["A 120-unit multifamily acquisition closed."]),
        ]

        with patch("crenews.graph.nodes.compose.get_db_pool", mock_get_pool):
            result = await compose(state, classifier=classifier)

        assert result["rewritten_count"] == 1
        assert result["relevant_articles"][0]["title"] == "Keeps its title"
        assert result["relevant_articles"][1]["title"] == "Firm Closes 120-Unit Multifamily Deal"
        mock_connection.execute.assert_awaited_once_with(
            UPDATE_ARTICLE_TEXT_SQL,
            2,
            "Firm Closes 120-Unit Multifamily Deal",
            "A 120-unit multifamily acquisition closed.",
        )

    async def test_failed_generation_writes_nothing(self, classifier, mock_get_pool, mock_connection):
        state = {"relevant_articles": [{"id": 2, "title": "", "description": "post"}]}
        classifier.classify.side_effect = ClassificationError("generate", 3)

        with patch("crenews.graph.nodes.compose.get_db_pool", mock_get_pool):
            result = await compose(state, classifier=classifier)

        assert result["rewritten_count"] == 0
        mock_connection.execute.assert_not_called()
