"""
Tests for county and city classification.

The classification service is an AsyncMock; each test scripts what the
service answers for the first call and the targeted retry.
"""

from unittest.mock import patch

import pytest

from crenews.classifier import ClassificationError
from crenews.graph.nodes.geography import (
    CityAssignments,
    CountyAssignments,
    classify_cities,
    classify_counties,
    geography,
)
from crenews.vocabulary import COUNTY_VOCABULARY, OTHER_COUNTY


def make_input(title: str, description: str | None = None, **context) -> dict:
    return {"title": title, "description": description, **context}


SUNSET_GARDENS = make_input(
    "Sunset Gardens apartments sell for $40M",
    "The 200-unit complex near Miami changed hands this week.",
)


class TestVocabulary:
    def test_contains_other_and_known_counties(self):
        assert OTHER_COUNTY in COUNTY_VOCABULARY
        assert "Miami-Dade" in COUNTY_VOCABULARY
        assert "Los Angeles" in COUNTY_VOCABULARY
        assert "Prince George's" in COUNTY_VOCABULARY

    def test_suffixed_names_are_not_in_vocabulary(self):
        assert "Miami-Dade County" not in COUNTY_VOCABULARY


class TestClassifyCounties:
    async def test_sunset_gardens_is_corrected_by_targeted_retry(self, classifier):
        """'Miami-Dade County' is rejected, the retry names it, and 'Miami-Dade' is accepted."""
        classifier.classify.side_effect = [
            CountyAssignments(counties=[["Miami-Dade County"]]),
            CountyAssignments(counties=[["Miami-Dade"]]),
        ]

        result = await classify_counties([SUNSET_GARDENS], classifier, model="test-model")

        assert result == [["Miami-Dade"]]
        assert classifier.classify.await_count == 2

        retry_prompt = classifier.classify.await_args_list[1].args[1]
        assert "Miami-Dade County" in retry_prompt
        assert "Sunset Gardens" in retry_prompt

    async def test_only_flagged_articles_are_retried(self, classifier):
        articles = [
            make_input("LA office deal"),
            make_input("Sunset Gardens sale"),
            make_input("Irvine warehouse"),
        ]
        classifier.classify.side_effect = [
            CountyAssignments(counties=[["Los Angeles"], ["Miami-Dade County"], ["Orange"]]),
            CountyAssignments(counties=[["Miami-Dade"]]),
        ]

        result = await classify_counties(articles, classifier, model="test-model")

        assert result == [["Los Angeles"], ["Miami-Dade"], ["Orange"]]
        retry_prompt = classifier.classify.await_args_list[1].args[1]
        assert "Sunset Gardens sale" in retry_prompt
        assert "LA office deal" not in retry_prompt
        assert "Irvine warehouse" not in retry_prompt

    async def test_no_retry_when_all_valid(self, classifier):
        classifier.classify.return_value = CountyAssignments(counties=[["Los Angeles"], ["Other"]])

        result = await classify_counties(
            [make_input("a"), make_input("b")], classifier, model="test-model"
        )

        assert result == [["Los Angeles"], ["Other"]]
        assert classifier.classify.await_count == 1

    async def test_still_invalid_after_retry_becomes_other(self, classifier):
        classifier.classify.side_effect = [
            CountyAssignments(counties=[["Dade County"]]),
            CountyAssignments(counties=[["Dade"]]),
        ]

        result = await classify_counties([SUNSET_GARDENS], classifier, model="test-model")

        assert result == [[OTHER_COUNTY]]

    async def test_failed_retry_keeps_interim_values(self, classifier):
        classifier.classify.side_effect = [
            CountyAssignments(counties=[["Los Angeles", "LA"]]),
            ClassificationError("retry-county-categorization", 3),
        ]

        result = await classify_counties([make_input("LA deal")], classifier, model="test-model")

        assert result == [["Los Angeles"]]

    async def test_first_call_failure_degrades_to_other(self, classifier):
        classifier.classify.side_effect = ClassificationError("categorize-counties", 3)

        result = await classify_counties(
            [make_input("a"), make_input("b")], classifier, model="test-model"
        )

        assert result == [[OTHER_COUNTY], [OTHER_COUNTY]]

    async def test_short_output_padded_with_other(self, classifier):
        classifier.classify.return_value = CountyAssignments(counties=[["Orange"]])

        result = await classify_counties(
            [make_input("a"), make_input("b")], classifier, model="test-model"
        )

        assert result == [["Orange"], [OTHER_COUNTY]]
        assert classifier.classify.await_count == 1

    async def test_unconfigured_classifier(self):
        result = await classify_counties([make_input("a")], None)
        assert result == [[OTHER_COUNTY]]

    async def test_empty_batch(self, classifier):
        assert await classify_counties([], classifier) == []
        classifier.classify.assert_not_called()

    async def test_prompt_includes_rerun_context(self, classifier):
        classifier.classify.return_value = CountyAssignments(counties=[["Alameda"]])
        article = make_input(
            "Oakland tower",
            current_counties=["San Francisco"],
            reason="The project is in Oakland, not SF",
        )

        await classify_counties([article], classifier, model="test-model")

        prompt = classifier.classify.await_args.args[1]
        assert "Previous Counties: San Francisco" in prompt
        assert "Validator Reason: The project is in Oakland, not SF" in prompt

    @pytest.mark.parametrize(
        "answer",
        [
            [["Made Up County"]],
            [["Los Angeles", "Narnia"], []],
            [],
        ],
    )
    async def test_results_always_within_vocabulary(self, classifier, answer):
        classifier.classify.return_value = CountyAssignments(counties=answer)

        result = await classify_counties(
            [make_input("a"), make_input("b")], classifier, model="test-model"
        )

        assert len(result) == 2
        for counties in result:
            assert counties
            assert set(counties) <= COUNTY_VOCABULARY


class TestClassifyCities:
    async def test_cities_are_cleaned(self, classifier):
        classifier.classify.return_value = CityAssignments(
            cities=[[" Santa Monica ", "Santa Monica", ""], []]
        )

        result = await classify_cities([make_input("a"), make_input("b")], classifier, model="m")

        assert result == [["Santa Monica"], []]

    async def test_short_output_padded_with_empty(self, classifier):
        classifier.classify.return_value = CityAssignments(cities=[["Oakland"]])

        result = await classify_cities([make_input("a"), make_input("b")], classifier, model="m")

        assert result == [["Oakland"], []]

    async def test_failure_gives_empty_lists(self, classifier):
        classifier.classify.side_effect = ClassificationError("categorize-cities", 3)

        result = await classify_cities([make_input("a"), make_input("b")], classifier, model="m")

        assert result == [[], []]

    async def test_counties_passed_as_context(self, classifier):
        classifier.classify.return_value = CityAssignments(cities=[["Miami"]])

        await classify_cities(
            [make_input("Sunset Gardens", current_counties=["Miami-Dade"])], classifier, model="m"
        )

        assert "Previous Counties: Miami-Dade" in classifier.classify.await_args.args[1]


class TestGeographyNode:
    async def test_no_articles(self):
        assert await geography({"relevant_articles": []}) == {"county_results": [], "city_results": []}

    async def test_counties_then_cities(self, classifier):
        classifier.classify.side_effect = [
            CountyAssignments(counties=[["Miami-Dade County"]]),
            CountyAssignments(counties=[["Miami-Dade"]]),
            CityAssignments(cities=[["Miami"]]),
        ]
        state = {
            "relevant_articles": [
                {"id": 7, "title": SUNSET_GARDENS["title"], "description": SUNSET_GARDENS["description"]}
            ]
        }

        result = await geography(state, classifier=classifier)

        assert result == {"county_results": [["Miami-Dade"]], "city_results": [["Miami"]]}
        city_prompt = classifier.classify.await_args_list[2].args[1]
        assert "Previous Counties: Miami-Dade" in city_prompt

    async def test_unconfigured_service_uses_defaults(self):
        state = {"relevant_articles": [{"id": 1, "title": "a", "description": None}]}

        with patch("crenews.graph.nodes.geography.get_classifier", return_value=None):
            result = await geography(state)

        assert result == {"county_results": [[OTHER_COUNTY]], "city_results": [[]]}
