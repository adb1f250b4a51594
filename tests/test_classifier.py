"""Tests for the classification service client."""

from unittest.mock import AsyncMock, patch

import pytest
from langchain_core.messages import AIMessage
from pydantic import BaseModel

import crenews.classifier as classifier_module
from crenews.classifier import ClassificationError, ClassificationService, get_classifier
from crenews.config import Settings


class Verdicts(BaseModel):
    relevant: list[bool]


@pytest.fixture
def service():
    return ClassificationService(api_key="test-key", max_retries=2, retry_delay=0)


class TestClassify:
    async def test_structured_output(self, service):
        with patch("crenews.classifier.ChatAnthropic") as mock_claude:
            structured = mock_claude.return_value.with_structured_output.return_value
            structured.ainvoke = AsyncMock(return_value=Verdicts(relevant=[True]))

            result = await service.classify("model-a", "prompt", response_schema=Verdicts)

        assert result == Verdicts(relevant=[True])
        mock_claude.return_value.with_structured_output.assert_called_once_with(Verdicts)

    async def test_plain_text(self, service):
        with patch("crenews.classifier.ChatAnthropic") as mock_claude:
            mock_claude.return_value.ainvoke = AsyncMock(
                return_value=AIMessage(content="  Subject line  ")
            )

            result = await service.classify("model-a", "prompt")

        assert result == "Subject line"

    async def test_text_from_content_blocks(self, service):
        with patch("crenews.classifier.ChatAnthropic") as mock_claude:
            mock_claude.return_value.ainvoke = AsyncMock(
                return_value=AIMessage(content=[{"type": "text", "text": "Part one"}])
            )

            assert await service.classify("model-a", "prompt") == "Part one"

    async def test_transient_failure_is_retried(self, service):
        with patch("crenews.classifier.ChatAnthropic") as mock_claude:
            structured = mock_claude.return_value.with_structured_output.return_value
            structured.ainvoke = AsyncMock(
                side_effect=[TimeoutError("read timeout"), Verdicts(relevant=[False])]
            )

            result = await service.classify("model-a", "prompt", response_schema=Verdicts)

        assert result.relevant == [False]
        assert structured.ainvoke.await_count == 2

    async def test_none_structured_output_counts_as_failure(self, service):
        with patch("crenews.classifier.ChatAnthropic") as mock_claude:
            structured = mock_claude.return_value.with_structured_output.return_value
            structured.ainvoke = AsyncMock(side_effect=[None, Verdicts(relevant=[True])])

            result = await service.classify("model-a", "prompt", response_schema=Verdicts)

        assert result.relevant == [True]

    async def test_raises_after_retries(self, service):
        with patch("crenews.classifier.ChatAnthropic") as mock_claude:
            structured = mock_claude.return_value.with_structured_output.return_value
            structured.ainvoke = AsyncMock(side_effect=RuntimeError("overloaded"))

            with pytest.raises(ClassificationError) as exc_info:
                await service.classify(
                    "model-a", "prompt", response_schema=Verdicts, operation="check-relevance"
                )

        assert structured.ainvoke.await_count == 3
        assert exc_info.value.operation == "check-relevance"
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.cause, RuntimeError)

    async def test_client_cached_per_model(self, service):
        with patch("crenews.classifier.ChatAnthropic") as mock_claude:
            mock_claude.return_value.ainvoke = AsyncMock(return_value=AIMessage(content="x"))

            await service.classify("model-a", "p")
            await service.classify("model-a", "p")
            await service.classify("model-b", "p")

        assert mock_claude.call_count == 2


class TestGetClassifier:
    def test_none_when_unconfigured(self):
        assert get_classifier(Settings(anthropic_api_key=None)) is None

    def test_none_when_key_blank(self):
        assert get_classifier(Settings(anthropic_api_key="")) is None

    def test_cached_service(self, monkeypatch):
        monkeypatch.setattr(classifier_module, "_cached_classifier", None)
        settings = Settings(anthropic_api_key="sk-test", classifier_max_retries=1)

        first = get_classifier(settings)
        second = get_classifier(settings)

        assert isinstance(first, ClassificationService)
        assert first is second
        assert first.max_retries == 1


def test_error_message_includes_cause():
    error = ClassificationError("categorize-tags", 3, ValueError("bad json"))

    assert str(error) == "categorize-tags failed after 3 attempt(s): ValueError: bad json"
