"""
Classification/generation service client.

Every AI-assisted stage (relevance, geography, tags, composition) goes
through a single primitive:

    result = await classifier.classify(model, prompt, response_schema=Schema)

With a pydantic response_schema the call uses Claude's structured output and
returns a validated instance of that schema. Without one it returns the
generated text.

Each call is wrapped in a bounded retry for transient failures (timeouts,
API errors, output that fails schema validation). When retries run out a
ClassificationError is raised and the calling stage applies its own safe
default.
"""

import asyncio
from typing import Any

import structlog
from langchain_anthropic import ChatAnthropic
from pydantic import BaseModel

from crenews.config import Settings, get_settings

logger = structlog.get_logger()


class ClassificationError(Exception):
    """Raised when the classification service fails after all retries."""

    def __init__(self, operation: str, attempts: int, cause: Exception | None = None):
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        message = f"{operation} failed after {attempts} attempt(s)"
        if cause is not None:
            message += f": {type(cause).__name__}: {cause}"
        super().__init__(message)


class ClassificationService:
    """
    Thin wrapper over ChatAnthropic with retry and per-model client caching.

    Args:
        api_key: Anthropic API key
        max_retries: Extra attempts after the first one fails
        timeout: Per-request timeout in seconds
        retry_delay: Base delay between attempts (multiplied by attempt number)
    """

    def __init__(
        self,
        api_key: str,
        max_retries: int = 2,
        timeout: float = 60.0,
        retry_delay: float = 0.5,
    ):
        self.api_key = api_key
        self.max_retries = max_retries
        self.timeout = timeout
        self.retry_delay = retry_delay
        self._clients: dict[str, ChatAnthropic] = {}

    def _client(self, model: str) -> ChatAnthropic:
        if model not in self._clients:
            self._clients[model] = ChatAnthropic(
                model=model,
                api_key=self.api_key,
                max_tokens=4096,
                timeout=self.timeout,
                max_retries=0,  # retries are handled in classify()
            )
        return self._clients[model]

    async def classify(
        self,
        model: str,
        prompt: str,
        response_schema: type[BaseModel] | None = None,
        operation: str = "classify",
    ) -> Any:
        """
        Run one request against the service.

        Args:
            model: Model name
            prompt: Full prompt text
            response_schema: Optional pydantic model describing the output shape
            operation: Short label used in logs and errors

        Returns:
            An instance of response_schema, or the stripped response text

        Raises:
            ClassificationError: If every attempt failed
        """
        log = logger.bind(operation=operation, model=model)
        llm = self._client(model)
        runnable = llm.with_structured_output(response_schema) if response_schema else llm

        attempts = self.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                result = await runnable.ainvoke(prompt)

                if response_schema is None:
                    result = _message_text(result)
                elif result is None:
                    raise ValueError("Service returned no structured output")

                log.debug("Classification call complete", attempt=attempt)
                return result

            except Exception as e:
                last_error = e
                if attempt < attempts - 1:
                    log.warning(
                        "Classification call failed, retrying",
                        attempt=attempt + 1,
                        error=str(e)[:200],
                        error_type=type(e).__name__,
                    )
                    await asyncio.sleep(self.retry_delay * (attempt + 1))

        log.error("Classification call failed after retries", attempts=attempts, error=str(last_error))
        raise ClassificationError(operation, attempts, last_error)


def _message_text(message: Any) -> str:
    """Extract plain text from a chat message (content may be str or blocks)."""
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, dict):
                parts.append(block.get("text", ""))
            else:
                parts.append(str(block))
        content = "".join(parts)
    return str(content or "").strip()


# Cache the service (one per process, like the DB pool)
_cached_classifier: ClassificationService | None = None


def get_classifier(settings: Settings | None = None) -> ClassificationService | None:
    """
    Get the shared classification service, or None if it is not configured.

    Stages treat None as "service unavailable" and fall back to their safe
    defaults, so a missing API key never blocks ingestion.
    """
    global _cached_classifier

    settings = settings or get_settings()
    if not settings.classifier_configured:
        logger.warning("ANTHROPIC_API_KEY not set, classification stages will use defaults")
        return None

    if _cached_classifier is None:
        _cached_classifier = ClassificationService(
            api_key=settings.anthropic_api_key.get_secret_value(),
            max_retries=settings.classifier_max_retries,
            timeout=settings.classifier_timeout_seconds,
        )

    return _cached_classifier
