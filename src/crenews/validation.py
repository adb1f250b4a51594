"""
Validate-then-targeted-retry for classifier output.

The classification service can return values outside a closed vocabulary.
Rather than re-running the whole batch, only the offending items are sent
back, together with the values that were rejected, and the second answer
is validated with the same rules:

    validated = await validate_then_retry(batch, raw, validator, retry_invoker)

There is exactly one retry pass. Anything still invalid after it keeps the
validator's fallback value.
"""

from collections.abc import Awaitable, Callable, Sequence, Set
from dataclasses import dataclass, field
from typing import TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class RejectedEntry:
    """An item whose classifier output contained out-of-vocabulary values."""

    index: int
    rejected: list[str]


@dataclass
class ValidationResult:
    """Validated values (aligned with the batch) plus the items needing a retry."""

    values: list[list[str]]
    rejected: list[RejectedEntry] = field(default_factory=list)

    @property
    def rejected_values(self) -> list[str]:
        """All rejected values, deduplicated in first-seen order."""
        seen: dict[str, None] = {}
        for entry in self.rejected:
            for value in entry.rejected:
                seen.setdefault(value, None)
        return list(seen)


Validator = Callable[[Sequence[Sequence[str]] | None, int], ValidationResult]
RetryInvoker = Callable[[list[T], list[str]], Awaitable[Sequence[Sequence[str]]]]


def validate_against_vocabulary(
    raw: Sequence[Sequence[str]] | None,
    size: int,
    vocabulary: Set[str],
    fallback: str,
) -> ValidationResult:
    """
    Filter each item's values against a closed vocabulary.

    Args:
        raw: Classifier output, one list per item (may be short or None)
        size: Number of items in the batch; output is always this long
        vocabulary: Allowed values
        fallback: Value used when an item has no valid values left

    Returns:
        ValidationResult whose values all belong to the vocabulary
    """
    raw = list(raw or [])
    values: list[list[str]] = []
    rejected: list[RejectedEntry] = []

    for index in range(size):
        # Missing trailing entries get the fallback without a retry
        if index >= len(raw):
            values.append([fallback])
            continue

        valid: list[str] = []
        invalid: list[str] = []
        for value in raw[index] or []:
            if value in vocabulary:
                if value not in valid:
                    valid.append(value)
            else:
                invalid.append(value)

        if invalid:
            rejected.append(RejectedEntry(index=index, rejected=invalid))

        values.append(valid or [fallback])

    return ValidationResult(values=values, rejected=rejected)


async def validate_then_retry(
    batch: Sequence[T],
    raw: Sequence[Sequence[str]] | None,
    validator: Validator,
    retry_invoker: RetryInvoker,
) -> list[list[str]]:
    """
    Validate raw output and re-ask once for the items that failed.

    Args:
        batch: The original items, aligned with raw
        raw: First classifier answer
        validator: validator(raw, size) -> ValidationResult
        retry_invoker: retry_invoker(flagged_items, rejected_values) -> raw answer
            for just the flagged items, in order

    Returns:
        One validated list per item in batch
    """
    first = validator(raw, len(batch))

    if not first.rejected:
        return first.values

    flagged = [batch[entry.index] for entry in first.rejected]
    rejected_values = first.rejected_values

    logger.info(
        "Retrying items with out-of-vocabulary values",
        flagged_count=len(flagged),
        rejected_values=rejected_values,
    )

    try:
        retry_raw = await retry_invoker(flagged, rejected_values)
    except Exception as e:
        # Interim fallback values from the first pass stand
        logger.error("Targeted retry failed", error=str(e), error_type=type(e).__name__)
        return first.values

    second = validator(retry_raw, len(flagged))

    final = list(first.values)
    for position, entry in enumerate(first.rejected):
        final[entry.index] = second.values[position]

    logger.info(
        "Targeted retry complete",
        updated=len(flagged),
        still_invalid=len(second.rejected),
    )

    return final
