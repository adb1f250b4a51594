"""
Ordered fallback chains.

A chain is a sequence of candidate producers evaluated in order until one
yields a non-empty value. Producers are plain functions of a single input,
which keeps every step testable on its own.
"""

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

Producer = Callable[[T], str | None]


def first_non_empty(
    producers: Iterable[Producer],
    value: T,
    transform: Callable[[str], str | None] | None = None,
) -> str | None:
    """
    Return the first non-empty result of producers applied to value.

    If transform is given it is applied to each candidate before the
    emptiness check, so a candidate rejected by the transform (e.g. an
    unsafe URL) lets the chain continue.
    """
    for producer in producers:
        candidate = producer(value)
        if candidate and transform is not None:
            candidate = transform(candidate)
        if candidate and candidate.strip():
            return candidate.strip()
    return None
