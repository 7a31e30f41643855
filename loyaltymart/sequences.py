"""Small helpers over sequences."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TypeVar

S = TypeVar("S")
R = TypeVar("R")


def transform(source: Iterable[S], fn: Callable[[S], R]) -> list[R]:
    """Apply ``fn`` to every element and return the results as a list."""
    return [fn(item) for item in source]


def sort_by_time_desc(source: list[S], fn: Callable[[S], datetime]) -> None:
    """Sort ``source`` in place, latest time first."""
    source.sort(key=fn, reverse=True)