"""Batch helpers for resolver calls."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import TypeVar

from .consts import DEFAULT_BATCH_SIZE

T = TypeVar("T")


def iter_batches(items: Sequence[T], batch_size: int = DEFAULT_BATCH_SIZE) -> Iterator[list[T]]:
    """Yield consecutive slices of at most ``batch_size`` items."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, received: {batch_size}")
    for start in range(0, len(items), batch_size):
        yield list(items[start : start + batch_size])


async def execute_in_batches(
    items: Sequence[T],
    callback: Callable[[list[T]], Awaitable[None]],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> None:
    """Await ``callback`` once per batch, sequentially and in order."""
    for batch in iter_batches(items, batch_size):
        await callback(batch)
