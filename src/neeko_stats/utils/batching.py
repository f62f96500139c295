"""Batching helpers for bulk inserts."""

from typing import Generator, Sequence, TypeVar

T = TypeVar("T")


def batch_iterator(items: Sequence[T], batch_size: int = 500) -> Generator[Sequence[T], None, None]:
    """Yield consecutive slices of at most ``batch_size`` items.

    Args:
        items: Records to split
        batch_size: Size of each batch (must be positive)

    Yields:
        Batches of items, in order
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    for i in range(0, len(items), batch_size):
        yield items[i : i + batch_size]
