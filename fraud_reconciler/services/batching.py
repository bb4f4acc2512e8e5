"""Split card lists into bounded groups."""

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive groups of `size`; the last may be shorter."""
    if size <= 0:
        raise ValueError(f"Group size must be positive, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]
