"""In-memory record stored for every cached embedding."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

Vector = List[float]


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def to_vector(values: Iterable[float]) -> Vector:
    """Copy any float iterable (list, numpy array, torch tensor) into a plain list."""
    tolist = getattr(values, "tolist", None)
    if callable(tolist):
        raw = tolist()
        if isinstance(raw, list):
            return [float(value) for value in raw]
    return [float(value) for value in values]


@dataclass
class CacheEntry:
    """Mutable cache record.

    ``text`` is non-null only when the owning cache retains original text.
    Timestamps are epoch milliseconds.
    """

    vector: Vector
    created_at: int
    last_accessed_at: int
    hit_count: int = 0
    text: Optional[str] = None

    @property
    def dimensions(self) -> int:
        return len(self.vector)

    def touch(self, now: int) -> None:
        """Record a cache hit."""
        self.hit_count += 1
        self.last_accessed_at = now


__all__ = ["CacheEntry", "Vector", "now_ms", "to_vector"]
