"""Hit/miss bookkeeping for a single cache instance."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict


def format_hit_rate(hits: int, misses: int) -> str:
    """Format ``hits / (hits + misses)`` as a two-decimal percentage."""
    total = hits + misses
    if total == 0:
        return "0.00%"
    return f"{hits / total * 100:.2f}%"


@dataclass
class CacheStats:
    """Counters scoped to one cache lifetime."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> str:
        return format_hit_rate(self.hits, self.misses)

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.evictions = 0

    def copy(self) -> "CacheStats":
        return CacheStats(**asdict(self))

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class StatsReport:
    """Read-only view combining counters with the cache's size."""

    size: int
    max_size: int
    hits: int
    misses: int
    sets: int
    evictions: int

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> str:
        return format_hit_rate(self.hits, self.misses)

    @classmethod
    def from_stats(cls, stats: CacheStats, size: int, max_size: int) -> "StatsReport":
        return cls(
            size=size,
            max_size=max_size,
            hits=stats.hits,
            misses=stats.misses,
            sets=stats.sets,
            evictions=stats.evictions,
        )


__all__ = ["CacheStats", "StatsReport", "format_hit_rate"]
