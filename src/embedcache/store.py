"""Bounded LRU store mapping input text to embedding vectors.

`EmbeddingCache` never computes embeddings. Callers look a text up with
`get`, compute on a miss, and hand the result back with `set`. Recency is kept
in an ``OrderedDict`` whose front is the least recently used key, so touching
an entry and evicting the oldest one are both O(1).

The cache performs no locking; see `src.embeddings.cached.CachedEmbedder` for
a caller that coordinates concurrent access.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .codecs import CacheSnapshot, get_codec
from .config import BINARY_SUFFIXES, CacheConfig
from .entry import CacheEntry, Vector, now_ms, to_vector
from .errors import DeserializationError, DimensionMismatchError
from .io import PathLike, read_bytes, write_atomic
from .keys import CacheKey, hash_text
from .log import get_logger
from .stats import CacheStats, StatsReport

logger = get_logger("store")

Clock = Callable[[], int]


@dataclass(frozen=True)
class TopEntry:
    """Summary row returned by `EmbeddingCache.top_entries`."""

    key: str
    text: str
    hits: int
    last_accessed_at: int


@dataclass(frozen=True)
class MemoryUsage:
    """Approximate payload size of the cached data."""

    size_bytes: int

    @property
    def kilobytes(self) -> float:
        return self.size_bytes / 1024

    @property
    def megabytes(self) -> float:
        return self.size_bytes / 1024 / 1024


def infer_format(path: PathLike) -> str:
    """Guess the on-disk format from the file suffix."""
    return "binary" if str(path).lower().endswith(BINARY_SUFFIXES) else "json"


class EmbeddingCache:
    """Fixed-capacity embedding cache with LRU eviction and persistence."""

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        clock: Clock = now_ms,
        **overrides: object,
    ) -> None:
        if config is not None and overrides:
            raise TypeError("Pass either a CacheConfig or keyword overrides, not both.")
        self.config = config or CacheConfig(**overrides)  # type: ignore[arg-type]
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self.stats = CacheStats()

    # ------------------------------------------------------------------
    # Settings

    @property
    def max_size(self) -> int:
        return self.config.max_size

    @property
    def retain_text(self) -> bool:
        return self.config.retain_text

    def key_for(self, text: str) -> CacheKey:
        """Fingerprint ``text`` with the configured algorithm."""
        return hash_text(text, self.config.hash_algorithm)

    # ------------------------------------------------------------------
    # Core operations

    def get(self, text: str) -> Optional[Vector]:
        """Return a copy of the cached vector for ``text`` or None on a miss."""
        key = self.key_for(text)
        entry = self._entries.get(key)
        if entry is None:
            self.stats.misses += 1
            return None

        entry.touch(self._clock())
        self._entries.move_to_end(key)
        self.stats.hits += 1
        return list(entry.vector)

    def set(self, text: str, vector: Iterable[float]) -> None:
        """Store ``vector`` for ``text``, evicting the LRU entry when full."""
        values = to_vector(vector)
        expected = self.config.dimensions
        if expected is not None and len(values) != expected:
            raise DimensionMismatchError(expected, len(values))

        key = self.key_for(text)
        now = self._clock()
        retained = text if self.retain_text else None

        entry = self._entries.get(key)
        if entry is not None:
            entry.vector = values
            entry.text = retained
            entry.last_accessed_at = now
            self._entries.move_to_end(key)
        else:
            while len(self._entries) >= self.max_size:
                self._evict_lru()
            self._entries[key] = CacheEntry(
                vector=values,
                created_at=now,
                last_accessed_at=now,
                text=retained,
            )

        self.stats.sets += 1

    def has(self, text: str) -> bool:
        """Membership test that leaves recency and stats untouched."""
        return self.key_for(text) in self._entries

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and self.has(text)

    def clear(self) -> None:
        """Drop every entry and zero the statistics."""
        self._entries.clear()
        self.stats.reset()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_lru(self) -> None:
        key, entry = self._entries.popitem(last=False)
        self.stats.evictions += 1
        logger.debug(
            "Evicted %s (hits=%d, last_accessed_at=%d)",
            key[:16],
            entry.hit_count,
            entry.last_accessed_at,
        )

    # ------------------------------------------------------------------
    # Introspection

    def keys(self) -> List[CacheKey]:
        """Keys ordered from least to most recently used."""
        return list(self._entries)

    def get_stats(self) -> StatsReport:
        return StatsReport.from_stats(self.stats, size=len(self._entries), max_size=self.max_size)

    def top_entries(self, limit: int = 10) -> List[TopEntry]:
        """Entries with the most hits first."""
        ranked = sorted(self._entries.items(), key=lambda item: item[1].hit_count, reverse=True)
        return [
            TopEntry(
                key=key,
                text=entry.text if entry.text is not None else key[:50],
                hits=entry.hit_count,
                last_accessed_at=entry.last_accessed_at,
            )
            for key, entry in ranked[: max(limit, 0)]
        ]

    def prune(self, min_hits: int = 1) -> int:
        """Remove entries hit fewer than ``min_hits`` times; return how many went."""
        cold = [key for key, entry in self._entries.items() if entry.hit_count < min_hits]
        for key in cold:
            del self._entries[key]
        if cold:
            logger.debug("Pruned %d entries below %d hits", len(cold), min_hits)
        return len(cold)

    def memory_usage(self) -> MemoryUsage:
        """Estimate key bytes, float32 vector bytes and fixed metadata overhead."""
        total = 0
        for key, entry in self._entries.items():
            total += len(key.encode("utf-8"))
            total += len(entry.vector) * 4
            total += 32
        return MemoryUsage(size_bytes=total)

    # ------------------------------------------------------------------
    # Persistence

    def snapshot(self) -> CacheSnapshot:
        """Copy the current state, LRU entry first."""
        items = [
            (
                key,
                CacheEntry(
                    vector=list(entry.vector),
                    created_at=entry.created_at,
                    last_accessed_at=entry.last_accessed_at,
                    hit_count=entry.hit_count,
                    text=entry.text,
                ),
            )
            for key, entry in self._entries.items()
        ]
        return CacheSnapshot(
            max_size=self.max_size,
            retain_text=self.retain_text,
            entries=items,
            stats=self.stats.copy(),
        )

    def restore(self, snapshot: CacheSnapshot) -> None:
        """Replace all in-memory state with ``snapshot``.

        Checks that need this cache's settings run before any state changes.
        """
        if len(snapshot.entries) > snapshot.max_size:
            raise DeserializationError(
                f"Snapshot holds {len(snapshot.entries)} entries but maxSize is {snapshot.max_size}."
            )
        expected = self.config.dimensions
        actual = snapshot.dimensions
        if expected is not None and actual is not None and actual != expected:
            raise DeserializationError(
                f"Cache file holds {actual}-dimensional vectors; this cache expects {expected}."
            )
        retain_text = self.retain_text if snapshot.retain_text is None else snapshot.retain_text
        config = CacheConfig(
            max_size=snapshot.max_size,
            retain_text=retain_text,
            hash_algorithm=self.config.hash_algorithm,
            dimensions=self.config.dimensions,
        )
        entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        for key, entry in snapshot.entries:
            if not retain_text:
                entry.text = None
            entries[key] = entry

        self.config = config
        self._entries = entries
        self.stats = snapshot.stats.copy()

    def save_to_disk(self, path: PathLike, fmt: Optional[str] = None) -> None:
        """Persist the cache; ``fmt`` defaults to the format implied by ``path``."""
        codec = get_codec(fmt or infer_format(path))
        payload = codec.encode(self.snapshot())
        write_atomic(path, payload)
        logger.info("Saved %d entries to %s (%s)", len(self._entries), path, codec.name)

    def load_from_disk(self, path: PathLike, fmt: Optional[str] = None) -> None:
        """Replace the cache with the file at ``path``.

        The file is decoded and validated in full before any state changes, so
        a DeserializationError leaves the cache exactly as it was.
        """
        codec = get_codec(fmt or infer_format(path))
        snapshot = codec.decode(read_bytes(path))
        self.restore(snapshot)
        logger.info("Loaded %d entries from %s (%s)", len(self._entries), path, codec.name)

    def save_to_disk_binary(self, path: PathLike) -> None:
        self.save_to_disk(path, fmt="binary")

    def load_from_disk_binary(self, path: PathLike) -> None:
        self.load_from_disk(path, fmt="binary")

    def __repr__(self) -> str:
        return f"EmbeddingCache(size={len(self._entries)}, max_size={self.max_size})"


__all__ = ["EmbeddingCache", "MemoryUsage", "TopEntry", "infer_format"]
