"""Shared interface for cache serialization formats."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Sequence, Tuple

from ..entry import CacheEntry
from ..errors import DimensionMismatchError
from ..stats import CacheStats

SnapshotItem = Tuple[str, CacheEntry]


@dataclass(frozen=True)
class CacheSnapshot:
    """Detached copy of a cache's persisted state.

    ``entries`` is ordered from least to most recently used so a codec that
    preserves order also preserves eviction order. ``retain_text`` is None when
    the format does not record the setting.
    """

    max_size: int
    retain_text: Optional[bool]
    entries: Sequence[SnapshotItem]
    stats: CacheStats = field(default_factory=CacheStats)

    @property
    def dimensions(self) -> Optional[int]:
        """Shared vector length, or None for an empty snapshot."""
        return ensure_uniform_dimensions(self.entries)


class Codec(Protocol):
    """Converts a `CacheSnapshot` to bytes and back."""

    name: str

    def encode(self, snapshot: CacheSnapshot) -> bytes:
        """Serialize ``snapshot``."""
        ...

    def decode(self, data: bytes) -> CacheSnapshot:
        """Parse ``data``, raising DeserializationError when it is invalid."""
        ...


def ensure_uniform_dimensions(entries: Sequence[SnapshotItem]) -> Optional[int]:
    """Return the common vector length or raise DimensionMismatchError."""
    expected: Optional[int] = None
    for key, entry in entries:
        if expected is None:
            expected = entry.dimensions
        elif entry.dimensions != expected:
            raise DimensionMismatchError(expected, entry.dimensions, key=key)
    return expected


CODECS: Dict[str, Codec] = {}


def register_codec(codec: Codec) -> Codec:
    CODECS[codec.name] = codec
    return codec


def get_codec(name: str) -> Codec:
    """Return the codec registered under ``name``."""
    try:
        return CODECS[name]
    except KeyError as exc:
        raise ValueError(f"Unknown cache format '{name}'. Available: {sorted(CODECS)}") from exc
