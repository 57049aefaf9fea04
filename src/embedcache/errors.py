"""Exception taxonomy for the embedding cache."""

from __future__ import annotations

from typing import Optional


class CacheError(Exception):
    """Base class for every error raised by the embedding cache."""


class DeserializationError(CacheError, ValueError):
    """Raised when persisted cache content cannot be parsed or validated."""


class DimensionMismatchError(CacheError, ValueError):
    """Raised when vectors in one cache disagree on dimensionality."""

    def __init__(self, expected: int, actual: int, key: Optional[str] = None) -> None:
        self.expected = expected
        self.actual = actual
        self.key = key
        where = f" for key {key[:16]}..." if key else ""
        super().__init__(f"Expected vectors of dimension {expected}, got {actual}{where}.")


__all__ = ["CacheError", "DeserializationError", "DimensionMismatchError"]
