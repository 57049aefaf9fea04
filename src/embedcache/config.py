"""Static defaults and runtime configuration for the embedding cache."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

# Defaults used when callers do not override them.
DEFAULT_MAX_SIZE = 10_000
DEFAULT_HASH_ALGORITHM = "sha256"
MIN_DIGEST_BITS = 128

# ---------------------------------------------------------------------------
# On-disk format identifiers.

JSON_FORMAT_VERSION = "1.0"
BINARY_FORMAT_VERSION = 1
BINARY_SUFFIXES = (".bin", ".ecb")


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for `EmbeddingCache`.

    Attributes
    ----------
    max_size:
        Maximum number of entries held in memory.
    retain_text:
        Keep the original input text next to each fingerprint. Off saves memory
        once the fingerprint already identifies the entry.
    hash_algorithm:
        Any ``hashlib`` algorithm with at least a 128-bit digest.
    dimensions:
        Optional fixed vector dimensionality checked on every ``set``.
    """

    max_size: int = DEFAULT_MAX_SIZE
    retain_text: bool = True
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    dimensions: Optional[int] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1.")
        if self.dimensions is not None and self.dimensions < 1:
            raise ValueError("dimensions must be positive when provided.")
        try:
            digest = hashlib.new(self.hash_algorithm)
        except ValueError as exc:
            raise ValueError(f"Unsupported hash algorithm '{self.hash_algorithm}'.") from exc
        if digest.digest_size == 0:
            # Variable-length digests (shake_*) report zero here.
            raise ValueError(f"Hash algorithm '{self.hash_algorithm}' has no fixed digest size.")
        if digest.digest_size * 8 < MIN_DIGEST_BITS:
            raise ValueError(
                f"Hash algorithm '{self.hash_algorithm}' yields {digest.digest_size * 8} bits; "
                f"at least {MIN_DIGEST_BITS} are required."
            )


__all__ = [
    "BINARY_FORMAT_VERSION",
    "BINARY_SUFFIXES",
    "CacheConfig",
    "DEFAULT_HASH_ALGORITHM",
    "DEFAULT_MAX_SIZE",
    "JSON_FORMAT_VERSION",
    "MIN_DIGEST_BITS",
]
