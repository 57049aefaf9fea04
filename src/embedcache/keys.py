"""Deterministic fingerprints for cache keys."""

from __future__ import annotations

import hashlib

from .config import DEFAULT_HASH_ALGORITHM

CacheKey = str


def hash_text(text: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> CacheKey:
    """Return the hex digest of ``text`` encoded as UTF-8.

    The digest length depends only on ``algorithm``, so keys stay compact no
    matter how long the input document is. Surrogate code points that cannot be
    encoded strictly are passed through with ``surrogatepass``.
    """
    digest = hashlib.new(algorithm)
    digest.update(text.encode("utf-8", errors="surrogatepass"))
    return digest.hexdigest()


__all__ = ["CacheKey", "hash_text"]
