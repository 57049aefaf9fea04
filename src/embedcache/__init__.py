"""Bounded, persistable cache from input text to embedding vectors."""

from .codecs import BinaryCodec, CacheSnapshot, Codec, JsonCodec, get_codec
from .config import CacheConfig
from .entry import CacheEntry
from .errors import CacheError, DeserializationError, DimensionMismatchError
from .keys import CacheKey, hash_text
from .stats import CacheStats, StatsReport
from .store import EmbeddingCache, MemoryUsage, TopEntry, infer_format

__all__ = [
    "BinaryCodec",
    "CacheConfig",
    "CacheEntry",
    "CacheError",
    "CacheKey",
    "CacheSnapshot",
    "CacheStats",
    "Codec",
    "DeserializationError",
    "DimensionMismatchError",
    "EmbeddingCache",
    "JsonCodec",
    "MemoryUsage",
    "StatsReport",
    "TopEntry",
    "get_codec",
    "hash_text",
    "infer_format",
]
