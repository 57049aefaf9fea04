"""Serialization formats for persisting an embedding cache."""

from .base import CODECS, CacheSnapshot, Codec, ensure_uniform_dimensions, get_codec
from .binary_codec import BinaryCodec
from .json_codec import JsonCodec

__all__ = [
    "CODECS",
    "BinaryCodec",
    "CacheSnapshot",
    "Codec",
    "JsonCodec",
    "ensure_uniform_dimensions",
    "get_codec",
]
