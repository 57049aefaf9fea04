"""Embedding producers and the cache-aware calling layer around them."""

from .cached import CachedEmbedder, EmbeddedDocument
from .inflight import InFlightRegistry
from .producer import EmbeddingProducer, TransformerEmbedder
from .registry import EmbedderSpec, get_spec, list_available_embedders
from .sentence import pool_embeddings

__all__ = [
    "CachedEmbedder",
    "EmbeddedDocument",
    "EmbedderSpec",
    "EmbeddingProducer",
    "InFlightRegistry",
    "TransformerEmbedder",
    "get_spec",
    "list_available_embedders",
    "pool_embeddings",
]
