"""Check-else-compute wrapper pairing an embedding producer with a cache."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from src.embedcache import EmbeddingCache
from src.embedcache.entry import Vector, to_vector
from src.embedcache.log import get_logger

from .inflight import InFlightRegistry
from .producer import EmbeddingProducer

logger = get_logger("embedder")

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class EmbeddedDocument:
    """A document paired with its embedding."""

    text: str
    embedding: Vector
    metadata: Optional[Mapping[str, Any]] = None


class CachedEmbedder:
    """Serve embeddings from `EmbeddingCache`, computing misses with ``producer``.

    The cache itself is not thread-safe, so every cache call made here happens
    under one lock. Producer calls run outside the lock, and concurrent requests
    for the same text share a single computation through `InFlightRegistry`.
    """

    def __init__(
        self,
        producer: EmbeddingProducer,
        cache: Optional[EmbeddingCache] = None,
        batch_size: int = 32,
        max_workers: Optional[int] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        self.producer = producer
        self.cache = cache if cache is not None else EmbeddingCache()
        self.batch_size = batch_size
        self.max_workers = max_workers or batch_size
        self._lock = threading.Lock()
        self._inflight: InFlightRegistry[Vector] = InFlightRegistry()

    def embed_query(self, text: str) -> Vector:
        """Return the embedding for ``text``, computing it at most once per key."""
        vector, _ = self._embed_one(text)
        return vector

    embed = embed_query

    def embed_documents(
        self,
        texts: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Vector]:
        """Embed ``texts`` in parallel batches, preserving input order.

        ``on_progress(done, total)`` fires after each vector this call computed
        itself; cache hits and shared in-flight results do not count.
        """
        total = len(texts)
        computed = 0
        progress_lock = threading.Lock()
        vectors: List[Vector] = []

        def run(text: str) -> Vector:
            nonlocal computed
            vector, fresh = self._embed_one(text)
            if fresh and on_progress is not None:
                with progress_lock:
                    computed += 1
                    on_progress(computed, total)
            return vector

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for start in range(0, total, self.batch_size):
                batch = texts[start : start + self.batch_size]
                vectors.extend(pool.map(run, batch))
        return vectors

    def embed_documents_with_metadata(
        self,
        documents: Sequence[Mapping[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[EmbeddedDocument]:
        """Embed ``{"text": ..., "metadata": ...}`` records."""
        texts = [str(doc["text"]) for doc in documents]
        vectors = self.embed_documents(texts, on_progress=on_progress)
        return [
            EmbeddedDocument(text=text, embedding=vector, metadata=doc.get("metadata"))
            for text, vector, doc in zip(texts, vectors, documents)
        ]

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            report = self.cache.get_stats()
        return {
            "size": report.size,
            "max_size": report.max_size,
            "hits": report.hits,
            "misses": report.misses,
            "sets": report.sets,
            "evictions": report.evictions,
            "hit_rate": report.hit_rate,
            "in_flight": len(self._inflight),
        }

    def _embed_one(self, text: str) -> Tuple[Vector, bool]:
        """Return ``(vector, computed_here)``."""
        with self._lock:
            cached = self.cache.get(text)
            if cached is not None:
                return cached, False
            key = self.cache.key_for(text)
            future, is_owner = self._inflight.claim(key)

        if not is_owner:
            return list(future.result()), False

        try:
            vector = to_vector(self.producer(text))
            with self._lock:
                self.cache.set(text, vector)
        except Exception as exc:
            logger.warning("Embedding failed for key %s: %s", key[:16], exc)
            self._inflight.fail(key, exc)
            raise
        self._inflight.resolve(key, vector)
        return list(vector), True


__all__ = ["CachedEmbedder", "EmbeddedDocument", "ProgressCallback"]
