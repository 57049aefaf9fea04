"""Tests for pooling, producers, in-flight coordination, and CachedEmbedder."""

from __future__ import annotations

import threading
import time
from types import SimpleNamespace
from typing import Iterable, List

import pytest
import torch

from src.embedcache import EmbeddingCache
from src.embeddings import CachedEmbedder, InFlightRegistry, TransformerEmbedder, get_spec, pool_embeddings
from src.embeddings.producer import coerce_device
from src.embeddings.registry import EmbedderSpec


# ---------------------------------------------------------------------------
# Helper stubs


class DummyTokenizer:
    """Tokenizer stub that pads every text to four positions."""

    def __call__(self, texts: Iterable[str], **_: object) -> dict[str, torch.Tensor]:
        batch = list(texts)
        input_ids = torch.ones(len(batch), 4, dtype=torch.long)
        attention_mask = torch.tensor([[1, 1, 0, 0]] * len(batch))
        return {"input_ids": input_ids, "attention_mask": attention_mask}


class DummyEncoder:
    """Stand-in for a Hugging Face encoder returning fixed hidden states."""

    def __init__(self, hidden_size: int = 3) -> None:
        self.hidden_size = hidden_size
        self.device: torch.device | None = None
        self.calls = 0

    def to(self, *, device: torch.device) -> "DummyEncoder":
        self.device = device
        return self

    def eval(self) -> None:
        return None

    def __call__(self, input_ids: torch.Tensor, attention_mask: torch.Tensor, **_: object) -> SimpleNamespace:
        self.calls += 1
        batch, seq_len = input_ids.shape
        positions = torch.arange(seq_len, dtype=torch.float32).reshape(1, seq_len, 1)
        hidden = positions.expand(batch, seq_len, self.hidden_size).clone()
        return SimpleNamespace(last_hidden_state=hidden)


class CountingProducer:
    """Producer that records how often each text was embedded."""

    def __init__(self, delay: float = 0.0, fail_on: str | None = None) -> None:
        self.delay = delay
        self.fail_on = fail_on
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, text: str) -> List[float]:
        with self._lock:
            self.calls.append(text)
        if self.delay:
            time.sleep(self.delay)
        if text == self.fail_on:
            raise RuntimeError(f"cannot embed {text}")
        return [float(len(text)), 1.0]


def _spec(pooling: str = "mean", normalize: bool = False) -> EmbedderSpec:
    return EmbedderSpec(name="dummy", hf_id="dummy/encoder", dimensions=3, pooling=pooling, normalize=normalize)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Pooling


def test_pool_embeddings_mean_with_mask() -> None:
    hidden = torch.tensor([[[2.0, 0.0], [4.0, 2.0], [6.0, 4.0]]])
    mask = torch.tensor([[1.0, 1.0, 0.0]])
    pooled = pool_embeddings(hidden, attention_mask=mask, strategy="mean")
    assert torch.allclose(pooled, torch.tensor([[3.0, 1.0]]))


def test_pool_embeddings_cls_falls_back_per_row() -> None:
    hidden = torch.tensor(
        [
            [[1.0, 1.0], [2.0, 2.0], [3.0, 3.0]],
            [[4.0, 4.0], [5.0, 5.0], [6.0, 6.0]],
        ]
    )
    mask = torch.tensor([[0.0, 1.0, 1.0], [1.0, 1.0, 0.0]])
    pooled = pool_embeddings(hidden, attention_mask=mask, strategy="cls")
    assert torch.allclose(pooled, torch.tensor([[2.5, 2.5], [4.0, 4.0]]))


def test_pool_embeddings_normalizes() -> None:
    hidden = torch.tensor([[[3.0, 4.0]]])
    pooled = pool_embeddings(hidden, normalize=True)
    assert torch.allclose(pooled, torch.tensor([[0.6, 0.8]]))


def test_pool_embeddings_validates_inputs() -> None:
    with pytest.raises(ValueError):
        pool_embeddings(torch.randn(3, 4))
    with pytest.raises(ValueError):
        pool_embeddings(torch.randn(1, 3, 4), strategy="max")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        pool_embeddings(torch.randn(1, 3, 4), attention_mask=torch.ones(1, 2))


# ---------------------------------------------------------------------------
# Registry and transformer producer


def test_get_spec_known_and_unknown() -> None:
    assert get_spec("bge-small").dimensions == 384
    with pytest.raises(ValueError):
        get_spec("does-not-exist")  # type: ignore[arg-type]


def test_coerce_device_variants() -> None:
    assert coerce_device("cpu") == torch.device("cpu")
    assert coerce_device(1) == torch.device("cuda:1")
    with pytest.raises(ValueError):
        coerce_device(-1)


def test_transformer_embedder_pools_last_hidden_state() -> None:
    encoder = DummyEncoder()
    embedder = TransformerEmbedder(_spec(), model=encoder, tokenizer=DummyTokenizer())  # type: ignore[arg-type]

    vectors = embedder.embed_batch(["one", "two"])

    # Positions 0 and 1 are unmasked, so the mean is 0.5 everywhere.
    assert vectors == [[0.5, 0.5, 0.5], [0.5, 0.5, 0.5]]
    assert embedder("solo") == [0.5, 0.5, 0.5]
    assert encoder.device == torch.device("cpu")
    assert embedder.embed_batch([]) == []


def test_transformer_embedder_cls_and_normalize() -> None:
    embedder = TransformerEmbedder(
        _spec(pooling="cls", normalize=True), model=DummyEncoder(), tokenizer=DummyTokenizer()  # type: ignore[arg-type]
    )
    # CLS is position 0, a zero vector; normalizing leaves it at zero.
    assert embedder("x") == [0.0, 0.0, 0.0]


# ---------------------------------------------------------------------------
# In-flight registry


def test_inflight_registry_shares_future() -> None:
    registry: InFlightRegistry[int] = InFlightRegistry()
    owner_future, owner = registry.claim("k")
    waiter_future, waiter = registry.claim("k")

    assert owner and not waiter
    assert owner_future is waiter_future
    assert "k" in registry

    registry.resolve("k", 42)
    assert waiter_future.result() == 42
    assert "k" not in registry


def test_inflight_registry_failure_releases_key() -> None:
    registry: InFlightRegistry[int] = InFlightRegistry()
    future, _ = registry.claim("k")
    registry.fail("k", RuntimeError("boom"))

    with pytest.raises(RuntimeError):
        future.result()
    _, owner_again = registry.claim("k")
    assert owner_again


# ---------------------------------------------------------------------------
# CachedEmbedder


def test_embed_query_computes_once() -> None:
    producer = CountingProducer()
    embedder = CachedEmbedder(producer, cache=EmbeddingCache(max_size=10))

    first = embedder.embed_query("hello")
    second = embedder.embed_query("hello")

    assert first == second == [5.0, 1.0]
    assert producer.calls == ["hello"]
    stats = embedder.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["in_flight"] == 0


def test_embed_documents_dedupes_concurrent_duplicates() -> None:
    producer = CountingProducer(delay=0.05)
    embedder = CachedEmbedder(producer, cache=EmbeddingCache(max_size=10), batch_size=8)
    texts = ["a", "bb", "a", "a", "bb", "ccc", "a", "ccc"]
    progress: List[int] = []

    vectors = embedder.embed_documents(texts, on_progress=lambda done, total: progress.append(done))

    assert vectors == [[float(len(text)), 1.0] for text in texts]
    assert sorted(producer.calls) == ["a", "bb", "ccc"]
    assert sorted(progress) == [1, 2, 3]


def test_embedded_vectors_do_not_alias_cache_or_each_other() -> None:
    producer = CountingProducer(delay=0.02)
    cache = EmbeddingCache(max_size=10)
    embedder = CachedEmbedder(producer, cache=cache, batch_size=4)

    vectors = embedder.embed_documents(["a", "a", "a", "a"])
    assert len({id(vector) for vector in vectors}) == 4
    vectors[0][0] = -1.0
    assert vectors[1] == [1.0, 1.0]

    hit = embedder.embed_query("a")
    hit[1] = -1.0
    assert cache.get("a") == [1.0, 1.0]


def test_embed_documents_batches_preserve_order() -> None:
    producer = CountingProducer()
    embedder = CachedEmbedder(producer, batch_size=2, max_workers=2)
    texts = [f"text-{idx:02d}" for idx in range(7)]

    vectors = embedder.embed_documents(texts)

    assert len(vectors) == 7
    assert embedder.cache.size() == 7
    assert all(embedder.cache.has(text) for text in texts)


def test_failed_embedding_propagates_and_allows_retry() -> None:
    producer = CountingProducer(fail_on="bad")
    embedder = CachedEmbedder(producer)

    with pytest.raises(RuntimeError):
        embedder.embed_query("bad")
    assert not embedder.cache.has("bad")

    producer.fail_on = None
    assert embedder.embed_query("bad") == [3.0, 1.0]
    assert producer.calls == ["bad", "bad"]


def test_embed_documents_with_metadata() -> None:
    embedder = CachedEmbedder(CountingProducer())
    docs = [{"text": "x", "metadata": {"source": "a.txt"}}, {"text": "yy"}]

    results = embedder.embed_documents_with_metadata(docs)

    assert [doc.text for doc in results] == ["x", "yy"]
    assert results[0].metadata == {"source": "a.txt"}
    assert results[1].metadata is None
    assert results[1].embedding == [2.0, 1.0]


def test_cached_embedder_validates_batch_size() -> None:
    with pytest.raises(ValueError):
        CachedEmbedder(CountingProducer(), batch_size=0)
