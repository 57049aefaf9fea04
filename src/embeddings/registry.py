"""Known sentence-embedding checkpoints for `TransformerEmbedder`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from .sentence import PoolingStrategy

EmbedderKey = Literal["minilm", "bge-small", "labse", "e5-small"]


@dataclass(frozen=True)
class EmbedderSpec:
    """Metadata needed to load a checkpoint and pool its outputs."""

    name: str
    hf_id: str
    dimensions: int
    pooling: PoolingStrategy = "mean"
    normalize: bool = True
    dtype: Optional[str] = None
    max_length: int = 512


REGISTRY: dict[EmbedderKey, EmbedderSpec] = {
    "minilm": EmbedderSpec(
        name="minilm",
        hf_id="sentence-transformers/all-MiniLM-L12-v2",
        dimensions=384,
    ),
    "bge-small": EmbedderSpec(
        name="bge-small",
        hf_id="BAAI/bge-small-en-v1.5",
        dimensions=384,
        pooling="cls",
    ),
    "labse": EmbedderSpec(
        name="labse",
        hf_id="sentence-transformers/LaBSE",
        dimensions=768,
        pooling="cls",
    ),
    "e5-small": EmbedderSpec(
        name="e5-small",
        hf_id="intfloat/multilingual-e5-small",
        dimensions=384,
    ),
}


def get_spec(key: EmbedderKey) -> EmbedderSpec:
    """Return the EmbedderSpec registered under ``key``."""
    try:
        return REGISTRY[key]
    except KeyError as exc:
        raise ValueError(f"Unknown embedder '{key}'. Available: {sorted(REGISTRY)}") from exc


def list_available_embedders() -> tuple[str, ...]:
    return tuple(sorted(REGISTRY))
