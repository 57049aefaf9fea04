"""Embedding producers: anything that turns text into a vector.

The cache never computes embeddings. `CachedEmbedder` accepts any callable
matching `EmbeddingProducer`; `TransformerEmbedder` is the stock one, built on
a Hugging Face encoder plus the pooling helpers in `sentence`.
"""

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Sequence, Union

import torch
from transformers import AutoModel, AutoTokenizer, PreTrainedModel, PreTrainedTokenizerBase

from .registry import EmbedderKey, EmbedderSpec, get_spec
from .sentence import pool_embeddings

DeviceLike = Union[str, int, torch.device]

_DTYPES = {
    "fp16": torch.float16,
    "bf16": torch.bfloat16,
    "fp32": torch.float32,
}


class EmbeddingProducer(Protocol):
    """Callable mapping one text to its embedding."""

    def __call__(self, text: str) -> Sequence[float]:
        ...


def coerce_device(device: DeviceLike) -> torch.device:
    """Accept "cpu", "cuda:0", a bare CUDA index, or a torch.device."""
    if isinstance(device, torch.device):
        return device
    if isinstance(device, int):
        if device < 0:
            raise ValueError("CUDA device index must be non-negative.")
        return torch.device(f"cuda:{device}")
    return torch.device(device)


class TransformerEmbedder:
    """Sentence embeddings from a Hugging Face encoder's last hidden layer."""

    def __init__(
        self,
        spec: EmbedderSpec,
        model: PreTrainedModel,
        tokenizer: PreTrainedTokenizerBase,
        device: DeviceLike = "cpu",
    ) -> None:
        self.spec = spec
        self.device = coerce_device(device)
        model_any: Any = model
        model_any.to(device=self.device)
        self.model = model
        self.tokenizer = tokenizer
        self.model.eval()

    @classmethod
    def from_registry(cls, key: EmbedderKey, device: DeviceLike = "cpu") -> "TransformerEmbedder":
        return cls.from_spec(get_spec(key), device=device)

    @classmethod
    def from_spec(cls, spec: EmbedderSpec, device: DeviceLike = "cpu") -> "TransformerEmbedder":
        """Download (or reuse the local copy of) ``spec.hf_id``."""
        model_kwargs: dict[str, Any] = {}
        if spec.dtype is not None:
            try:
                model_kwargs["torch_dtype"] = _DTYPES[spec.dtype]
            except KeyError as exc:
                raise ValueError(f"Unsupported dtype alias '{spec.dtype}'.") from exc
        tokenizer = AutoTokenizer.from_pretrained(spec.hf_id)
        model = AutoModel.from_pretrained(spec.hf_id, **model_kwargs)
        return cls(spec=spec, model=model, tokenizer=tokenizer, device=device)

    @property
    def dimensions(self) -> int:
        return self.spec.dimensions

    def __call__(self, text: str) -> List[float]:
        return self.embed_batch([text])[0]

    @torch.inference_mode()
    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Tokenize, run the encoder once, and pool every text in ``texts``."""
        if not texts:
            return []
        encoding = self.tokenizer(
            list(texts),
            return_tensors="pt",
            padding=True,
            truncation=True,
            max_length=self.spec.max_length,
        )
        batch = {k: v.to(self.device) for k, v in encoding.items() if isinstance(v, torch.Tensor)}
        if "input_ids" not in batch:
            raise ValueError("Tokenized batch must include 'input_ids'.")

        outputs = self.model(**batch)
        hidden: Optional[torch.Tensor] = getattr(outputs, "last_hidden_state", None)
        if hidden is None:
            raise ValueError(f"Model {self.spec.hf_id} returned no last_hidden_state.")

        pooled = pool_embeddings(
            hidden,
            batch.get("attention_mask"),
            strategy=self.spec.pooling,
            normalize=self.spec.normalize,
        )
        return pooled.float().cpu().tolist()


__all__ = ["DeviceLike", "EmbeddingProducer", "TransformerEmbedder", "coerce_device"]
