"""Collapse token-level hidden states into one vector per text."""

from __future__ import annotations

from typing import Literal, Optional

import torch
import torch.nn.functional as F

PoolingStrategy = Literal["cls", "mean"]


def pool_embeddings(
    hidden_states: torch.Tensor,
    attention_mask: Optional[torch.Tensor] = None,
    strategy: PoolingStrategy = "mean",
    normalize: bool = False,
) -> torch.Tensor:
    """
    Pool a batch of hidden states into text embeddings.

    Parameters
    ----------
    hidden_states:
        Tensor shaped (batch, seq_len, hidden_size), usually the last layer.
    attention_mask:
        Optional binary mask shaped (batch, seq_len); 1 marks real tokens.
    strategy:
        - "mean": masked mean over non-padding tokens (sentence-transformers style).
        - "cls": first token; rows whose first position is masked fall back to mean.
    normalize:
        L2-normalize each pooled vector.

    Returns
    -------
    torch.Tensor
        Tensor shaped (batch, hidden_size).
    """
    if hidden_states.dim() != 3:
        raise ValueError("hidden_states must have shape (batch, seq_len, hidden_size)")
    if strategy not in {"cls", "mean"}:
        raise ValueError(f"Unsupported pooling strategy: {strategy}")

    if attention_mask is None:
        attention_mask = torch.ones(hidden_states.shape[:2], device=hidden_states.device)
    if attention_mask.shape != hidden_states.shape[:2]:
        raise ValueError("attention_mask must match hidden_states batch and sequence dimensions")

    mask = attention_mask.to(hidden_states.dtype).unsqueeze(-1)
    token_counts = mask.sum(dim=1).clamp_min(1.0)
    mean_pooled = (hidden_states * mask).sum(dim=1) / token_counts

    if strategy == "mean":
        pooled = mean_pooled
    else:
        cls_valid = (attention_mask[:, 0] > 0).unsqueeze(-1)
        pooled = torch.where(cls_valid, hidden_states[:, 0, :], mean_pooled)

    if normalize:
        pooled = F.normalize(pooled, p=2, dim=-1)
    return pooled


__all__ = ["PoolingStrategy", "pool_embeddings"]
