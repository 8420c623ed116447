"""Shared contracts for the cross-encoder reranking stack.

The scoring backend owns tokenization and the forward pass. Everything above
it (cache, batching, normalization, ordering) only sees raw logits of shape
``[n, c]`` plus the label metadata the model declares.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

import numpy as np

from retrieval.rerankers.normalization import NormalizationStrategy

RELEVANT_LABEL = "RELEVANT"
NOT_RELEVANT_LABEL = "NOT_RELEVANT"


@dataclass(frozen=True)
class CachedModelEntry:
    """Loaded model/tokenizer handles for one model key."""

    key: str
    model: Any
    tokenizer: Any
    strategy: NormalizationStrategy
    load_ms: float = 0.0


@dataclass(frozen=True)
class PairScore:
    """Normalized relevance for one (query, passage) pair."""

    score: float

    @property
    def label(self) -> str:
        return RELEVANT_LABEL if self.score > 0.5 else NOT_RELEVANT_LABEL


class ScoringBackend(Protocol):
    """Loads models and turns (query, passage) pairs into raw logits.

    All methods are blocking; callers run them in a worker thread.
    """

    def load_model(self, key: str) -> Any: ...

    def load_tokenizer(self, key: str) -> Any: ...

    def label_metadata(self, model: Any) -> tuple[int, Mapping[int, str]]: ...

    def infer(
        self,
        model: Any,
        tokenizer: Any,
        queries: Sequence[str],
        passages: Sequence[str],
    ) -> np.ndarray: ...


__all__ = [
    "CachedModelEntry",
    "NOT_RELEVANT_LABEL",
    "PairScore",
    "RELEVANT_LABEL",
    "ScoringBackend",
]
