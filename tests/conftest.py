# tests/conftest.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import pytest

from core.config import get_settings


@dataclass
class FakeModel:
    key: str
    num_labels: int
    id2label: Dict[int, str] = field(default_factory=dict)


def overlap_logit(query: str, passage: str) -> float:
    """Shared query/passage words minus one; zero overlap gives a negative logit."""
    query_words = {word.strip(".,?").lower() for word in query.split()}
    passage_words = {word.strip(".,?").lower() for word in passage.split()}
    return float(len((query_words & passage_words) - {""})) - 1.0


class FakeBackend:
    """Deterministic ScoringBackend that records every call."""

    def __init__(
        self,
        *,
        num_labels: int = 1,
        id2label: Optional[Dict[int, str]] = None,
        scorer: Callable[[str, str], float] = overlap_logit,
        load_delay: float = 0.0,
        fail_load: bool = False,
        fail_on_batch: Optional[int] = None,
    ) -> None:
        self.num_labels = num_labels
        self.id2label = id2label or {}
        self.scorer = scorer
        self.load_delay = load_delay
        self.fail_load = fail_load
        self.fail_on_batch = fail_on_batch
        self.load_calls: List[str] = []
        self.batch_sizes: List[int] = []

    def load_model(self, key: str) -> FakeModel:
        self.load_calls.append(key)
        if self.load_delay:
            time.sleep(self.load_delay)
        if self.fail_load:
            raise OSError(f"{key} is not a valid model identifier")
        return FakeModel(key=key, num_labels=self.num_labels, id2label=self.id2label)

    def load_tokenizer(self, key: str) -> str:
        return f"tokenizer:{key}"

    def label_metadata(self, model: FakeModel):
        return model.num_labels, model.id2label

    def infer(
        self,
        model: FakeModel,
        tokenizer: str,
        queries: Sequence[str],
        passages: Sequence[str],
    ) -> np.ndarray:
        batch_index = len(self.batch_sizes)
        self.batch_sizes.append(len(passages))
        if self.fail_on_batch == batch_index:
            raise RuntimeError("device lost")
        logits = np.asarray(
            [self.scorer(q, p) for q, p in zip(queries, passages)], dtype=np.float64
        )
        if model.num_labels == 1:
            return logits.reshape(-1, 1)
        columns = [np.zeros_like(logits) for _ in range(model.num_labels)]
        columns[0] = -logits
        columns[-1] = logits
        return np.stack(columns, axis=1)


@pytest.fixture
def make_backend() -> Callable[..., FakeBackend]:
    return FakeBackend


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    monkeypatch.delenv("RERANKER_MODEL_ID", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
