"""Turn raw cross-encoder logits into relevance probabilities in [0, 1].

The strategy is chosen once per model from its declared output width and
label names, then applied to every batch scored with that model.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

import numpy as np

from retrieval.rerankers.errors import InferenceError, LoadError

DEFAULT_POSITIVE_INDEX = 1

_POSITIVE_PATTERN = re.compile(r"relevant|positive", re.IGNORECASE)
_NEGATED_PATTERN = re.compile(
    r"irrelevant|negative|n(?:on|ot)[\s_-]*(?:relevant|positive)", re.IGNORECASE
)


class StrategyKind(str, Enum):
    SINGLE_LOGIT_SIGMOID = "single_logit_sigmoid"
    MULTI_LOGIT_SOFTMAX = "multi_logit_softmax"


@dataclass(frozen=True)
class NormalizationStrategy:
    """Sigmoid over one logit, or softmax over ``num_labels`` picking ``class_index``."""

    kind: StrategyKind
    num_labels: int
    class_index: Optional[int] = None

    @classmethod
    def sigmoid(cls) -> "NormalizationStrategy":
        return cls(kind=StrategyKind.SINGLE_LOGIT_SIGMOID, num_labels=1)

    @classmethod
    def softmax(cls, num_labels: int, class_index: int) -> "NormalizationStrategy":
        if num_labels < 2:
            raise ValueError("softmax normalization needs at least two labels")
        if not 0 <= class_index < num_labels:
            raise ValueError(
                f"class_index {class_index} out of range for {num_labels} labels"
            )
        return cls(
            kind=StrategyKind.MULTI_LOGIT_SOFTMAX,
            num_labels=num_labels,
            class_index=class_index,
        )

    def describe(self) -> str:
        if self.kind is StrategyKind.SINGLE_LOGIT_SIGMOID:
            return "sigmoid"
        return f"softmax[{self.class_index}/{self.num_labels}]"

    def apply(self, logits: np.ndarray) -> np.ndarray:
        """Return one float64 score per row of ``logits``."""
        matrix = np.asarray(logits, dtype=np.float64)
        if matrix.ndim == 1 and self.kind is StrategyKind.SINGLE_LOGIT_SIGMOID:
            matrix = matrix.reshape(-1, 1)
        if matrix.ndim != 2:
            raise InferenceError(f"expected 2D logits, got shape {matrix.shape}")
        if matrix.shape[1] != self.num_labels:
            raise InferenceError(
                f"logits width {matrix.shape[1]} does not match the "
                f"{self.num_labels} label(s) declared by the model"
            )
        if self.kind is StrategyKind.SINGLE_LOGIT_SIGMOID:
            return _sigmoid(matrix[:, 0])
        return _softmax(matrix)[:, self.class_index]


def resolve_strategy(
    num_labels: int, id2label: Optional[Mapping[int, str]] = None
) -> NormalizationStrategy:
    """Pick the normalization for a model with ``num_labels`` outputs."""
    if num_labels < 1:
        raise ValueError(f"model declares {num_labels} output labels")
    if num_labels == 1:
        return NormalizationStrategy.sigmoid()
    return NormalizationStrategy.softmax(
        num_labels, positive_class_index(num_labels, id2label)
    )


def resolve_strategy_for(model_id: str, num_labels: int, id2label) -> NormalizationStrategy:
    """``resolve_strategy`` with malformed metadata reported as a load failure."""
    try:
        return resolve_strategy(num_labels, id2label)
    except ValueError as exc:
        raise LoadError(model_id, str(exc)) from exc


def positive_class_index(
    num_labels: int, id2label: Optional[Mapping[int, str]] = None
) -> int:
    """Index of the label naming the relevant class, else the binary default."""
    for raw_index, label in sorted((id2label or {}).items(), key=lambda item: int(item[0])):
        index = int(raw_index)
        if not 0 <= index < num_labels:
            continue
        name = str(label)
        if _POSITIVE_PATTERN.search(name) and not _NEGATED_PATTERN.search(name):
            return index
    return DEFAULT_POSITIVE_INDEX


def _sigmoid(values: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-values))


def _softmax(matrix: np.ndarray) -> np.ndarray:
    shifted = matrix - matrix.max(axis=1, keepdims=True)
    exp = np.exp(shifted)
    return exp / exp.sum(axis=1, keepdims=True)


__all__ = [
    "DEFAULT_POSITIVE_INDEX",
    "NormalizationStrategy",
    "StrategyKind",
    "positive_class_index",
    "resolve_strategy",
    "resolve_strategy_for",
]
