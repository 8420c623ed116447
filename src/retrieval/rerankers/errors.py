"""Exception types raised by the reranking stack."""

from __future__ import annotations

from typing import Optional


class RerankerError(Exception):
    """Base class for reranker failures."""


class ConfigurationError(RerankerError, ValueError):
    """Invalid model id, top_k or batch_size."""


class NotInitializedError(RerankerError, RuntimeError):
    """A model was used before it was loaded into the cache."""

    def __init__(self, model_id: str) -> None:
        super().__init__(
            f'Model "{model_id}" not initialized. Call initialize() first.'
        )
        self.model_id = model_id


class LoadError(RerankerError, RuntimeError):
    """The backend could not produce a model/tokenizer for a key."""

    def __init__(self, model_id: str, message: str) -> None:
        super().__init__(f'Failed to load model "{model_id}": {message}')
        self.model_id = model_id


class InferenceError(RerankerError, RuntimeError):
    """Scoring failed for one batch; the whole call is aborted."""

    def __init__(self, message: str, *, batch_index: Optional[int] = None) -> None:
        if batch_index is not None:
            message = f"batch {batch_index}: {message}"
        super().__init__(message)
        self.batch_index = batch_index


class MalformedDocumentError(RerankerError, ValueError):
    """A document carries no extractable text."""

    def __init__(self, message: str, *, index: Optional[int] = None) -> None:
        if index is not None:
            message = f"document {index}: {message}"
        super().__init__(message)
        self.index = index


class MetricsInputError(RerankerError, ValueError):
    """Evaluation input cannot produce metrics."""


__all__ = [
    "ConfigurationError",
    "InferenceError",
    "LoadError",
    "MalformedDocumentError",
    "MetricsInputError",
    "NotInitializedError",
    "RerankerError",
]
