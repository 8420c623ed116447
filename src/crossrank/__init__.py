from importlib.metadata import PackageNotFoundError, version as pkg_version

from retrieval.rerankers.cross_encoder import CrossEncoderReranker, get_cross_encoder_reranker
from retrieval.rerankers.errors import (
    ConfigurationError,
    InferenceError,
    LoadError,
    MalformedDocumentError,
    MetricsInputError,
    NotInitializedError,
    RerankerError,
)
from retrieval.rerankers.model_cache import ModelCache, get_model_cache
from evaluation.metrics import calculate_all_metrics, calculate_average_metrics, evaluate

try:
    __version__ = pkg_version("crossrank")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "ConfigurationError",
    "CrossEncoderReranker",
    "InferenceError",
    "LoadError",
    "MalformedDocumentError",
    "MetricsInputError",
    "ModelCache",
    "NotInitializedError",
    "RerankerError",
    "calculate_all_metrics",
    "calculate_average_metrics",
    "evaluate",
    "get_cross_encoder_reranker",
    "get_model_cache",
]
