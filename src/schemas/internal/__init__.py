"""Internal schema definitions."""

from .documents import (  # noqa: F401
    Document,
    RawDocument,
    RecordDocument,
    ScoredDocument,
    TextDocument,
    coerce_document,
)
from .evaluation import (  # noqa: F401
    NO_VALID_RESULTS,
    AverageMetrics,
    JudgedPassage,
    QueryEvaluation,
)

__all__ = [
    "AverageMetrics",
    "Document",
    "JudgedPassage",
    "NO_VALID_RESULTS",
    "QueryEvaluation",
    "RawDocument",
    "RecordDocument",
    "ScoredDocument",
    "TextDocument",
    "coerce_document",
]
