"""Schema package for reranking and evaluation contracts."""

from .internal import AverageMetrics, QueryEvaluation, ScoredDocument

__all__ = ["AverageMetrics", "QueryEvaluation", "ScoredDocument"]
