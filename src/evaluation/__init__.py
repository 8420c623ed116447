"""Ranking-quality evaluation and the reranking benchmark."""

from .metrics import (
    DEFAULT_K_VALUES,
    calculate_all_metrics,
    calculate_average_metrics,
    dcg_at_k,
    evaluate,
    idcg_at_k,
    mrr_at_k,
    ndcg_at_k,
    precision_at_k,
    recall_at_k,
)

__all__ = [
    "DEFAULT_K_VALUES",
    "calculate_all_metrics",
    "calculate_average_metrics",
    "dcg_at_k",
    "evaluate",
    "idcg_at_k",
    "mrr_at_k",
    "ndcg_at_k",
    "precision_at_k",
    "recall_at_k",
]
