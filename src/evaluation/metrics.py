"""Ranking-quality metrics: MRR, NDCG, Precision and Recall at k.

Every function takes a ranked sequence whose entries carry a relevance flag.
Entries may be plain bools, mappings with ``is_relevant`` (or ``isRelevant``),
or objects with an ``is_relevant`` attribute such as ``JudgedPassage``.
Relevance is binary: 1 for relevant, 0 otherwise.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from retrieval.rerankers.errors import MetricsInputError
from schemas.internal.evaluation import NO_VALID_RESULTS, AverageMetrics

DEFAULT_K_VALUES = (1, 3, 5, 10)
METRIC_NAMES = ("MRR", "NDCG", "Precision", "Recall")


def relevance_flags(ranked: Sequence[Any]) -> List[bool]:
    return [_is_relevant(item, position) for position, item in enumerate(ranked)]


def mrr_at_k(ranked: Sequence[Any], k: int = 10) -> float:
    """Reciprocal rank of the first relevant entry within the top ``k``."""
    flags = relevance_flags(ranked)
    for rank, relevant in enumerate(flags[: _cutoff(k)], start=1):
        if relevant:
            return 1.0 / rank
    return 0.0


def dcg_at_k(ranked: Sequence[Any], k: int) -> float:
    """Rank 1 counts in full; rank r > 1 is discounted by log2(r)."""
    return _dcg(relevance_flags(ranked)[: _cutoff(k)])


def idcg_at_k(ranked: Sequence[Any], k: int) -> float:
    """DCG with every relevant entry moved to the front."""
    total_relevant = sum(relevance_flags(ranked))
    return _dcg([True] * min(total_relevant, _cutoff(k)))


def ndcg_at_k(ranked: Sequence[Any], k: int = 10) -> float:
    idcg = idcg_at_k(ranked, k)
    if idcg <= 0:
        return 0.0
    return dcg_at_k(ranked, k) / idcg


def precision_at_k(ranked: Sequence[Any], k: int = 10) -> float:
    flags = relevance_flags(ranked)
    window = min(_cutoff(k), len(flags))
    if window == 0:
        return 0.0
    return sum(flags[:window]) / window


def recall_at_k(ranked: Sequence[Any], k: int = 10) -> float:
    flags = relevance_flags(ranked)
    total_relevant = sum(flags)
    if total_relevant == 0:
        return 0.0
    return sum(flags[: _cutoff(k)]) / total_relevant


def calculate_all_metrics(
    ranked: Sequence[Any], k_values: Iterable[int] = DEFAULT_K_VALUES
) -> Dict[str, float]:
    """``{"MRR@k", "NDCG@k", "Precision@k", "Recall@k"}`` for each k."""
    flags = relevance_flags(ranked)
    metrics: Dict[str, float] = {}
    for k in k_values:
        metrics[f"MRR@{k}"] = mrr_at_k(flags, k)
        metrics[f"NDCG@{k}"] = ndcg_at_k(flags, k)
        metrics[f"Precision@{k}"] = precision_at_k(flags, k)
        metrics[f"Recall@{k}"] = recall_at_k(flags, k)
    return metrics


evaluate = calculate_all_metrics


def calculate_average_metrics(
    query_results: Sequence[Any], k_values: Iterable[int] = DEFAULT_K_VALUES
) -> AverageMetrics:
    """Mean of every metric over the query results that carry no error.

    With no valid results the returned ``AverageMetrics`` has empty metrics
    and ``error`` set, instead of dividing by zero.
    """
    k_list = list(k_values)
    total = len(query_results)
    valid = [result for result in query_results if not _field(result, "error")]
    if not valid:
        return AverageMetrics(
            total_queries=total,
            valid_queries=0,
            error_queries=total,
            error=NO_VALID_RESULTS,
        )

    sums = {f"{name}@{k}": 0.0 for k in k_list for name in METRIC_NAMES}
    for result in valid:
        ranked = _field(result, "ranked_passages")
        if ranked is None:
            ranked = _field(result, "rankedPassages")
        if ranked is None:
            raise MetricsInputError("query result has no ranked_passages")
        for name, value in calculate_all_metrics(ranked, k_list).items():
            sums[name] += value

    return AverageMetrics(
        metrics={name: value / len(valid) for name, value in sums.items()},
        total_queries=total,
        valid_queries=len(valid),
        error_queries=total - len(valid),
    )


def _dcg(flags: Sequence[bool]) -> float:
    dcg = 0.0
    for rank, relevant in enumerate(flags, start=1):
        if not relevant:
            continue
        dcg += 1.0 if rank == 1 else 1.0 / math.log2(rank)
    return dcg


def _cutoff(k: int) -> int:
    if k < 0:
        raise MetricsInputError(f"k must be >= 0, got {k}")
    return k


def _is_relevant(item: Any, position: int) -> bool:
    if isinstance(item, bool):
        return item
    if isinstance(item, Mapping):
        for key in ("is_relevant", "isRelevant"):
            if key in item:
                return bool(item[key])
    elif hasattr(item, "is_relevant"):
        return bool(item.is_relevant)
    raise MetricsInputError(f"ranked entry {position} has no relevance flag")


def _field(result: Any, name: str) -> Any:
    if isinstance(result, Mapping):
        return result.get(name)
    return getattr(result, name, None)


__all__ = [
    "DEFAULT_K_VALUES",
    "METRIC_NAMES",
    "calculate_all_metrics",
    "calculate_average_metrics",
    "dcg_at_k",
    "evaluate",
    "idcg_at_k",
    "mrr_at_k",
    "ndcg_at_k",
    "precision_at_k",
    "recall_at_k",
    "relevance_flags",
]
