"""Reranking benchmark over labelled synthetic candidate pools.

Each benchmark query names which document pools are highly, moderately or
weakly relevant to it. ``generate_candidates`` samples a shuffled candidate
list from those pools, the reranker orders it, and high plus medium documents
count as relevant when computing metrics.
"""

from __future__ import annotations

import logging
import random
import time
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

import yaml
from pydantic import BaseModel, ConfigDict, Field

from retrieval.rerankers.contracts import ScoringBackend
from retrieval.rerankers.cross_encoder import CrossEncoderReranker
from retrieval.rerankers.model_cache import ModelCache
from schemas.internal.documents import ScoredDocument
from schemas.internal.evaluation import AverageMetrics, JudgedPassage, QueryEvaluation
from evaluation.metrics import calculate_all_metrics, calculate_average_metrics

logger = logging.getLogger(__name__)

DEFAULT_BENCHMARK_PATH = Path(__file__).resolve().parent / "data" / "benchmark.yaml"
IRRELEVANT_POOL = "irrelevant"
SUMMARY_K_VALUES = (1, 3, 5)


class BenchmarkQuery(BaseModel):
    key: str
    query: str
    description: str = ""
    high: List[str]
    medium: List[str] = Field(default_factory=list)
    low: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class BenchmarkScenario(BaseModel):
    name: str
    query_key: str
    num_candidates: int = Field(ge=1)
    top_k: int = Field(ge=0)
    model_id: str

    model_config = ConfigDict(extra="forbid")


class BenchmarkCorpus(BaseModel):
    queries: Dict[str, BenchmarkQuery]
    pools: Dict[str, List[str]]
    scenarios: Dict[str, List[BenchmarkScenario]] = Field(default_factory=dict)

    def query(self, key: str) -> BenchmarkQuery:
        if key not in self.queries:
            raise KeyError(f"Unknown query key: {key}")
        return self.queries[key]


class ScenarioResult(BaseModel):
    scenario: BenchmarkScenario
    query: str
    results: List[ScoredDocument]
    evaluation: QueryEvaluation
    processing_ms: float = Field(ge=0)
    legacy_precision: float = 0.0
    improvement: float = 1.0
    high_in_top_k: int = 0
    medium_in_top_k: int = 0

    @property
    def throughput(self) -> float:
        if self.processing_ms <= 0:
            return 0.0
        return self.scenario.num_candidates / self.processing_ms * 1000


class BenchmarkSummary(BaseModel):
    scenarios: int
    models: List[str]
    at_top_k: Dict[str, float]
    average: AverageMetrics
    avg_legacy_precision: float
    avg_improvement: float
    avg_processing_ms: float
    total_candidates: int
    throughput: float


@lru_cache(maxsize=4)
def load_benchmark_corpus(path: Optional[Path] = None) -> BenchmarkCorpus:
    resolved = path or DEFAULT_BENCHMARK_PATH
    raw = yaml.safe_load(resolved.read_text(encoding="utf-8")) or {}
    queries = {
        key: BenchmarkQuery(key=key, **value)
        for key, value in (raw.get("queries") or {}).items()
    }
    corpus = BenchmarkCorpus(
        queries=queries,
        pools=raw.get("pools") or {},
        scenarios=raw.get("scenarios") or {},
    )
    for query in corpus.queries.values():
        for pool in [*query.high, *query.medium, *query.low]:
            if pool not in corpus.pools:
                raise ValueError(f"Query {query.key} references unknown pool {pool}")
    return corpus


def generate_candidates(
    corpus: BenchmarkCorpus,
    query_key: str,
    num_candidates: int = 20,
    *,
    high_ratio: float = 0.3,
    medium_ratio: float = 0.3,
    rng: Optional[random.Random] = None,
) -> List[dict]:
    """Sample a shuffled candidate list with a high/medium/low relevance mix.

    Texts are never repeated. Tiers with too few unique texts come back short,
    except the low tier, which is padded from the irrelevant pool.
    """
    query = corpus.query(query_key)
    rng = rng or random.Random()
    num_high = int(num_candidates * high_ratio)
    num_medium = int(num_candidates * medium_ratio)
    num_low = num_candidates - num_high - num_medium

    used: Set[str] = set()
    candidates: List[dict] = []
    tiers = (
        ("high", query.high, num_high),
        ("medium", query.medium, num_medium),
        ("low", query.low, num_low),
    )
    for relevance, pools, needed in tiers:
        for category, text in _draw(corpus, pools, needed, used, rng, pad=relevance == "low"):
            doc_id = len(candidates)
            candidates.append(
                {
                    "id": f"doc_{doc_id}",
                    "text": text,
                    "source": f"source_{doc_id + 1}",
                    "category": category,
                    "expected_relevance": relevance,
                }
            )

    rng.shuffle(candidates)
    return candidates


def scenarios_for_mode(corpus: BenchmarkCorpus, mode: str) -> List[BenchmarkScenario]:
    if mode not in corpus.scenarios:
        known = ", ".join(sorted(corpus.scenarios))
        raise ValueError(f"Unknown benchmark mode: {mode} (expected one of {known})")
    return list(corpus.scenarios[mode])


async def run_scenario(
    scenario: BenchmarkScenario,
    corpus: BenchmarkCorpus,
    *,
    cache: Optional[ModelCache] = None,
    backend: Optional[ScoringBackend] = None,
    rng: Optional[random.Random] = None,
    batch_size: Optional[int] = None,
) -> ScenarioResult:
    query = corpus.query(scenario.query_key)
    reranker = CrossEncoderReranker(model_id=scenario.model_id, cache=cache, backend=backend)
    await reranker.initialize()

    candidates = generate_candidates(
        corpus, scenario.query_key, scenario.num_candidates, rng=rng
    )
    started = time.perf_counter()
    results = await reranker.rerank(
        query.query, candidates, top_k=scenario.top_k, batch_size=batch_size
    )
    processing_ms = (time.perf_counter() - started) * 1000

    judged = [
        JudgedPassage(
            is_relevant=item.document.get("expected_relevance") in ("high", "medium"),
            text=item.text,
            corpus_id=item.corpus_id,
            score=item.score,
            expected_relevance=item.document.get("expected_relevance"),
            category=item.document.get("category"),
        )
        for item in results
    ]
    k_values = sorted({1, 3, 5, scenario.top_k})
    evaluation = QueryEvaluation(
        query=query.query,
        ranked_passages=judged,
        metrics=calculate_all_metrics(judged, k_values),
    )

    high = sum(1 for item in results if item.document.get("expected_relevance") == "high")
    medium = sum(1 for item in results if item.document.get("expected_relevance") == "medium")
    total_high = sum(1 for c in candidates if c["expected_relevance"] == "high")
    total_medium = sum(1 for c in candidates if c["expected_relevance"] == "medium")
    legacy_precision = (high + 0.5 * medium) / len(results) if results else 0.0
    random_precision = (total_high + 0.5 * total_medium) / len(candidates)
    improvement = legacy_precision / random_precision if random_precision > 0 else 1.0

    logger.info(
        "%s: NDCG@%d=%.4f in %.2fms",
        scenario.name,
        scenario.top_k,
        evaluation.metrics.get(f"NDCG@{scenario.top_k}", 0.0),
        processing_ms,
    )
    return ScenarioResult(
        scenario=scenario,
        query=query.query,
        results=results,
        evaluation=evaluation,
        processing_ms=processing_ms,
        legacy_precision=legacy_precision,
        improvement=improvement,
        high_in_top_k=high,
        medium_in_top_k=medium,
    )


async def run_benchmark(
    scenarios: Sequence[BenchmarkScenario],
    corpus: Optional[BenchmarkCorpus] = None,
    *,
    cache: Optional[ModelCache] = None,
    backend: Optional[ScoringBackend] = None,
    seed: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> List[ScenarioResult]:
    corpus = corpus or load_benchmark_corpus()
    rng = random.Random(seed)
    results: List[ScenarioResult] = []
    for index, scenario in enumerate(scenarios, start=1):
        logger.info("Scenario %d/%d: %s", index, len(scenarios), scenario.name)
        results.append(
            await run_scenario(
                scenario,
                corpus,
                cache=cache,
                backend=backend,
                rng=rng,
                batch_size=batch_size,
            )
        )
    return results


def summarize(results: Sequence[ScenarioResult]) -> BenchmarkSummary:
    if not results:
        raise ValueError("No benchmark results to summarize")
    count = len(results)
    at_top_k = {
        name: sum(r.evaluation.metrics.get(f"{name}@{r.scenario.top_k}", 0.0) for r in results)
        / count
        for name in ("NDCG", "MRR", "Precision", "Recall")
    }
    total_candidates = sum(r.scenario.num_candidates for r in results)
    total_ms = sum(r.processing_ms for r in results)
    return BenchmarkSummary(
        scenarios=count,
        models=sorted({r.scenario.model_id for r in results}),
        at_top_k=at_top_k,
        average=calculate_average_metrics(
            [r.evaluation for r in results], SUMMARY_K_VALUES
        ),
        avg_legacy_precision=sum(r.legacy_precision for r in results) / count,
        avg_improvement=sum(r.improvement for r in results) / count,
        avg_processing_ms=total_ms / count,
        total_candidates=total_candidates,
        throughput=total_candidates / total_ms * 1000 if total_ms > 0 else 0.0,
    )


def _draw(
    corpus: BenchmarkCorpus,
    pools: Sequence[str],
    needed: int,
    used: Set[str],
    rng: random.Random,
    *,
    pad: bool,
) -> List[tuple[str, str]]:
    available = [
        (pool, text)
        for pool in pools
        for text in corpus.pools.get(pool, [])
        if text not in used
    ]
    rng.shuffle(available)
    selected = available[: max(needed, 0)]
    if pad and len(selected) < needed:
        for text in corpus.pools.get(IRRELEVANT_POOL, []):
            if len(selected) >= needed:
                break
            if text not in used and all(text != chosen for _, chosen in selected):
                selected.append((IRRELEVANT_POOL, text))
    used.update(text for _, text in selected)
    return selected


__all__ = [
    "BenchmarkCorpus",
    "BenchmarkQuery",
    "BenchmarkScenario",
    "BenchmarkSummary",
    "ScenarioResult",
    "generate_candidates",
    "load_benchmark_corpus",
    "run_benchmark",
    "run_scenario",
    "scenarios_for_mode",
    "summarize",
]
