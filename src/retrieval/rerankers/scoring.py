"""Batched scoring of (query, passage) pairs."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Sequence, Tuple

import numpy as np

from retrieval.rerankers.contracts import CachedModelEntry, PairScore, ScoringBackend
from retrieval.rerankers.errors import ConfigurationError, InferenceError

logger = logging.getLogger(__name__)

QueryPassagePair = Tuple[str, str]


class ScoringPipeline:
    """Split pairs into contiguous batches, score each, and reassemble in order.

    A failure in any batch aborts the call; scores from earlier batches are
    discarded rather than returned.
    """

    def __init__(self, backend: ScoringBackend) -> None:
        self._backend = backend

    async def score(
        self,
        entry: CachedModelEntry,
        pairs: Sequence[QueryPassagePair],
        batch_size: int,
    ) -> List[PairScore]:
        batches = split_batches(pairs, batch_size)
        scores: List[PairScore] = []
        for batch_index, batch in enumerate(batches):
            try:
                values = await self._score_batch(entry, batch)
            except InferenceError as exc:
                if exc.batch_index is not None:
                    raise
                raise InferenceError(str(exc), batch_index=batch_index) from exc
            scores.extend(PairScore(score=float(value)) for value in values)
        return scores

    async def _score_batch(
        self, entry: CachedModelEntry, batch: Sequence[QueryPassagePair]
    ) -> np.ndarray:
        queries = [query for query, _ in batch]
        passages = [passage for _, passage in batch]
        started = time.perf_counter()
        try:
            logits = await asyncio.to_thread(
                self._backend.infer, entry.model, entry.tokenizer, queries, passages
            )
        except InferenceError:
            raise
        except Exception as exc:
            raise InferenceError(f"scoring failed for {entry.key}: {exc}") from exc

        values = entry.strategy.apply(logits)
        if values.shape[0] != len(batch):
            raise InferenceError(
                f"backend returned {values.shape[0]} scores for {len(batch)} pairs"
            )
        logger.debug(
            "Scored %d pairs with %s in %.2fms",
            len(batch),
            entry.key,
            (time.perf_counter() - started) * 1000,
        )
        return values


def split_batches(
    pairs: Sequence[QueryPassagePair], batch_size: int
) -> List[Sequence[QueryPassagePair]]:
    """Contiguous chunks of at most ``batch_size`` pairs; the last may be shorter."""
    if batch_size < 1:
        raise ConfigurationError("batch_size must be >= 1")
    return [
        pairs[start : start + batch_size] for start in range(0, len(pairs), batch_size)
    ]


__all__ = ["QueryPassagePair", "ScoringPipeline", "split_batches"]
