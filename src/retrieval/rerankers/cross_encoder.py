"""Cross-encoder document reranker.

Typical use::

    reranker = CrossEncoderReranker(model_id="Xenova/ms-marco-MiniLM-L-6-v2")
    await reranker.initialize()
    results = await reranker.rerank(query, documents, top_k=5)

Models are shared across reranker instances through the process-wide
``ModelCache``; constructing a second reranker for the same model id does not
load it again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from typing import List, Optional, Sequence, Set

from core.config import get_settings
from retrieval.rerankers.contracts import CachedModelEntry, ScoringBackend
from retrieval.rerankers.errors import ConfigurationError
from retrieval.rerankers.model_cache import ModelCache, get_model_cache
from retrieval.rerankers.scoring import ScoringPipeline
from schemas.internal.documents import RawDocument, ScoredDocument, coerce_document

logger = logging.getLogger(__name__)

DEFAULT_CROSS_ENCODER_MODEL_ID = "mixedbread-ai/mxbai-rerank-xsmall-v1"
DEFAULT_TOP_K = 4
DEFAULT_BATCH_SIZE = 128


class CrossEncoderReranker:
    """Rank documents by cross-encoder relevance to a query."""

    def __init__(
        self,
        *,
        model_id: Optional[str] = None,
        cache: Optional[ModelCache] = None,
        backend: Optional[ScoringBackend] = None,
        top_k: int = DEFAULT_TOP_K,
        batch_size: int = DEFAULT_BATCH_SIZE,
        auto_initialize: bool = False,
    ) -> None:
        resolved_model = model_id or get_settings().reranker_model_id
        if model_id is not None and not model_id.strip():
            raise ConfigurationError("A model name must be provided.")
        _check_options(top_k, batch_size)

        self.model_id = resolved_model or DEFAULT_CROSS_ENCODER_MODEL_ID
        self._cache = cache if cache is not None else get_model_cache()
        self._backend = backend
        self.top_k = top_k
        self.batch_size = batch_size
        self.auto_initialize = auto_initialize
        self.name = "cross_encoder"

    @property
    def cache(self) -> ModelCache:
        return self._cache

    @property
    def backend(self) -> ScoringBackend:
        return self._backend if self._backend is not None else self._cache.backend

    def is_loaded(self) -> bool:
        return self._cache.is_loaded(self.model_id)

    def list_cached_keys(self) -> Set[str]:
        return self._cache.list_keys()

    def evict(self, key: Optional[str] = None) -> int:
        return self._cache.evict(key)

    async def initialize(self) -> None:
        """Load the model into the shared cache; must precede ``rerank``."""
        logger.info("Initializing reranker for %s...", self.model_id)
        await self._cache.ensure_loaded(self.model_id)
        logger.info("Reranker ready")

    async def preload(self) -> bool:
        """Warm the model up at service start; failures are logged, not raised."""
        try:
            await self.initialize()
        except Exception as exc:
            logger.warning(
                "Failed to preload %s (%s); reranking will load on first use.",
                self.model_id,
                exc,
            )
            self.auto_initialize = True
            return False
        return True

    async def rerank(
        self,
        query: str,
        documents: Sequence[RawDocument],
        *,
        top_k: Optional[int] = None,
        batch_size: Optional[int] = None,
    ) -> List[ScoredDocument]:
        """Return the ``top_k`` documents by descending relevance score.

        Each result keeps the document's original index as ``corpus_id`` and
        every original field. Ties keep input order. Empty ``documents``
        returns ``[]`` without loading or scoring anything.
        """
        if not isinstance(query, str):
            raise ConfigurationError("query must be a string")
        resolved_top_k = self.top_k if top_k is None else top_k
        resolved_batch_size = self.batch_size if batch_size is None else batch_size
        _check_options(resolved_top_k, resolved_batch_size)

        if not documents:
            return []

        start = time.perf_counter()
        parsed = [coerce_document(doc, index=i) for i, doc in enumerate(documents)]
        entry = await self._entry()
        logger.info(
            'Reranking %d documents for query: "%s"', len(parsed), query
        )

        pipeline = ScoringPipeline(self.backend)
        pairs = [(query, doc.text) for doc in parsed]
        scores = await pipeline.score(entry, pairs, resolved_batch_size)

        order = sorted(range(len(scores)), key=lambda idx: (-scores[idx].score, idx))
        reranked = [
            ScoredDocument(
                corpus_id=idx,
                score=scores[idx].score,
                text=parsed[idx].text,
                document=parsed[idx].fields(),
            )
            for idx in order[:resolved_top_k]
        ]

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Reranking %d documents to top %d took %.2fms (top score: %s)",
            len(parsed),
            resolved_top_k,
            duration_ms,
            f"{reranked[0].score:.4f}" if reranked else "N/A",
        )
        return reranked

    def rerank_sync(
        self,
        query: str,
        documents: Sequence[RawDocument],
        *,
        top_k: Optional[int] = None,
        batch_size: Optional[int] = None,
    ) -> List[ScoredDocument]:
        """Blocking ``rerank`` for callers without an event loop.

        Loading follows ``rerank``: without ``auto_initialize`` the model must
        already be in the cache, else ``NotInitializedError``. Threads may
        share one cache; concurrent first calls still load the model once.
        """
        return asyncio.run(
            self.rerank(query, documents, top_k=top_k, batch_size=batch_size)
        )

    async def _entry(self) -> CachedModelEntry:
        if self.auto_initialize:
            return await self._cache.ensure_loaded(self.model_id)
        return self._cache.get(self.model_id)


def _check_options(top_k: int, batch_size: int) -> None:
    if top_k < 0:
        raise ConfigurationError("top_k must be >= 0")
    if batch_size < 1:
        raise ConfigurationError("batch_size must be >= 1")


@lru_cache(maxsize=4)
def get_cross_encoder_reranker(model_id: Optional[str] = None) -> CrossEncoderReranker:
    """Return a cached reranker bound to the process-wide model cache."""
    return CrossEncoderReranker(model_id=model_id)


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_CROSS_ENCODER_MODEL_ID",
    "DEFAULT_TOP_K",
    "CrossEncoderReranker",
    "get_cross_encoder_reranker",
]
