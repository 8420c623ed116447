"""Process-wide registry of loaded cross-encoder models.

At most one load runs per model key, across event loops and threads.
Concurrent callers for a key that is already loading await the same future
and receive the same entry or the same ``LoadError``. Failed loads are never
stored, so a later call starts fresh.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
import time
from functools import lru_cache
from typing import Dict, Optional, Set

from retrieval.rerankers.contracts import CachedModelEntry, ScoringBackend
from retrieval.rerankers.errors import ConfigurationError, LoadError, NotInitializedError
from retrieval.rerankers.normalization import resolve_strategy_for

logger = logging.getLogger(__name__)


class ModelCache:
    """Maps model keys to loaded (model, tokenizer, strategy) entries."""

    def __init__(self, backend: Optional[ScoringBackend] = None) -> None:
        self._backend = backend
        self._lock = threading.Lock()
        self._entries: Dict[str, CachedModelEntry] = {}
        self._pending: Dict[str, concurrent.futures.Future] = {}

    @property
    def backend(self) -> ScoringBackend:
        if self._backend is None:
            from retrieval.rerankers.transformers_backend import get_default_backend

            self._backend = get_default_backend()
        return self._backend

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def list_keys(self) -> Set[str]:
        with self._lock:
            return set(self._entries)

    def is_loaded(self, key: str) -> bool:
        return key in self._entries

    def is_loading(self, key: str) -> bool:
        return key in self._pending

    def get(self, key: str) -> CachedModelEntry:
        """Return a loaded entry without triggering a load."""
        entry = self._entries.get(key)
        if entry is None:
            raise NotInitializedError(key)
        return entry

    async def ensure_loaded(self, key: str) -> CachedModelEntry:
        if not key:
            raise ConfigurationError("A model name must be provided.")

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                logger.debug("Model %s already initialized", key)
                return entry
            pending = self._pending.get(key)
            if pending is None:
                future: concurrent.futures.Future = concurrent.futures.Future()
                self._pending[key] = future

        if pending is not None:
            logger.info("Waiting for %s initialization to complete...", key)
            # The shield keeps a cancelled waiter from cancelling the shared load.
            return await asyncio.shield(asyncio.wrap_future(pending))

        try:
            entry = await self._load(key)
        except asyncio.CancelledError:
            self._release(key, future)
            future.cancel()
            raise
        except Exception as exc:
            error = exc if isinstance(exc, LoadError) else LoadError(key, str(exc))
            self._release(key, future)
            future.set_exception(error)
            logger.error("Failed to load model %s: %s", key, exc)
            if error is exc:
                raise
            raise error from exc

        with self._lock:
            if self._pending.get(key) is future:
                del self._pending[key]
                self._entries[key] = entry
            else:
                logger.info("Model %s was evicted while loading; not caching", key)
        future.set_result(entry)
        return entry

    def evict(self, key: Optional[str] = None) -> int:
        """Release one entry (or all of them); returns how many were dropped."""
        with self._lock:
            if key is None:
                removed = len(self._entries)
                self._entries.clear()
                self._pending.clear()
            else:
                removed = 1 if self._entries.pop(key, None) is not None else 0
                self._pending.pop(key, None)
        if removed:
            logger.info("Evicted %d cached model(s)", removed)
        return removed

    def _release(self, key: str, future: concurrent.futures.Future) -> None:
        with self._lock:
            if self._pending.get(key) is future:
                del self._pending[key]

    async def _load(self, key: str) -> CachedModelEntry:
        backend = self.backend
        logger.info("Loading model: %s...", key)
        start = time.perf_counter()
        model = await asyncio.to_thread(backend.load_model, key)
        tokenizer = await asyncio.to_thread(backend.load_tokenizer, key)
        num_labels, id2label = backend.label_metadata(model)
        strategy = resolve_strategy_for(key, num_labels, id2label)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Model %s loaded in %.2fms (normalization: %s)",
            key,
            duration_ms,
            strategy.describe(),
        )
        return CachedModelEntry(
            key=key,
            model=model,
            tokenizer=tokenizer,
            strategy=strategy,
            load_ms=duration_ms,
        )


@lru_cache(maxsize=1)
def get_model_cache() -> ModelCache:
    """Return the process-wide model cache (empty until first load)."""
    return ModelCache()


__all__ = ["ModelCache", "get_model_cache"]
