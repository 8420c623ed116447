from __future__ import annotations

import asyncio

from retrieval.rerankers.cross_encoder import CrossEncoderReranker
from retrieval.rerankers.model_cache import ModelCache


def test_concurrent_rerankers_share_one_model_load(make_backend) -> None:
    backend = make_backend(load_delay=0.05)
    cache = ModelCache(backend)
    rerankers = [
        CrossEncoderReranker(model_id="dummy", cache=cache, backend=backend, auto_initialize=True)
        for _ in range(4)
    ]
    documents = ["alpha beta", "beta", "gamma"]

    async def _run_all():
        return await asyncio.gather(
            *(reranker.rerank("alpha beta", documents, top_k=2) for reranker in rerankers)
        )

    results = asyncio.run(_run_all())

    assert backend.load_calls == ["dummy"]
    assert all([item.corpus_id for item in ranked] == [0, 1] for ranked in results)
    assert cache.list_keys() == {"dummy"}


def test_evicted_model_reloads_on_next_use(make_backend) -> None:
    backend = make_backend()
    cache = ModelCache(backend)
    reranker = CrossEncoderReranker(model_id="dummy", cache=cache, backend=backend)

    async def _cycle():
        await reranker.initialize()
        first = await reranker.rerank("alpha", ["alpha", "beta"])
        reranker.evict("dummy")
        await reranker.initialize()
        second = await reranker.rerank("alpha", ["alpha", "beta"])
        return first, second

    first, second = asyncio.run(_cycle())

    assert backend.load_calls == ["dummy", "dummy"]
    assert [item.as_dict() for item in first] == [item.as_dict() for item in second]


def test_different_models_load_independently(make_backend) -> None:
    backend = make_backend(load_delay=0.02)
    cache = ModelCache(backend)
    first = CrossEncoderReranker(model_id="model-a", cache=cache, backend=backend)
    second = CrossEncoderReranker(model_id="model-b", cache=cache, backend=backend)

    async def _init_both():
        await asyncio.gather(first.initialize(), second.initialize(), first.initialize())

    asyncio.run(_init_both())

    assert sorted(backend.load_calls) == ["model-a", "model-b"]
    assert cache.list_keys() == {"model-a", "model-b"}
