import asyncio

import numpy as np
import pytest

from retrieval.rerankers.errors import ConfigurationError, InferenceError
from retrieval.rerankers.model_cache import ModelCache
from retrieval.rerankers.scoring import ScoringPipeline, split_batches


def _score(backend, pairs, batch_size):
    cache = ModelCache(backend)

    async def _run():
        entry = await cache.ensure_loaded("model-a")
        return await ScoringPipeline(backend).score(entry, pairs, batch_size)

    return asyncio.run(_run())


def _pairs(count: int):
    return [("alpha beta", " ".join(["alpha"] * (i % 3) + ["beta"] * (i % 2))) for i in range(count)]


def test_split_batches_keeps_order_and_last_short_batch() -> None:
    pairs = _pairs(7)

    batches = split_batches(pairs, 3)

    assert [len(batch) for batch in batches] == [3, 3, 1]
    assert [pair for batch in batches for pair in batch] == pairs


def test_scores_do_not_depend_on_batch_size(make_backend) -> None:
    pairs = _pairs(11)

    single = _score(make_backend(), pairs, 1)
    grouped = _score(make_backend(), pairs, 4)
    whole = _score(make_backend(), pairs, 128)

    assert [s.score for s in single] == [s.score for s in grouped] == [s.score for s in whole]
    assert len(whole) == 11


def test_one_backend_call_per_batch(make_backend) -> None:
    backend = make_backend()

    _score(backend, _pairs(10), 4)

    assert backend.batch_sizes == [4, 4, 2]


def test_sigmoid_scores_and_labels(make_backend) -> None:
    backend = make_backend(scorer=lambda q, p: 0.0 if p == "even" else 3.0)

    scores = _score(backend, [("q", "even"), ("q", "odd")], 8)

    assert scores[0].score == pytest.approx(0.5)
    assert scores[0].label == "NOT_RELEVANT"
    assert scores[1].score == pytest.approx(1 / (1 + np.exp(-3.0)))
    assert scores[1].label == "RELEVANT"


def test_softmax_model_scores_positive_column(make_backend) -> None:
    backend = make_backend(num_labels=2, scorer=lambda q, p: 2.0)

    scores = _score(backend, [("q", "p")], 8)

    # logits are [-2, 2]
    assert scores[0].score == pytest.approx(0.9820, abs=1e-4)


def test_failing_batch_aborts_whole_call(make_backend) -> None:
    backend = make_backend(fail_on_batch=1)

    with pytest.raises(InferenceError) as excinfo:
        _score(backend, _pairs(6), 2)

    assert excinfo.value.batch_index == 1
    assert "device lost" in str(excinfo.value)
    assert backend.batch_sizes == [2, 2]


def test_row_count_mismatch_is_an_inference_error(make_backend) -> None:
    backend = make_backend()
    original_infer = backend.infer

    def _short_infer(model, tokenizer, queries, passages):
        return original_infer(model, tokenizer, queries, passages)[:-1]

    backend.infer = _short_infer

    with pytest.raises(InferenceError, match="2 scores for 3 pairs"):
        _score(backend, _pairs(3), 8)


def test_empty_input_makes_no_backend_call(make_backend) -> None:
    backend = make_backend()

    assert _score(backend, [], 8) == []
    assert backend.batch_sizes == []


def test_batch_size_must_be_positive(make_backend) -> None:
    with pytest.raises(ConfigurationError, match="batch_size"):
        _score(make_backend(), _pairs(2), 0)
