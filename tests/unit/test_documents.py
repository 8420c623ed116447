import logging

import pytest
from pydantic import ValidationError

from retrieval.rerankers.errors import MalformedDocumentError
from schemas.internal.documents import (
    RecordDocument,
    ScoredDocument,
    TextDocument,
    coerce_document,
)


def test_string_becomes_text_document() -> None:
    doc = coerce_document("hello")

    assert doc == TextDocument(text="hello")
    assert doc.fields() == {"text": "hello"}


def test_record_keeps_extra_fields() -> None:
    doc = coerce_document({"text": "body", "id": 7, "meta": {"lang": "en"}})

    assert isinstance(doc, RecordDocument)
    assert doc.text == "body"
    assert doc.fields() == {"text": "body", "id": 7, "meta": {"lang": "en"}}


def test_empty_text_is_valid() -> None:
    assert coerce_document({"text": ""}).text == ""


@pytest.mark.parametrize("raw", [{"title": "x"}, {"text": 3}, 42, None])
def test_malformed_inputs(raw) -> None:
    with pytest.raises(MalformedDocumentError) as excinfo:
        coerce_document(raw, index=5)

    assert excinfo.value.index == 5
    assert "document 5" in str(excinfo.value)


def test_scored_document_flat_view() -> None:
    scored = ScoredDocument(
        corpus_id=2, score=0.75, text="body", document={"text": "body", "id": "a"}
    )

    assert scored.as_dict() == {"text": "body", "id": "a", "corpus_id": 2, "score": 0.75}
    assert scored["id"] == "a"
    assert scored["corpus_id"] == 2


def test_scored_document_rejects_negative_corpus_id() -> None:
    with pytest.raises(ValidationError):
        ScoredDocument(corpus_id=-1, score=0.1, text="x")


def test_result_fields_win_in_flat_view(caplog) -> None:
    scored = ScoredDocument(
        corpus_id=0,
        score=0.9,
        text="body",
        document={"text": "body", "score": "caller", "corpus_id": "c-1"},
    )

    with caplog.at_level(logging.DEBUG, logger="schemas.internal.documents"):
        flat = scored.as_dict()

    assert flat["score"] == 0.9
    assert flat["corpus_id"] == 0
    assert scored.document["score"] == "caller"
    assert scored.document["corpus_id"] == "c-1"
    assert "corpus_id, score" in caplog.text
