"""Document contracts for reranking input and output."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from retrieval.rerankers.errors import MalformedDocumentError

logger = logging.getLogger(__name__)

RESULT_FIELDS = ("corpus_id", "score")


@dataclass(frozen=True)
class TextDocument:
    """A document given as a bare string."""

    text: str

    def fields(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class RecordDocument:
    """A document given as a mapping with a ``text`` field plus caller fields."""

    text: str
    extra: Mapping[str, Any] = field(default_factory=dict)

    def fields(self) -> Dict[str, Any]:
        return {"text": self.text, **self.extra}


Document = Union[TextDocument, RecordDocument]
RawDocument = Union[str, Mapping[str, Any], TextDocument, RecordDocument]


def coerce_document(raw: RawDocument, *, index: int | None = None) -> Document:
    """Wrap caller input as a Document, rejecting inputs without text."""
    if isinstance(raw, (TextDocument, RecordDocument)):
        return raw
    if isinstance(raw, str):
        return TextDocument(text=raw)
    if isinstance(raw, Mapping):
        text = raw.get("text")
        if not isinstance(text, str):
            raise MalformedDocumentError(
                "record has no string 'text' field", index=index
            )
        extra = {key: value for key, value in raw.items() if key != "text"}
        return RecordDocument(text=text, extra=extra)
    raise MalformedDocumentError(
        f"unsupported document type {type(raw).__name__}", index=index
    )


class ScoredDocument(BaseModel):
    """A reranked document with its original position and relevance score."""

    corpus_id: int = Field(ge=0, description="Index of the document in the input.")
    score: float
    text: str
    document: Dict[str, Any] = Field(
        default_factory=dict, description="All original fields, verbatim."
    )

    model_config = ConfigDict(extra="forbid")

    def __getitem__(self, key: str) -> Any:
        return self.as_dict()[key]

    def as_dict(self) -> Dict[str, Any]:
        """Flat view: original fields plus ``corpus_id`` and ``score``.

        ``corpus_id`` and ``score`` win over caller fields of the same name;
        the caller values stay untouched in ``document``.
        """
        shadowed = [name for name in RESULT_FIELDS if name in self.document]
        if shadowed:
            logger.debug(
                "Caller field(s) %s replaced in flat view of document %d",
                ", ".join(shadowed),
                self.corpus_id,
            )
        return {**self.document, "corpus_id": self.corpus_id, "score": self.score}


__all__ = [
    "Document",
    "RawDocument",
    "RecordDocument",
    "ScoredDocument",
    "TextDocument",
    "coerce_document",
]
