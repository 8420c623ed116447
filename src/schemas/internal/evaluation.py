"""Ranking evaluation contracts."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from retrieval.rerankers.errors import MetricsInputError

NO_VALID_RESULTS = "No valid results to calculate metrics"


class JudgedPassage(BaseModel):
    """A ranked passage annotated with a relevance judgement."""

    is_relevant: bool
    text: Optional[str] = None
    corpus_id: Optional[int] = Field(default=None, ge=0)
    score: Optional[float] = None

    model_config = ConfigDict(extra="allow")


class QueryEvaluation(BaseModel):
    """Evaluation of one query: its ranking, metrics, or the error it hit."""

    query: str = ""
    ranked_passages: List[JudgedPassage] = Field(default_factory=list)
    metrics: Dict[str, float] = Field(default_factory=dict)
    error: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class AverageMetrics(BaseModel):
    """Mean of each metric over the queries that did not error."""

    metrics: Dict[str, float] = Field(default_factory=dict)
    total_queries: int = Field(default=0, ge=0)
    valid_queries: int = Field(default=0, ge=0)
    error_queries: int = Field(default=0, ge=0)
    error: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> "AverageMetrics":
        if self.error is not None:
            raise MetricsInputError(self.error)
        return self


__all__ = ["AverageMetrics", "JudgedPassage", "NO_VALID_RESULTS", "QueryEvaluation"]
