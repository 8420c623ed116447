"""Shared helpers for CLI subcommands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List

import typer

from core.config import get_settings
from retrieval.rerankers.errors import RerankerError
from schemas.internal.documents import ScoredDocument


def configure_logging(level: str | None = None) -> None:
    resolved = (level or get_settings().log_level or "WARNING").upper()
    numeric = logging.getLevelName(resolved)
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"Unknown log level: {level}")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def load_documents(docs: List[str] | None, docs_file: Path | None) -> List[Any]:
    """Documents from repeated --doc values plus a JSON list or JSONL file."""
    documents: List[Any] = list(docs or [])
    if docs_file is None:
        return documents
    if not docs_file.exists():
        raise typer.BadParameter(f"Documents file not found: {docs_file}")
    text = docs_file.read_text(encoding="utf-8")
    if docs_file.suffix.lower() == ".jsonl":
        for line_no, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                documents.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise typer.BadParameter(f"{docs_file}:{line_no}: {exc}") from exc
        return documents
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{docs_file}: {exc}") from exc
    if not isinstance(payload, list):
        raise typer.BadParameter("Documents file must contain a JSON list")
    documents.extend(payload)
    return documents


def load_json(path: Path) -> Any:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path}: {exc}") from exc


def preview(text: str, limit: int = 60) -> str:
    collapsed = " ".join(text.split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: limit - 3] + "..."


def emit_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2))


def print_results(results: Iterable[ScoredDocument]) -> None:
    items = list(results)
    typer.echo(f"Results: {len(items)}")
    for rank, item in enumerate(items, start=1):
        typer.echo(
            f"{rank:>3}. [{item.corpus_id}] score={item.score:.4f} | {preview(item.text)}"
        )


def print_metrics(metrics: dict[str, float]) -> None:
    for name, value in metrics.items():
        typer.echo(f"  {name}: {value:.4f}")


def fail(exc: RerankerError) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1) from exc


__all__ = [
    "configure_logging",
    "emit_json",
    "fail",
    "load_documents",
    "load_json",
    "preview",
    "print_metrics",
    "print_results",
]
