"""Model cache and configuration commands."""

from __future__ import annotations

from pathlib import Path

import typer

from core.config import get_settings
from .shared import emit_json


app = typer.Typer(
    help="Inspect reranker models and settings",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("check", help="Report whether model files are present in the local cache")
def check(
    model_id: list[str] = typer.Option(
        None, "--model-id", help="Model id, repeatable (default: configured model)"
    ),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Model cache directory"),
    json_out: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    from retrieval.rerankers.cross_encoder import DEFAULT_CROSS_ENCODER_MODEL_ID
    from retrieval.rerankers.transformers_backend import model_files_present

    settings = get_settings()
    resolved_dir = (cache_dir or Path(settings.reranker_cache_dir)).resolve()
    model_ids = list(model_id) if model_id else [
        settings.reranker_model_id or DEFAULT_CROSS_ENCODER_MODEL_ID
    ]
    report = {mid: model_files_present(resolved_dir, mid) for mid in model_ids}

    if json_out:
        emit_json({"cache_dir": str(resolved_dir), "models": report})
        return
    typer.echo(f"Cache: {resolved_dir}")
    for mid, present in report.items():
        typer.echo(f"  {mid}: {'downloaded' if present else 'missing'}")


@app.command("config", help="Show the effective reranker settings")
def config() -> None:
    emit_json(get_settings().model_dump(exclude={"hf_token"}))
