"""Typer CLI entrypoint for cross-encoder reranking."""

from __future__ import annotations

import os
import shlex
import sys
from importlib import import_module
from pathlib import Path

import typer

from crossrank import __version__

_SUBCOMMAND_SPECS: list[tuple[str, str, str]] = [
    ("evaluate", "cli.commands.evaluate", "Ranking metrics and benchmarks"),
    ("model", "cli.commands.model", "Inspect reranker models and settings"),
]
_SUBCOMMAND_NAMES = {name for name, _, _ in _SUBCOMMAND_SPECS}
_OPTIONS_WITH_VALUES = {"--log-level"}
_SUBCOMMANDS_REGISTERED = False

app = typer.Typer(
    help="Cross-encoder reranking and ranking evaluation",
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
    add_completion=True,
)


@app.callback()
def root(
    ctx: typer.Context,
    version_flag: bool = typer.Option(
        False,
        "-v",
        "--version",
        help="Print the version",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="DEBUG|INFO|WARNING|ERROR (default: CROSSRANK_LOG_LEVEL)",
    ),
) -> None:
    from cli.commands.shared import configure_logging

    if version_flag:
        typer.echo(__version__)
        raise typer.Exit()
    configure_logging(log_level)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command(help="Rerank documents against a query")
def rerank(
    query: str = typer.Argument(..., metavar="QUERY"),
    docs: list[str] = typer.Option(
        None,
        "--doc",
        help="Document text, repeatable",
    ),
    docs_file: Path | None = typer.Option(
        None,
        "--docs-file",
        dir_okay=False,
        help="JSON list or JSONL file of strings or {\"text\": ...} records",
    ),
    top_k: int | None = typer.Option(None, "--top-k", min=0, help="Results to return"),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Batch size"),
    model_id: str | None = typer.Option(None, "--model-id", help="Cross-encoder model"),
    json_out: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    from cli.commands.shared import emit_json, fail, load_documents, print_results
    from core.config import get_settings
    from retrieval.rerankers.cross_encoder import CrossEncoderReranker
    from retrieval.rerankers.errors import RerankerError

    settings = get_settings()
    documents = load_documents(docs, docs_file)
    if not documents:
        raise typer.BadParameter("Provide documents with --doc or --docs-file")

    try:
        reranker = CrossEncoderReranker(
            model_id=model_id,
            top_k=settings.reranker_top_k,
            batch_size=settings.reranker_batch_size,
            auto_initialize=True,
        )
        results = reranker.rerank_sync(
            query, documents, top_k=top_k, batch_size=batch_size
        )
    except RerankerError as exc:
        fail(exc)
        return

    if json_out:
        emit_json([item.as_dict() for item in results])
        return
    print_results(results)


def _parse_invoked_subcommand() -> str | None:
    completion_args = os.getenv("_TYPER_COMPLETE_ARGS")
    tokens: list[str]
    if completion_args:
        try:
            tokens = shlex.split(completion_args)
        except ValueError:
            tokens = completion_args.split()
        if tokens:
            tokens = tokens[1:]
    else:
        tokens = sys.argv[1:]

    skip_next = False
    for token in tokens:
        if skip_next:
            skip_next = False
            continue
        if token in _SUBCOMMAND_NAMES:
            return token
        if token.startswith("-"):
            skip_next = token in _OPTIONS_WITH_VALUES
            continue
        break
    return None


def _register_subcommands() -> None:
    global _SUBCOMMANDS_REGISTERED
    if _SUBCOMMANDS_REGISTERED:
        return

    selected = _parse_invoked_subcommand()
    for name, module_path, help_text in _SUBCOMMAND_SPECS:
        if selected == name:
            module = import_module(module_path)
            app.add_typer(module.app, name=name)
            continue
        app.add_typer(
            typer.Typer(help=help_text, add_completion=False, no_args_is_help=True),
            name=name,
        )

    _SUBCOMMANDS_REGISTERED = True


def main() -> None:
    _register_subcommands()
    app()


__all__ = ["app", "main"]
