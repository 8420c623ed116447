"""Ranking evaluation commands."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from core.config import get_settings
from retrieval.rerankers.errors import RerankerError
from .shared import emit_json, fail, load_json, preview, print_metrics


app = typer.Typer(
    help="Ranking metrics and benchmarks",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("metrics", help="Compute MRR/NDCG/Precision/Recall@k from a judged ranking file")
def metrics(
    path: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        metavar="PATH",
    ),
    k_values: list[int] = typer.Option(
        None,
        "--k",
        min=0,
        help="Cutoff, repeatable (default: 1 3 5 10)",
    ),
    json_out: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    from evaluation.metrics import (
        DEFAULT_K_VALUES,
        calculate_all_metrics,
        calculate_average_metrics,
    )

    resolved_k = list(k_values) if k_values else list(DEFAULT_K_VALUES)
    payload = load_json(path)
    if not isinstance(payload, list):
        raise typer.BadParameter("Expected a JSON list")

    try:
        if _is_query_results(payload):
            average = calculate_average_metrics(payload, resolved_k)
            if json_out:
                emit_json(average.model_dump())
                return
            average.raise_for_error()
            typer.echo(
                f"Queries: {average.total_queries} "
                f"(valid {average.valid_queries}, errors {average.error_queries})"
            )
            print_metrics(average.metrics)
            return

        result = calculate_all_metrics(payload, resolved_k)
    except RerankerError as exc:
        fail(exc)
        return

    if json_out:
        emit_json(result)
        return
    print_metrics(result)


@app.command("benchmark", help="Rerank labelled synthetic candidates and report metrics")
def benchmark(
    mode: str = typer.Option("standard", "--mode", help="quick|standard|full"),
    model_id: str | None = typer.Option(
        None, "--model-id", help="Run every scenario with this model instead"
    ),
    seed: int | None = typer.Option(None, "--seed", help="Candidate sampling seed"),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Batch size"),
    data_file: Path | None = typer.Option(
        None, "--data-file", exists=True, dir_okay=False, help="Benchmark YAML file"
    ),
    json_out: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    from evaluation.benchmark import (
        load_benchmark_corpus,
        run_benchmark,
        scenarios_for_mode,
        summarize,
    )

    corpus = load_benchmark_corpus(data_file)
    try:
        scenarios = scenarios_for_mode(corpus, mode)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if model_id:
        scenarios = [s.model_copy(update={"model_id": model_id}) for s in scenarios]
    if seed is None:
        seed = get_settings().benchmark_seed

    try:
        results = asyncio.run(
            run_benchmark(scenarios, corpus, seed=seed, batch_size=batch_size)
        )
    except RerankerError as exc:
        fail(exc)
        return
    summary = summarize(results)

    if json_out:
        emit_json(
            {
                "scenarios": [r.model_dump(mode="json") for r in results],
                "summary": summary.model_dump(mode="json"),
            }
        )
        return

    for index, result in enumerate(results, start=1):
        scenario = result.scenario
        k = scenario.top_k
        typer.echo(f"\n{'=' * 60}")
        typer.echo(f"Test {index}/{len(results)}: {scenario.name}")
        typer.echo(f"Model: {scenario.model_id}")
        typer.echo(f'Query: "{result.query}"')
        typer.echo(f"Candidates: {scenario.num_candidates} -> Top {k}")
        typer.echo(f"{'=' * 60}")
        typer.echo(f"  Processing time: {result.processing_ms:.2f}ms")
        typer.echo(f"  Throughput: {result.throughput:.1f} candidates/sec")
        print_metrics(
            {
                f"{name}@{k}": result.evaluation.metrics.get(f"{name}@{k}", 0.0)
                for name in ("NDCG", "MRR", "Precision", "Recall")
            }
        )
        typer.echo(f"  Legacy precision: {result.legacy_precision * 100:.1f}%")
        typer.echo(f"  Improvement over random: {result.improvement:.2f}x")
        for rank, item in enumerate(result.results, start=1):
            relevance = item.document.get("expected_relevance", "?")
            typer.echo(
                f"   {rank}. [{relevance:<6}] {item.score:.4f} | {preview(item.text)}"
            )

    typer.echo(f"\n{'=' * 70}")
    typer.echo("SUMMARY")
    typer.echo(f"{'=' * 70}")
    typer.echo(f"  Scenarios: {summary.scenarios}")
    typer.echo(f"  Models: {', '.join(summary.models)}")
    typer.echo(f"  Average legacy precision: {summary.avg_legacy_precision * 100:.1f}%")
    for name, value in summary.at_top_k.items():
        typer.echo(f"  Average {name}@k: {value:.4f}")
    typer.echo(f"  Average improvement: {summary.avg_improvement:.2f}x over random")
    typer.echo(f"  Average processing time: {summary.avg_processing_ms:.2f}ms")
    typer.echo(f"  Overall throughput: {summary.throughput:.1f} candidates/sec")


def _is_query_results(payload: list) -> bool:
    keys = ("ranked_passages", "rankedPassages", "error")
    return bool(payload) and all(
        isinstance(item, dict) and any(key in item for key in keys) for item in payload
    )
