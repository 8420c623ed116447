from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from cli.app import app
from cli.commands import evaluate as evaluate_command
from cli.commands import model as model_command
from retrieval.rerankers.model_cache import ModelCache

runner = CliRunner()


def _use_backend(monkeypatch, backend) -> None:
    cache = ModelCache(backend)
    monkeypatch.setattr(
        "retrieval.rerankers.cross_encoder.get_model_cache", lambda: cache
    )


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert result.output.strip()


def test_rerank_json_output(monkeypatch, make_backend) -> None:
    _use_backend(monkeypatch, make_backend())

    result = runner.invoke(
        app,
        [
            "rerank",
            "machine learning",
            "--doc",
            "cooking pasta",
            "--doc",
            "machine learning basics",
            "--top-k",
            "1",
            "--json",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert len(payload) == 1
    assert payload[0]["corpus_id"] == 1
    assert payload[0]["text"] == "machine learning basics"


def test_rerank_reads_jsonl_records(tmp_path: Path, monkeypatch, make_backend) -> None:
    _use_backend(monkeypatch, make_backend())
    docs_file = tmp_path / "docs.jsonl"
    docs_file.write_text(
        '{"text": "weather today", "id": "w"}\n\n{"text": "machine learning", "id": "m"}\n',
        encoding="utf-8",
    )

    result = runner.invoke(
        app, ["rerank", "machine learning", "--docs-file", str(docs_file), "--json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert [item["id"] for item in payload] == ["m", "w"]


def test_rerank_reports_load_failure(monkeypatch, make_backend) -> None:
    _use_backend(monkeypatch, make_backend(fail_load=True))

    result = runner.invoke(app, ["rerank", "query", "--doc", "text"])

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_rerank_requires_documents() -> None:
    result = runner.invoke(app, ["rerank", "query"])

    assert result.exit_code != 0


def test_metrics_for_single_ranking(tmp_path: Path) -> None:
    path = tmp_path / "ranking.json"
    path.write_text(json.dumps([True, False, True, False]), encoding="utf-8")

    result = runner.invoke(evaluate_command.app, ["metrics", str(path), "--k", "3", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["Precision@3"] == 2 / 3
    assert round(payload["NDCG@3"], 4) == 0.8155


def test_metrics_average_over_queries(tmp_path: Path) -> None:
    path = tmp_path / "results.json"
    path.write_text(
        json.dumps(
            [
                {"query": "a", "rankedPassages": [{"isRelevant": True}]},
                {"query": "b", "error": "timeout"},
            ]
        ),
        encoding="utf-8",
    )

    result = runner.invoke(evaluate_command.app, ["metrics", str(path), "--k", "1"])

    assert result.exit_code == 0, result.output
    assert "valid 1, errors 1" in result.output
    assert "MRR@1: 1.0000" in result.output


def test_metrics_without_valid_results_fail(tmp_path: Path) -> None:
    path = tmp_path / "results.json"
    path.write_text(json.dumps([{"query": "b", "error": "timeout"}]), encoding="utf-8")

    result = runner.invoke(evaluate_command.app, ["metrics", str(path)])

    assert result.exit_code == 1
    assert "No valid results" in result.output


def test_model_check_reports_cache_state(tmp_path: Path) -> None:
    model_dir = tmp_path / "org" / "ready"
    model_dir.mkdir(parents=True)
    for name in ("config.json", "tokenizer.json", "model.safetensors"):
        (model_dir / name).write_text("{}", encoding="utf-8")

    result = runner.invoke(
        model_command.app,
        [
            "check",
            "--model-id",
            "org/ready",
            "--model-id",
            "org/missing",
            "--cache-dir",
            str(tmp_path),
            "--json",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["models"] == {"org/ready": True, "org/missing": False}


def test_model_config_hides_token(monkeypatch) -> None:
    from core.config import get_settings

    monkeypatch.setenv("HF_TOKEN", "secret")
    get_settings.cache_clear()

    result = runner.invoke(model_command.app, ["config"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert "hf_token" not in payload
    assert payload["reranker_top_k"] == 4
