# tests/unit/test_main.py — v2
"""Tests for main.py — CLI entry point."""

from __future__ import annotations

import asyncio
import json
import os
import signal
import sys
import threading
from pathlib import Path

import networkx as nx
import pytest

from deeptime.core.models import Entity, ExtractionResult
from deeptime.llm.errors import RateLimitError
from deeptime.main import _build_parser, _overrides, _route_interrupt_to, main
from deeptime.orchestrator.batch import ExtractionOrchestrator
from deeptime.orchestrator.cancellation import CancellationToken

TURBO_ANSWER = json.dumps({
    "entities": ["Sandstone", {"entity": "Shelf", "type": "Environment"}],
    "triples": [
        {
            "subject": "Sandstone",
            "predicate": "overlies",
            "object": "Shelf",
            "evidenceText": "Sandstone overlies the shelf deposits.",
        },
    ],
})


@pytest.fixture
def workdir(tmp_path, monkeypatch) -> Path:
    """Isolated cwd with an in-memory cache and one API key."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DEEPTIME_CACHE_BACKEND", "memory")
    monkeypatch.setenv("DEEPTIME_API_KEYS", "k1")
    (tmp_path / "doc.txt").write_text("Sandstone overlies the shelf deposits.", encoding="utf-8")
    return tmp_path


@pytest.fixture
def scripted_llm(monkeypatch, fake_client_factory):
    """Route create_llm_client to FakeLLMClient; returns the built clients."""
    built: list = []
    script: dict = {"completions": [TURBO_ANSWER], "error": None}

    def factory(provider, model=None, api_key=None):
        client = fake_client_factory(
            completions=list(script["completions"]), error=script["error"],
        )
        built.append((api_key, client))
        return client

    monkeypatch.setattr("deeptime.extraction.worker.create_llm_client", factory)
    return script, built


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self):
        parser = _build_parser()
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_extract_subcommand(self):
        args = _build_parser().parse_args(
            ["extract", "a.txt", "b.md", "-s", "schema.json", "--turbo"]
        )
        assert args.command == "extract"
        assert args.files == [Path("a.txt"), Path("b.md")]
        assert args.schema == Path("schema.json")
        assert args.turbo is True
        assert args.output is None

    def test_repeated_api_key(self):
        args = _build_parser().parse_args(
            ["extract", "a.txt", "--api-key", "k1", "--api-key", "k2"]
        )
        assert args.api_keys == ["k1", "k2"]

    def test_cache_actions(self):
        assert _build_parser().parse_args(["cache", "stats"]).action == "stats"
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["cache", "purge"])


class TestOverrides:
    def test_no_flags(self):
        args = _build_parser().parse_args(["extract", "a.txt"])
        assert _overrides(args) == {}

    def test_all_flags(self):
        args = _build_parser().parse_args([
            "extract", "a.txt", "--turbo", "--structure", "--no-cache",
            "--provider", "anthropic", "--model", "m", "--concurrency", "2",
            "--api-key", "k1", "--api-key", "k2",
        ])
        assert _overrides(args) == {
            "extraction_mode": "turbo",
            "structure_enabled": True,
            "cache_enabled": False,
            "llm_provider": "anthropic",
            "llm_model": "m",
            "concurrency_limit": 2,
            "api_keys": "k1,k2",
        }

    def test_cache_command_has_no_overrides(self):
        args = _build_parser().parse_args(["cache", "clear"])
        assert _overrides(args) == {}


# ---------------------------------------------------------------------------
# main() tests
# ---------------------------------------------------------------------------

class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_configuration_error(self, workdir, capsys):
        assert main(["extract", "doc.txt", "--concurrency", "0"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_missing_api_key(self, workdir, monkeypatch):
        monkeypatch.delenv("DEEPTIME_API_KEYS")
        assert main(["extract", "doc.txt"]) == 1

    def test_missing_file(self, workdir):
        assert main(["extract", "nope.txt"]) == 1

    def test_unsupported_format(self, workdir):
        (workdir / "doc.pdf").write_bytes(b"%PDF")
        assert main(["extract", "doc.pdf"]) == 1

    def test_unreadable_schema(self, workdir):
        (workdir / "schema.json").write_text("{not json", encoding="utf-8")
        assert main(["extract", "doc.txt", "-s", "schema.json"]) == 1


class TestExtractCommand:
    def test_turbo_extract_writes_report(self, workdir, scripted_llm, sample_schema):
        _, built = scripted_llm
        (workdir / "schema.json").write_text(json.dumps(sample_schema), encoding="utf-8")

        code = main([
            "extract", "doc.txt", "-s", "schema.json", "--turbo", "-o", "out/report.json",
        ])

        assert code == 0
        report = json.loads((workdir / "out" / "report.json").read_text(encoding="utf-8"))
        assert [e["name"] for e in report["entities"]] == ["Sandstone", "Shelf"]
        assert report["triples"][0]["source"] == "doc.txt"
        assert report["stats"]["filesProcessed"] == 1
        assert report["stats"]["triplesExtracted"] == 1
        assert report["errors"] == []
        assert report["unfinished"] == []
        assert [key for key, _ in built] == ["k1"]
        assert "Lithology" in built[0][1].prompts[0]

    def test_report_to_stdout(self, workdir, scripted_llm, capsys):
        assert main(["extract", "doc.txt", "--turbo"]) == 0
        captured = capsys.readouterr()
        report = json.loads(captured.out)
        assert report["stats"]["entitiesFound"] == 2
        assert "Extraction complete" in captured.err

    def test_rate_limit_at_sequential_fails(self, workdir, scripted_llm):
        script, _ = scripted_llm
        script["error"] = RateLimitError()

        code = main(["extract", "doc.txt", "--turbo", "-o", "report.json"])

        assert code == 1
        report = json.loads((workdir / "report.json").read_text(encoding="utf-8"))
        assert report["errors"] == [
            "Rate limit hit on file doc.txt. Even sequential processing failed. Stopping."
        ]
        assert report["unfinished"] == []
        assert report["entities"] == []

    def test_graph_export(self, workdir, scripted_llm, capsys):
        assert main(["extract", "doc.txt", "--turbo", "--graph", "out/triples.graphml"]) == 0

        graph = nx.read_graphml(workdir / "out" / "triples.graphml")
        assert graph.number_of_nodes() == 2
        assert graph.number_of_edges() == 1
        assert "Graph:        2 nodes, 1 edges" in capsys.readouterr().err


class _StopOnSecondDocument:
    """Finishes the first document, then cancels the batch as Ctrl-C would."""

    def __init__(self):
        self.calls: list[str] = []

    async def __call__(self, task, credential, token):
        self.calls.append(task.name)
        if len(self.calls) == 1:
            return ExtractionResult(entities=[Entity(name="Sandstone", type="Lithology")])
        token.cancel("interrupted")
        token.raise_if_cancelled()


class TestExtractCancellation:
    def test_partial_report_written(self, workdir, monkeypatch, capsys):
        for name in ("doc2.txt", "doc3.txt"):
            (workdir / name).write_text(f"Text of {name}.", encoding="utf-8")
        worker = _StopOnSecondDocument()
        build = ExtractionOrchestrator.from_settings.__func__
        monkeypatch.setattr(
            ExtractionOrchestrator,
            "from_settings",
            classmethod(
                lambda cls, settings, schema=None: build(cls, settings, worker=worker, schema=schema)
            ),
        )

        code = main(["extract", "doc.txt", "doc2.txt", "doc3.txt", "-o", "report.json"])

        assert code == 130
        assert worker.calls == ["doc.txt", "doc2.txt"]
        report = json.loads((workdir / "report.json").read_text(encoding="utf-8"))
        assert report["cancelled"] is True
        assert [e["name"] for e in report["entities"]] == ["Sandstone"]
        assert report["stats"]["filesProcessed"] == 1
        assert report["unfinished"] == ["doc2.txt", "doc3.txt"]
        assert report["errors"] == []
        assert "Extraction cancelled" in capsys.readouterr().err

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal handling")
    @pytest.mark.asyncio
    async def test_sigint_cancels_token(self):
        if threading.current_thread() is not threading.main_thread():
            pytest.skip("signal handlers need the main thread")
        token = CancellationToken()
        restore = _route_interrupt_to(token)
        try:
            os.kill(os.getpid(), signal.SIGINT)
            await asyncio.wait_for(token.wait(), timeout=2)
        finally:
            restore()
        assert token.is_cancelled
        assert token.reason == "interrupted"


class TestCacheCommand:
    def test_stats_on_empty_json_cache(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DEEPTIME_CACHE_ROOT", str(tmp_path / "cache"))

        assert main(["cache", "stats"]) == 0
        out = capsys.readouterr().out
        assert "Cache backend: json" in out
        assert "Entries:    0" in out

    def test_clear_memory_cache(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DEEPTIME_CACHE_BACKEND", "memory")

        assert main(["cache", "clear"]) == 0
        assert "Removed 0 cached results (memory)" in capsys.readouterr().out
