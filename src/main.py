# src/main.py — v2
"""CLI entry point — extract and cache commands.

Usage:
    deeptime extract <file>... [--schema schema.json] [--turbo] [-o out.json] [--graph out.graphml]
    deeptime cache stats
    deeptime cache clear

Ctrl-C during extract stops the batch; documents already finished are
still aggregated and written out.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from deeptime.version import __version__

if TYPE_CHECKING:
    from deeptime.config.settings import Settings
    from deeptime.orchestrator.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    from deeptime.config.settings import ConfigurationError, load_settings
    from deeptime.logging.logger import setup_logging_from_settings

    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings(**_overrides(args))
    except (ConfigurationError, ValueError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    setup_logging_from_settings(settings, verbose=args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="deeptime",
        description=f"deeptime v{__version__} — schema-driven knowledge extraction",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- extract ---
    p_extract = subparsers.add_parser(
        "extract", help="Extract entities and triples from documents",
    )
    p_extract.add_argument("files", type=Path, nargs="+", help="Documents (.txt, .md)")
    p_extract.add_argument(
        "-s", "--schema", type=Path, default=None,
        help="Schema JSON file (concept axes and predicate categories)",
    )
    p_extract.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Write aggregated results to this JSON file (default: stdout)",
    )
    p_extract.add_argument(
        "--graph", type=Path, default=None,
        help="Also write the merged triple graph as GraphML",
    )
    p_extract.add_argument(
        "--turbo", action="store_true",
        help="Single-call extraction per document",
    )
    p_extract.add_argument(
        "--structure", action="store_true",
        help="Run the document structure stage first",
    )
    p_extract.add_argument("--provider", default=None, help="LLM provider")
    p_extract.add_argument("--model", default=None, help="Model name")
    p_extract.add_argument(
        "--concurrency", type=int, default=None,
        help="Upper bound on documents processed in parallel",
    )
    p_extract.add_argument(
        "--api-key", dest="api_keys", action="append", default=None,
        help="API key (repeat for several keys)",
    )
    p_extract.add_argument(
        "--no-cache", action="store_true",
        help="Neither read nor write the result cache",
    )
    p_extract.set_defaults(func=_cmd_extract)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Inspect or clear the result cache")
    p_cache.add_argument("action", choices=["stats", "clear"])
    p_cache.set_defaults(func=_cmd_cache)

    return parser


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    """Map CLI flags onto Settings fields; unset flags keep .env values."""
    overrides: dict[str, object] = {}
    if getattr(args, "turbo", False):
        overrides["extraction_mode"] = "turbo"
    if getattr(args, "structure", False):
        overrides["structure_enabled"] = True
    if getattr(args, "no_cache", False):
        overrides["cache_enabled"] = False
    if getattr(args, "provider", None):
        overrides["llm_provider"] = args.provider
    if getattr(args, "model", None):
        overrides["llm_model"] = args.model
    if getattr(args, "concurrency", None) is not None:
        overrides["concurrency_limit"] = args.concurrency
    if getattr(args, "api_keys", None):
        overrides["api_keys"] = ",".join(args.api_keys)
    return overrides


async def _cmd_extract(args: argparse.Namespace, settings: Settings) -> int:
    """Run one batch over the given files and report aggregated results."""
    from deeptime.extraction.aggregator import (
        aggregate_results,
        build_triple_graph,
        export_graphml,
    )
    from deeptime.extraction.loaders import UnsupportedFormatError, load_document
    from deeptime.orchestrator.batch import ExtractionOrchestrator
    from deeptime.orchestrator.cancellation import CancellationToken
    from deeptime.orchestrator.models import Task

    if not settings.api_keys_list:
        logger.error("No API key configured: set DEEPTIME_API_KEYS or pass --api-key")
        return 1

    schema = None
    if args.schema is not None:
        try:
            schema = json.loads(args.schema.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Could not read schema %s: %s", args.schema, exc)
            return 1

    tasks: list[Task] = []
    for path in args.files:
        if not path.is_file():
            logger.error("File not found: %s", path)
            return 1
        try:
            tasks.append(Task(name=path.name, payload=load_document(path)))
        except UnsupportedFormatError as exc:
            logger.error("%s", exc)
            return 1

    orchestrator = ExtractionOrchestrator.from_settings(settings, schema=schema)
    token = CancellationToken()
    restore_sigint = _route_interrupt_to(token)
    try:
        outcome = await orchestrator.run_batch(tasks, schema=schema, token=token)
    finally:
        restore_sigint()

    ordered = {t.name: outcome.results[t.name] for t in tasks if t.name in outcome.results}
    aggregated = aggregate_results(ordered, duration_seconds=outcome.duration_seconds)
    graph = build_triple_graph(aggregated.triples, aggregated.entities)
    report = aggregated.model_dump(mode="json", by_alias=True)
    report["notices"] = outcome.notices
    report["errors"] = outcome.errors
    report["unfinished"] = outcome.unfinished
    report["cancelled"] = outcome.cancelled

    payload = json.dumps(report, ensure_ascii=False, indent=2)
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload, encoding="utf-8")
        logger.info("Wrote %s", args.output)
    else:
        print(payload)
    if args.graph is not None:
        export_graphml(graph, args.graph)

    for notice in outcome.notices:
        logger.warning("%s", notice)
    for error in outcome.errors:
        logger.error("%s", error)
    if outcome.cancelled:
        logger.warning(
            "Extraction stopped: %d finished, %d unfinished",
            len(ordered), len(outcome.unfinished),
        )

    status = "complete" if outcome.success else "incomplete"
    if outcome.cancelled:
        status = "cancelled"
    print(
        f"\nExtraction {status}:"
        f"\n  Files:        {len(tasks)} ({len(outcome.cached)} from cache)"
        f"\n  Entities:     {aggregated.stats.entities_found}"
        f"\n  Triples:      {aggregated.stats.triples_extracted}"
        f"\n  Graph:        {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges"
        f"\n  Concurrency:  {outcome.initial_concurrency} → {outcome.final_concurrency}"
        f"\n  Duration:     {outcome.duration_seconds:.1f}s",
        file=sys.stderr,
    )
    if outcome.cancelled:
        return 130
    return 0 if outcome.success else 1


def _route_interrupt_to(token: CancellationToken) -> Callable[[], None]:
    """Make Ctrl-C cancel ``token`` instead of killing the event loop.

    Returns a callable that restores the previous SIGINT handling. Where the
    loop cannot install signal handlers, Ctrl-C keeps raising
    KeyboardInterrupt.
    """
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
    except (NotImplementedError, RuntimeError, ValueError):
        return lambda: None
    return lambda: loop.remove_signal_handler(signal.SIGINT)


async def _cmd_cache(args: argparse.Namespace, settings: Settings) -> int:
    """Show the size of, or empty, the configured result cache."""
    from deeptime.cache.cache_factory import create_cache_store
    from deeptime.cache.result_cache import ResultCache

    cache = ResultCache(create_cache_store(settings), max_age_days=settings.cache_max_age_days)
    if args.action == "clear":
        removed = await cache.clear()
        print(f"Removed {removed} cached results ({settings.cache_backend})")
    else:
        size = await cache.size()
        print(f"Cache backend: {settings.cache_backend}")
        print(f"  Entries:    {size}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
