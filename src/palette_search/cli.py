"""Command-line entry point: build index files and run ad-hoc queries."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import sys

from palette_search.adapters.corpus_file import load_source_records, save_corpus
from palette_search.config import Settings
from palette_search.domain.exceptions import DuplicateRecordIdError
from palette_search.observability.logging import configure_logging
from palette_search.observability.metrics import get_metrics
from palette_search.search.index_builder import IndexBuilder
from palette_search.search.models import SearchResponse
from palette_search.search.shortcuts import ShortcutProcessor
from palette_search.service_layer.search_service import SearchService


logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="palette-search",
        description="Build command-palette search indexes and query them",
    )
    parser.add_argument(
        "--log-level",
        help="Override LOG_LEVEL for this run",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser("index", help="Normalize raw story/doc records into an index file")
    index_parser.add_argument("source", type=Path, help="JSON file with raw records")
    index_parser.add_argument("output", type=Path, help="Where to write the index JSON")

    query_parser = subparsers.add_parser("query", help="Run a query (shortcut prefixes allowed) against an index")
    query_parser.add_argument("index", type=Path, help="Index or raw records JSON file")
    query_parser.add_argument("query", nargs="+", help="Query text, e.g. 's: button'")
    query_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum rows printed (default: 10)",
    )
    query_parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print Prometheus metrics after the results",
    )

    subparsers.add_parser("shortcuts", help="List the available query shortcuts")
    return parser


def _print_response(response: SearchResponse, limit: int) -> None:
    if not response.results:
        print(f"No results for {response.query!r}")
        return

    shown = response.results[: max(0, limit)]
    print(f"{response.total} result(s) for {response.query!r}" + (" [cached]" if response.cached else ""))
    for rank, result in enumerate(shown, start=1):
        record = result.record
        fields = ", ".join(sorted(result.matched_fields))
        print(f"{rank:>3}. [{record.type.value:<5}] {record.title}  ({result.score:.2f}; {fields})  {record.path}")


def _run_index(args: argparse.Namespace) -> int:
    try:
        records = load_source_records(args.source)
        corpus, report = IndexBuilder().build_with_report(records)
    except FileNotFoundError as exc:
        logger.error("Source file not found: %s", exc)
        return 1
    except (ValueError, DuplicateRecordIdError) as exc:
        logger.error("Could not build index: %s", exc)
        return 1

    save_corpus(corpus, args.output)
    print(f"Indexed {report.accepted} record(s), skipped {report.skipped_count}")
    for skipped in report.skipped:
        print(f"  - #{skipped.position} ({skipped.record_id or 'no id'}): {skipped.reason}")
    return 0


def _run_query(args: argparse.Namespace, settings: Settings) -> int:
    service = SearchService(settings)
    try:
        service.rebuild_index(load_source_records(args.index))
    except FileNotFoundError as exc:
        logger.error("Index file not found: %s", exc)
        return 1
    except (ValueError, DuplicateRecordIdError) as exc:
        logger.error("Could not load index: %s", exc)
        return 1

    _print_response(service.process_and_search(" ".join(args.query)), args.limit)
    if args.metrics:
        print(get_metrics().decode("utf-8"), end="")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(args.log_level or settings.log_level, json_output=settings.log_json)

    if args.command == "index":
        return _run_index(args)
    if args.command == "query":
        return _run_query(args, settings)

    print(ShortcutProcessor().get_help_text())
    return 0


if __name__ == "__main__":
    sys.exit(main())
