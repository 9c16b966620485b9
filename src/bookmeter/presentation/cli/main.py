"""
bookmeter command line.

    bookmeter sync wish --input wish.json
    bookmeter diff stacked --input stacked.json --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import find_dotenv, load_dotenv

from bookmeter import __version__
from bookmeter.application.workflows import (
    SyncConfig,
    SyncFinalResult,
    SyncPipeline,
    build_enrichment_pipeline,
)
from bookmeter.domain.book import BookRecord, Catalog, ListType
from bookmeter.domain.book_identity import extract_store_code
from bookmeter.domain.errors import BookmeterError, ConfigError, PersistenceError
from bookmeter.infrastructure.services.settings_service import load_settings
from bookmeter.infrastructure.stores.book_store import BookStore

# Credentials for the metadata services usually live in a local .env.
load_dotenv(find_dotenv(usecwd=True), override=False)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookmeter",
        description="Enrich Bookmeter reading lists and sync them to a local database",
    )
    parser.add_argument("--version", action="store_true", help="print version and exit")
    subparsers = parser.add_subparsers(dest="command")

    list_types = [t.value for t in ListType]

    sync_parser = subparsers.add_parser("sync", help="enrich a scraped list and store it")
    sync_parser.add_argument("list_type", choices=list_types)
    sync_parser.add_argument("--input", "-i", required=True, help="scraped list as JSON")
    sync_parser.add_argument("--db-url", default=None, help="SQLAlchemy URL (default: BOOKMETER_DB_URL)")
    sync_parser.add_argument("--config", default=None, help="libraries.yaml path")
    sync_parser.add_argument("--skip-comparison", action="store_true", help="write even if nothing changed")
    sync_parser.add_argument(
        "--skip-enrichment", action="store_true", help="reuse stored records instead of querying services"
    )
    sync_parser.add_argument("--concurrency", type=int, default=None, help="records enriched at once")
    sync_parser.add_argument("--dry-run", action="store_true", help="report changes without writing")
    sync_parser.add_argument("--json", action="store_true", help="print the run report as JSON")

    diff_parser = subparsers.add_parser("diff", help="compare a scraped list with the stored one")
    diff_parser.add_argument("list_type", choices=list_types)
    diff_parser.add_argument("--input", "-i", required=True, help="scraped list as JSON")
    diff_parser.add_argument("--db-url", default=None, help="SQLAlchemy URL (default: BOOKMETER_DB_URL)")
    diff_parser.add_argument("--json", action="store_true", help="print the diff as JSON")

    return parser


def load_scraped_catalog(path: str) -> Catalog:
    """
    Read the scraper's output.

    Expects a JSON list of objects with ``bookmeter_url`` and either
    ``isbn_or_asin`` or an ``amazon_url`` to take the product code from.
    """
    with open(Path(path), "r", encoding="utf-8") as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        raise ConfigError(f"{path}: expected a JSON list of books")

    records: List[BookRecord] = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict) or not row.get("bookmeter_url"):
            raise ConfigError(f"{path}: entry {i} has no bookmeter_url")
        data: Dict[str, Any] = dict(row)
        if not data.get("isbn_or_asin") and data.get("amazon_url"):
            data["isbn_or_asin"] = extract_store_code(data["amazon_url"]) or ""
        records.append(BookRecord.from_dict(data))
    return Catalog(records)


def _print_report(result: SyncFinalResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return
    diff = result.diff
    print(f"run: {result.run_id}")
    print(f"list: {result.list_type.value} ({len(result.catalog)} records)")
    print(f"status: {result.status}")
    print(f"changes: {diff.summary()}")
    for label, keys in (("added", diff.added), ("removed", diff.removed), ("changed", diff.changed)):
        for key in keys:
            print(f"  {label}: {key}")
    if result.write_stats:
        stats = result.write_stats
        print(
            f"written: {stats['inserted']} inserted, {stats['updated']} updated, "
            f"{stats['deleted']} deleted"
        )


async def _run_sync(parsed: argparse.Namespace) -> int:
    settings = load_settings(parsed.config)
    if parsed.concurrency is not None:
        if parsed.concurrency < 1:
            raise ConfigError("--concurrency must be >= 1")
        settings = replace(settings, concurrency=parsed.concurrency)

    scraped = load_scraped_catalog(parsed.input)
    enrichment = None if parsed.skip_enrichment else build_enrichment_pipeline(settings)
    config = SyncConfig(
        list_type=ListType(parsed.list_type),
        skip_comparison=parsed.skip_comparison,
        skip_enrichment=parsed.skip_enrichment,
        dry_run=parsed.dry_run,
    )
    async with SyncPipeline(BookStore(parsed.db_url), enrichment) as pipeline:
        result = await pipeline.run_sync(scraped, config)
    _print_report(result, parsed.json)
    return 0


async def _run_diff(parsed: argparse.Namespace) -> int:
    scraped = load_scraped_catalog(parsed.input)
    config = SyncConfig(list_type=ListType(parsed.list_type), skip_enrichment=True, dry_run=True)
    async with SyncPipeline(BookStore(parsed.db_url)) as pipeline:
        result = await pipeline.run_sync(scraped, config)
    _print_report(result, parsed.json)
    return 0


def run_cli(args: Optional[List[str]] = None) -> int:
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.version:
        print(f"bookmeter {__version__}")
        return 0

    if not parsed.command:
        parser.print_help()
        return 0

    try:
        if parsed.command == "sync":
            return asyncio.run(_run_sync(parsed))
        if parsed.command == "diff":
            return asyncio.run(_run_diff(parsed))
        return 0
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (BookmeterError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(run_cli())
