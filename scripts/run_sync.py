#!/usr/bin/env python3
"""
Run, preview, or inspect a feed sync from a shell or cron.

Settings come from feedsync_config (YAML file plus environment overrides);
``--settings`` points at another file and ``--db-url`` overrides the
database URL.

Usage:
    python3 scripts/run_sync.py run <feed> [--dry-run] [--actor NAME]
    python3 scripts/run_sync.py preview <feed>
    python3 scripts/run_sync.py status <feed>

Examples:
    # Live run of the post-sales feed
    python3 scripts/run_sync.py run posvenda_llc

    # Plan only; nothing is written
    python3 scripts/run_sync.py run tax_form_2026 --dry-run

    # Machine-readable preview
    python3 scripts/run_sync.py preview posvenda_llc --json

Exit codes: 0 ok, 1 run or setup failure, 2 feed already running.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_LOCKED = 2


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile a spreadsheet feed into customer records.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Settings YAML (default: feedsync_config/defaults/feedsync.yaml).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL; overrides settings and FEEDSYNC_DATABASE_URL.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run a feed sync.")
    run.add_argument("feed", help="Feed key (e.g. posvenda_llc).")
    run.add_argument("--dry-run", action="store_true", help="Plan only; write nothing.")
    run.add_argument("--actor", default="cli", help="Actor recorded on audit entries (default: cli).")

    preview = commands.add_parser("preview", help="Show what a run would do.")
    preview.add_argument("feed", help="Feed key.")

    status = commands.add_parser("status", help="Show the feed's last-run state.")
    status.add_argument("feed", help="Feed key.")

    return parser.parse_args(argv)


def _print_run(result, as_json: bool) -> None:
    if as_json:
        print(json.dumps({
            "feedKey": result.feed_key,
            "status": result.status,
            "dryRun": result.dry_run,
            "runId": str(result.run_id) if result.run_id else None,
            "rowsFetched": result.rows_fetched,
            "rowsTotal": result.rows_total,
            "rowsImported": result.rows_imported,
            "rowsUnchanged": result.rows_unchanged,
            "rowsErrors": result.rows_errors,
            "error": result.error,
            "errors": [e.to_dict() for e in result.errors],
        }, indent=2))
        return

    label = "Dry run" if result.dry_run else "Run"
    print(f"{label} of {result.feed_key}: {result.status}")
    if result.error:
        print(f"  Error: {result.error}")
    print(f"  Fetched: {result.rows_fetched}, Total: {result.rows_total}")
    print(
        f"  Imported: {result.rows_imported}, Unchanged: {result.rows_unchanged}, "
        f"Errors: {result.rows_errors}"
    )
    if result.run_id:
        print(f"  Run id: {result.run_id}")
    for err in result.errors[:10]:
        print(f"  Row {err.row}: {err.message}")
    if len(result.errors) > 10:
        print(f"  ... and {len(result.errors) - 10} more errors.")


def _print_preview(result, as_json: bool) -> None:
    if as_json:
        print(json.dumps({
            "feedKey": result.feed_key,
            "fetchedRows": result.fetched_rows,
            "validRows": result.valid_rows,
            "invalidRows": result.invalid_rows,
            "excludedRows": result.excluded_rows,
            "wouldCreate": result.would_create,
            "wouldUpdate": result.would_update,
            "wouldSkip": result.would_skip,
            "errors": [e.to_dict() for e in result.errors],
            "sample": [
                {
                    "row": s.row,
                    "displayName": s.display_name,
                    "customerCode": s.customer_code,
                    "action": s.action,
                }
                for s in result.sample
            ],
        }, indent=2))
        return

    print(f"Preview of {result.feed_key}")
    print(
        f"  Fetched: {result.fetched_rows}, Valid: {result.valid_rows}, "
        f"Invalid: {result.invalid_rows}, Excluded: {result.excluded_rows}"
    )
    print(
        f"  Would create: {result.would_create}, update: {result.would_update}, "
        f"skip: {result.would_skip}"
    )
    for s in result.sample:
        print(f"  Row {s.row}: {s.action:<6} {s.customer_code}  {s.display_name}")
    for err in result.errors:
        print(f"  Row {err.row}: {err.message}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from dataclasses import replace

    from sqlalchemy import select

    from feedsync_config import load_settings
    from feedsync_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
    )
    from feedsync_kernel.domain.clock import SystemClock
    from feedsync_kernel.exceptions import FeedSyncError, LockContentionError
    from feedsync_kernel.logging_config import configure_logging
    from feedsync_kernel.models.sync_state import SyncState
    from feedsync_sync.domain.types import RunTrigger
    from feedsync_sync.locks import build_feed_lock
    from feedsync_sync.services import PreviewEngine, SyncExecutor

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO, stream=sys.stderr)

    try:
        settings = load_settings(args.settings)
        if args.db_url:
            settings = replace(settings, database_url=args.db_url)
        settings.feed(args.feed)
    except FeedSyncError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILED

    try:
        engine = init_engine_from_url(settings.database_url)
        create_tables(engine)
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return EXIT_FAILED

    clock = SystemClock()
    session_factory = get_session_factory()

    if args.command == "status":
        with session_factory() as session:
            state = session.execute(
                select(SyncState).where(SyncState.key == args.feed)
            ).scalar_one_or_none()
        data = state.to_dict() if state else {
            "last_synced_at": None, "last_run_status": None, "last_run_error": None,
        }
        if data["last_synced_at"] is not None:
            data["last_synced_at"] = data["last_synced_at"].isoformat()
        if args.json:
            print(json.dumps(data, indent=2))
        else:
            print(f"Feed {args.feed}")
            for key, value in data.items():
                print(f"  {key}: {value if value is not None else '-'}")
        return EXIT_OK

    if args.command == "preview":
        try:
            result = PreviewEngine(settings, session_factory).preview(args.feed)
        except FeedSyncError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return EXIT_FAILED
        _print_preview(result, args.json)
        return EXIT_OK

    lock = build_feed_lock(engine, settings.lock, clock)
    executor = SyncExecutor(settings, session_factory, lock, clock=clock)
    try:
        result = executor.execute(
            args.feed, dry_run=args.dry_run, trigger=RunTrigger.CLI, actor=args.actor,
        )
    except LockContentionError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_LOCKED

    _print_run(result, args.json)
    return EXIT_OK if result.ok else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
