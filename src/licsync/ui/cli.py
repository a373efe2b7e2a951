# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from licsync.app import (
    get_sync_statistics,
    get_sync_status,
    list_sync_runs,
    run_license_sync,
    sync_pending_licenses,
    sync_single_license,
)
from licsync.config import ConfigurationError, configure_logging
from licsync.domain.reconciliation import SyncAlreadyRunning, SyncOptions, SyncTimedOut
from licsync.domain.reconciliation.engine import DEFAULT_PENDING_LIMIT
from licsync.ui.payloads import (
    PendingSyncPayload,
    SingleSyncPayload,
    SyncResultPayload,
    SyncRunPayload,
    SyncStatisticsPayload,
    SyncStatusPayload,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INVALID_ARGS = 2
EXIT_ALREADY_RUNNING = 3


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile external licenses")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Run one license sync")
    sync.add_argument(
        "--force",
        action="store_true",
        help="Wait for a running sync to finish instead of refusing",
    )
    sync.add_argument(
        "--batch-size",
        type=_positive_int,
        default=None,
        help="Number of records written per transaction (defaults to config)",
    )
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the result without writing anything",
    )
    sync.add_argument(
        "--bidirectional",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Push internally modified licenses back (defaults to config)",
    )
    sync.add_argument(
        "--internal-only",
        action="store_true",
        help="Reconcile from the stored external mirror without calling the API",
    )

    sync_one = subparsers.add_parser("sync-one", help="Re-sync a single license by appId")
    sync_one.add_argument("app_id", help="External appId of the license")

    sync_pending = subparsers.add_parser(
        "sync-pending", help="Re-sync licenses that are pending or failed"
    )
    sync_pending.add_argument(
        "--limit",
        type=_positive_int,
        default=DEFAULT_PENDING_LIMIT,
        help="Maximum number of licenses to re-sync (default: %(default)s)",
    )

    subparsers.add_parser("status", help="Show the current sync status")

    stats = subparsers.add_parser("stats", help="Show sync status counts")
    stats.add_argument(
        "--no-source",
        dest="include_source",
        action="store_false",
        help="Skip the license API health check",
    )

    history = subparsers.add_parser("history", help="List recent sync runs")
    history.add_argument(
        "--limit",
        type=_positive_int,
        default=20,
        help="Number of runs to show (default: %(default)s)",
    )

    return parser.parse_args(list(argv))


def _print_json(payload: dict[str, Any] | list[dict[str, Any]]) -> None:
    print(json.dumps(payload, indent=2))


def _options_from_args(args: argparse.Namespace) -> SyncOptions:
    return SyncOptions(
        force=args.force,
        batch_size=args.batch_size,
        dry_run=args.dry_run,
        bidirectional=args.bidirectional,
        sync_to_internal_only=args.internal_only,
    )


def _run_command(args: argparse.Namespace) -> int:
    if args.command == "sync":
        result = run_license_sync(_options_from_args(args))
        _print_json(SyncResultPayload.from_result(result).to_json_dict())
    elif args.command == "sync-one":
        single = sync_single_license(args.app_id)
        _print_json(SingleSyncPayload.from_result(single).to_json_dict())
        if not single.succeeded:
            return EXIT_FATAL
    elif args.command == "sync-pending":
        pending = sync_pending_licenses(args.limit)
        _print_json(PendingSyncPayload.from_result(pending).to_json_dict())
    elif args.command == "status":
        _print_json(SyncStatusPayload.from_status(get_sync_status()).to_json_dict())
    elif args.command == "stats":
        stats = get_sync_statistics(include_source=args.include_source)
        _print_json(SyncStatisticsPayload.from_statistics(stats).to_json_dict())
    elif args.command == "history":
        runs = list_sync_runs(limit=args.limit)
        _print_json([SyncRunPayload.from_run(run).to_json_dict() for run in runs])
    else:
        raise ValueError(f"Unsupported command: {args.command}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Main application entry point; returns the process exit code."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INVALID_ARGS

    try:
        return _run_command(parsed_args)
    except ConfigurationError:
        log.exception("Invalid configuration")
        return EXIT_INVALID_ARGS
    except SyncAlreadyRunning as exc:
        log.error("%s", exc)  # noqa: TRY400
        return EXIT_ALREADY_RUNNING
    except SyncTimedOut as exc:
        log.error("%s", exc)  # noqa: TRY400
        _print_json(SyncResultPayload.from_result(exc.result).to_json_dict())
        return EXIT_FATAL
    except Exception:
        log.exception("Fatal error during sync")
        return EXIT_FATAL


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    sys.exit(main())


if __name__ == "__main__":
    run()
