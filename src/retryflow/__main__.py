"""
Maintenance CLI for a durable retry record store.

Usage:
    # Aggregate statistics
    python -m retryflow stats --store /var/lib/retryflow/records.json

    # One record in detail
    python -m retryflow show evt-123

    # Records whose next attempt is due now
    python -m retryflow due

    # Delete terminal records older than 30 days (or --days N)
    python -m retryflow cleanup --days 7

The store file comes from --store, else from `store_path` in the config file
(--config, $RETRYFLOW_CONFIG or ./config.yaml).
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

from retryflow.config import load_config
from retryflow.core.errors import RetryFlowError
from retryflow.core.logging import setup_logging
from retryflow.retry.models import RetryRecord
from retryflow.retry.store import JsonFileRetryRecordStore

logger = logging.getLogger(__name__)


class RecordStoreCLI:
    """Read and maintenance commands over one JSON record store."""

    def __init__(self, store: JsonFileRetryRecordStore):
        self.store = store

    async def print_stats(self, as_json: bool = False) -> None:
        stats = await self.store.get_statistics()
        if as_json:
            print(stats.model_dump_json(indent=2))
            return

        print(f"\n{'='*72}")
        print(f"Retry Statistics ({self.store.path})")
        print(f"{'='*72}\n")
        print(f"  Total records:     {stats.total_retries}")
        print(f"  Succeeded:         {stats.successful_retries}")
        print(f"  Failed:            {stats.failed_retries}")
        print(f"  Dead-lettered:     {stats.dead_letter_events}")
        print(f"  In progress:       {stats.in_progress}")
        print(f"  Average attempts:  {stats.average_retry_count:.2f}")

        if stats.retry_rate_by_event_type:
            print()
            print(
                f"  {'Event Type':<30} {'Total':>6} {'OK':>6} {'Failed':>7} {'DLQ':>6} {'Avg':>6}"
            )
            print(f"  {'-'*66}")
            for event_type, t in stats.retry_rate_by_event_type.items():
                print(
                    f"  {event_type:<30} {t.total:>6} {t.successful:>6} {t.failed:>7} "
                    f"{t.dead_lettered:>6} {t.average_attempts:>6.2f}"
                )
        print()

    async def show_record(self, event_id: str, as_json: bool = False) -> bool:
        record = await self.store.find_by_event_id(event_id)
        if record is None:
            print(f"Error: No retry record found for event '{event_id}'")
            return False

        if as_json:
            print(record.model_dump_json(indent=2))
            return True

        print(f"\n{'='*72}")
        print(f"Retry Record: {event_id}")
        print(f"{'='*72}\n")
        print(f"  Event Type:     {record.event_type}")
        print(f"  Aggregate:      {record.aggregate_id or '-'}")
        print(f"  Originator:     {record.originator_id or '-'}")
        print(f"  Status:         {record.status.value}")
        print(f"  Attempts:       {record.attempts}/{record.max_attempts}")
        print(f"  First Attempt:  {record.first_attempt_at.isoformat()}")
        print(f"  Last Attempt:   {record.last_attempt_at.isoformat()}")
        print(
            f"  Next Retry:     {record.next_retry_at.isoformat() if record.next_retry_at else '-'}"
        )
        print()
        if record.last_error:
            print("Last Error:")
            print(f"  {record.last_error}")
            print()
        if record.metadata:
            print("Metadata:")
            for key, value in record.metadata.items():
                print(f"  {key}: {value}")
            print()
        return True

    async def list_due(self, as_json: bool = False) -> None:
        due = await self.store.find_due(self.store.clock.now())
        if as_json:
            print(json.dumps([r.model_dump(mode="json") for r in due], indent=2))
            return

        if not due:
            print("No retries due.")
            return

        print(f"\n{'Event ID':<36} {'Event Type':<24} {'Attempts':<10} {'Due Since':<25}")
        print(f"{'-'*96}")
        for record in due:
            print(_due_row(record))
        print()

    async def cleanup(self, days: int) -> int:
        removed = await self.store.cleanup(timedelta(days=days))
        print(f"Removed {removed} terminal retry record(s) older than {days} day(s).")
        return removed


def _due_row(record: RetryRecord) -> str:
    attempts = f"{record.attempts}/{record.max_attempts}"
    return (
        f"{record.event_id:<36} {record.event_type:<24} {attempts:<10} "
        f"{record.next_retry_at.isoformat():<25}"
    )


async def run_command(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    # Command output goes to stdout, so only warnings are logged unless -v
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        json_format=config.json_logs,
    )

    store_path = args.store or config.store_path
    if not store_path:
        print("Error: no record store configured (use --store or set store_path)")
        return 1

    if not Path(store_path).exists():
        print(f"Error: record store not found: {store_path}")
        return 1

    cli = RecordStoreCLI(JsonFileRetryRecordStore(store_path))

    if args.command == "stats":
        await cli.print_stats(as_json=args.json)
    elif args.command == "show":
        if not await cli.show_record(args.event_id, as_json=args.json):
            return 1
    elif args.command == "due":
        await cli.list_due(as_json=args.json)
    elif args.command == "cleanup":
        days = args.days if args.days is not None else config.retention_days
        await cli.cleanup(days)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retryflow",
        description="Retry record store maintenance CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  retryflow stats --store records.json
  retryflow show evt-123 --json
  retryflow due
  retryflow cleanup --days 7
        """,
    )
    parser.add_argument("--store", help="Path to the JSON record store file")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("stats", help="Show retry statistics")

    show_parser = subparsers.add_parser("show", help="Show one retry record")
    show_parser.add_argument("event_id", help="Event ID of the record")

    subparsers.add_parser("due", help="List records whose next attempt is due")

    cleanup_parser = subparsers.add_parser(
        "cleanup", help="Delete old terminal records"
    )
    cleanup_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention in days (default: retention_days from config)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return asyncio.run(run_command(args))
    except (RetryFlowError, ValueError) as e:
        print(f"Error: {e}")
        logger.debug("Command failed", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
