"""Command-line interface for Travel Tracker.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

import structlog

from travel_tracker.config import Settings, get_settings
from travel_tracker.exceptions import ScanFailedError, TravelTrackerError
from travel_tracker.extraction import TripExtractor
from travel_tracker.gmail.client import GmailClient
from travel_tracker.gmail.source import TravelMailSource
from travel_tracker.llm import build_completion_client
from travel_tracker.models import ProgressEvent, RawMessage, Trip
from travel_tracker.pipeline import ScanOrchestrator, ScanSummary
from travel_tracker.store import TripRepository

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="travel-tracker", description="Travel Tracker")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to the SQLite database (default: settings database_path)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Scan Gmail for travel bookings")
    scan_parser.add_argument("--user", default=None, help="Mailbox owner email (default: settings user_email)")
    scan_parser.add_argument("--offset", type=int, default=0, help="Index of the first email to scan")
    scan_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Number of emails to scan (default: settings scan_page_size)",
    )
    mode = scan_parser.add_mutually_exclusive_group()
    mode.add_argument("--json", action="store_true", help="Print progress events as JSON lines")
    mode.add_argument(
        "--summary",
        action="store_true",
        help="Run without progress updates and print only the final summary",
    )

    parse_parser = subparsers.add_parser("parse", help="Extract a trip from a single email body")
    parse_parser.add_argument("path", type=Path, help="File holding the email body ('-' for stdin)")
    parse_parser.add_argument("--subject", default="No Subject", help="Email subject")
    parse_parser.add_argument("--sender", default="Unknown Sender", help="Email sender")

    trips_parser = subparsers.add_parser("trips", help="List or delete stored trips")
    trips_sub = trips_parser.add_subparsers(dest="trips_command", required=True)
    list_parser = trips_sub.add_parser("list", help="List a user's trips")
    list_parser.add_argument("--user", default=None, help="Mailbox owner email")
    delete_parser = trips_sub.add_parser("delete", help="Delete one trip")
    delete_parser.add_argument("trip_id", type=int, help="Trip ID")
    delete_parser.add_argument("--user", default=None, help="Mailbox owner email")

    logs_parser = subparsers.add_parser("logs", help="Show the email processing log")
    logs_parser.add_argument("--user", default=None, help="Mailbox owner email")
    logs_parser.add_argument("--limit", type=int, default=50, help="Max entries")

    return parser


def _configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _open_repository(settings: Settings, db_path: Path | None) -> TripRepository:
    repo = TripRepository(db_path or settings.database_path)
    repo.initialize()
    return repo


def _resolve_user_email(args: argparse.Namespace, settings: Settings) -> str | None:
    email = args.user or settings.user_email
    if not email:
        print("No user given: pass --user or set TRAVEL_TRACKER_USER_EMAIL", file=sys.stderr)
    return email


def format_event(event: ProgressEvent) -> str:
    """Render a progress event as one line of terminal output."""

    if event.type in ("status", "emails_found", "batch_start"):
        return event.message
    if event.type == "processing_email":
        return f"[{event.email_index}/{event.total_emails}] {event.email.subject} ({event.email.sender})"
    if event.type == "trip_found":
        trip = event.trip
        where = " -> ".join(p for p in (trip.origin, trip.destination) if p)
        what = trip.hotel_name or " ".join(p for p in (trip.airline, trip.flight_number) if p)
        detail = ", ".join(p for p in (what, where, trip.departure_date) if p)
        return f"  trip found: {trip.type.value} {detail} (confidence {trip.confidence:.2f})"
    if event.type == "duplicate_found":
        return f"  duplicate: {event.email.subject}"
    if event.type == "no_travel_data":
        return f"  no travel data: {event.email.subject}"
    if event.type == "batch_complete":
        return f"Batch {event.batch_number} complete ({event.progress:.0f}%)"
    if event.type == "complete":
        more = " More emails may be available." if event.has_more else ""
        return f"{event.message}.{more}" if not event.message.endswith(".") else event.message + more
    if event.fatal:
        return f"ERROR: {event.message}: {event.error}"
    subject = event.email.subject if event.email else "(unknown email)"
    return f"  failed: {subject}: {event.error}"


def _print_summary(summary: ScanSummary) -> None:
    print(f"Emails processed: {summary.emails_processed}")
    print(f"Trips found: {summary.trips_found}")
    print(f"Duplicates: {summary.duplicates}")
    print(f"No travel data: {summary.no_travel_data}")
    print(f"Failed: {summary.failed}")
    print(f"Total time: {summary.total_processing_time_ms} ms")
    print(f"Average per email: {summary.average_processing_time_ms} ms")
    if summary.has_more:
        print("More emails may be available; rerun with a higher --offset.")


def _format_trip(trip: Trip) -> str:
    c = trip.candidate
    when = getattr(c, "departure_date", None) or getattr(c, "check_in_date", None) or "(no date)"
    name = (
        getattr(c, "hotel_name", None)
        or " ".join(p for p in (getattr(c, "airline", None), getattr(c, "flight_number", None)) if p)
        or "-"
    )
    route = " -> ".join(p for p in (c.origin_city, c.destination_city) if p) or "-"
    ref = c.booking_reference or "-"
    return f"{trip.id}\t{trip.kind.value}\t{when}\t{name}\t{route}\t{ref}"


async def _cmd_scan(args: argparse.Namespace, settings: Settings) -> int:
    email = _resolve_user_email(args, settings)
    if not email:
        return 2

    repo = _open_repository(settings, args.db)
    user = repo.ensure_user(email)

    gmail = GmailClient(settings)
    await gmail.authenticate()

    client = build_completion_client(settings)
    orchestrator = ScanOrchestrator(
        TravelMailSource(gmail, settings),
        TripExtractor(client, settings),
        repo,
        settings=settings,
    )

    try:
        if args.summary:
            try:
                summary = await orchestrator.scan(user.id, args.offset, args.limit)
            except ScanFailedError as exc:
                print(f"Scan failed: {exc}", file=sys.stderr)
                return 1
            _print_summary(summary)
            return 0

        exit_code = 1
        async for event in orchestrator.stream(user.id, args.offset, args.limit):
            print(event.model_dump_json() if args.json else format_event(event), flush=True)
            if event.type == "complete":
                exit_code = 0
        return exit_code
    finally:
        await client.aclose()


async def _cmd_parse(args: argparse.Namespace, settings: Settings) -> int:
    body = sys.stdin.read() if str(args.path) == "-" else args.path.read_text(encoding="utf-8")
    message = RawMessage(id="adhoc", subject=args.subject, sender=args.sender, body=body)

    client = build_completion_client(settings)
    try:
        start = time.perf_counter()
        candidate = await TripExtractor(client, settings).extract(message)
        elapsed_ms = int((time.perf_counter() - start) * 1000)
    finally:
        await client.aclose()

    if candidate is None:
        print(f"No travel data found in email ({elapsed_ms} ms)")
        return 0

    print(candidate.model_dump_json(indent=2))
    print(f"Processed in {elapsed_ms} ms", file=sys.stderr)
    return 0


def _cmd_trips_list(args: argparse.Namespace, settings: Settings) -> int:
    email = _resolve_user_email(args, settings)
    if not email:
        return 2

    repo = _open_repository(settings, args.db)
    user = repo.get_user_by_email(email)
    trips = repo.list_trips(user.id) if user else []
    for trip in trips:
        print(_format_trip(trip))
    print(f"{len(trips)} trips")
    return 0


def _cmd_trips_delete(args: argparse.Namespace, settings: Settings) -> int:
    email = _resolve_user_email(args, settings)
    if not email:
        return 2

    repo = _open_repository(settings, args.db)
    user = repo.get_user_by_email(email)
    if user is None or not repo.delete_trip(args.trip_id, user.id):
        print(f"Trip {args.trip_id} not found", file=sys.stderr)
        return 1
    print(f"Deleted trip {args.trip_id}")
    return 0


def _cmd_logs(args: argparse.Namespace, settings: Settings) -> int:
    email = _resolve_user_email(args, settings)
    if not email:
        return 2

    repo = _open_repository(settings, args.db)
    user = repo.get_user_by_email(email)
    entries = repo.list_log_entries(user.id, limit=args.limit) if user else []
    for e in entries:
        timing = f"{e.processing_time_ms} ms" if e.processing_time_ms is not None else "-"
        error = f"\t{e.error_message}" if e.error_message else ""
        print(f"{e.created_at.isoformat()}\t{e.status.value}\t{e.trips_found}\t{timing}\t{e.subject}{error}")
    print(f"{len(entries)} entries")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Travel Tracker CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    _configure_logging(settings)

    logger.info("travel_tracker_started", version="0.1.0", debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        if parsed.command == "scan":
            return asyncio.run(_cmd_scan(parsed, settings))
        if parsed.command == "parse":
            return asyncio.run(_cmd_parse(parsed, settings))
        if parsed.command == "trips":
            if parsed.trips_command == "list":
                return _cmd_trips_list(parsed, settings)
            if parsed.trips_command == "delete":
                return _cmd_trips_delete(parsed, settings)
        if parsed.command == "logs":
            return _cmd_logs(parsed, settings)
    except TravelTrackerError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
