"""Unit tests for the command-line interface."""

import pytest

from travel_tracker.cli import _build_parser, format_event, main
from travel_tracker.models import (
    CompleteEvent,
    EmailSummary,
    ErrorEvent,
    FlightCandidate,
    HotelCandidate,
    ProcessingStatus,
    RawMessage,
    TripFoundEvent,
    TripKind,
    TripSummary,
)
from travel_tracker.store import TripRepository


@pytest.fixture
def seeded_db(tmp_path):
    db = tmp_path / "cli.sqlite3"
    repo = TripRepository(db)
    repo.initialize()
    user = repo.ensure_user("traveler@example.com")
    repo.insert_trip(
        user.id,
        "msg-1",
        FlightCandidate(
            airline="Delta",
            flight_number="DL123",
            departure_date="2024-07-15",
            origin_city="New York",
            destination_city="Los Angeles",
            booking_reference="ABC123",
            confidence_score=0.9,
        ),
    )
    repo.insert_trip(user.id, "msg-2", HotelCandidate(hotel_name="Hyatt", confidence_score=0.7))
    log_id = repo.create_log_entry(user.id, RawMessage(id="msg-1", subject="Flight confirmation"))
    repo.complete_log_entry(log_id, ProcessingStatus.COMPLETED, trips_found=1, processing_time_ms=12)
    return db, repo, user


class TestParser:
    def test_scan_options(self) -> None:
        args = _build_parser().parse_args(["scan", "--offset", "50", "--limit", "25", "--json"])

        assert args.command == "scan"
        assert args.offset == 50
        assert args.limit == 25
        assert args.json is True
        assert args.summary is False

    def test_json_and_summary_are_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["scan", "--json", "--summary"])

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args([])


class TestFormatEvent:
    def test_trip_found(self) -> None:
        event = TripFoundEvent(
            trip=TripSummary(
                id=1,
                type=TripKind.FLIGHT,
                airline="Delta",
                flight_number="DL123",
                origin="New York",
                destination="Los Angeles",
                departure_date="2024-07-15",
                confidence=0.9,
            ),
            email=EmailSummary(subject="Your flight", sender="noreply@delta.com"),
            processing_time_ms=20,
        )

        line = format_event(event)

        assert "Delta DL123" in line
        assert "New York -> Los Angeles" in line
        assert "0.90" in line

    def test_complete_with_more(self) -> None:
        event = CompleteEvent(
            message="Scan complete! Processed 5 emails, found 1 trips",
            trips_found=1,
            emails_processed=5,
            has_more=True,
        )

        assert format_event(event).endswith("More emails may be available.")

    def test_item_error(self) -> None:
        event = ErrorEvent(
            fatal=False,
            message="Failed to process email",
            error="timeout",
            email=EmailSummary(subject="Hotel booking", sender="x@y.com"),
        )

        assert format_event(event) == "  failed: Hotel booking: timeout"


class TestCommands:
    """Test suite for the store-backed commands."""

    def test_trips_list(self, seeded_db, capsys: pytest.CaptureFixture[str]) -> None:
        db, _, _ = seeded_db

        exit_code = main(["--db", str(db), "trips", "list", "--user", "traveler@example.com"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "DL123" in out
        assert "ABC123" in out
        assert "Hyatt" in out
        assert out.strip().endswith("2 trips")

    def test_trips_list_unknown_user(self, seeded_db, capsys: pytest.CaptureFixture[str]) -> None:
        db, _, _ = seeded_db

        exit_code = main(["--db", str(db), "trips", "list", "--user", "nobody@example.com"])

        assert exit_code == 0
        assert "0 trips" in capsys.readouterr().out

    def test_trips_delete(self, seeded_db) -> None:
        db, repo, user = seeded_db
        trip_id = repo.list_trips(user.id)[0].id

        assert main(["--db", str(db), "trips", "delete", str(trip_id), "--user", "traveler@example.com"]) == 0
        assert main(["--db", str(db), "trips", "delete", str(trip_id), "--user", "traveler@example.com"]) == 1
        assert repo.count_trips(user.id) == 1

    def test_trips_delete_other_users_trip(self, seeded_db) -> None:
        db, repo, user = seeded_db
        repo.ensure_user("other@example.com")
        trip_id = repo.list_trips(user.id)[0].id

        assert main(["--db", str(db), "trips", "delete", str(trip_id), "--user", "other@example.com"]) == 1
        assert repo.count_trips(user.id) == 2

    def test_logs(self, seeded_db, capsys: pytest.CaptureFixture[str]) -> None:
        db, _, _ = seeded_db

        exit_code = main(["--db", str(db), "logs", "--user", "traveler@example.com"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "completed" in out
        assert "Flight confirmation" in out

    def test_missing_user(self, seeded_db, monkeypatch: pytest.MonkeyPatch) -> None:
        from travel_tracker.config import get_settings

        db, _, _ = seeded_db
        monkeypatch.delenv("TRAVEL_TRACKER_USER_EMAIL", raising=False)
        get_settings.cache_clear()

        try:
            assert main(["--db", str(db), "trips", "list"]) == 2
        finally:
            get_settings.cache_clear()
