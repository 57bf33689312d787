"""Unit tests for the SQLite trip store."""

import pytest

from travel_tracker.exceptions import DuplicateTripError
from travel_tracker.models import (
    CarRentalCandidate,
    FlightCandidate,
    HotelCandidate,
    ProcessingStatus,
    RawMessage,
    TripKind,
)
from travel_tracker.store import TripRepository


def _flight(**overrides) -> FlightCandidate:
    data = {
        "airline": "Delta",
        "flight_number": "DL123",
        "departure_date": "2024-07-15",
        "origin_city": "New York",
        "destination_city": "Los Angeles",
        "confidence_score": 0.9,
    }
    data.update(overrides)
    return FlightCandidate(**data)


class TestUsers:
    def test_ensure_user_is_idempotent(self, repository: TripRepository) -> None:
        first = repository.ensure_user("a@example.com", "Alice")
        second = repository.ensure_user("a@example.com")

        assert first.id == second.id
        assert second.name == "Alice"

    def test_ensure_user_updates_name(self, repository: TripRepository) -> None:
        repository.ensure_user("a@example.com", "Alice")

        assert repository.ensure_user("a@example.com", "Alice B").name == "Alice B"

    def test_get_unknown_user(self, repository: TripRepository) -> None:
        assert repository.get_user_by_email("nobody@example.com") is None

    def test_initialize_twice(self, repository: TripRepository) -> None:
        repository.initialize()

        assert repository.get_user_by_email("nobody@example.com") is None


class TestTrips:
    """Test suite for trip persistence and uniqueness."""

    def test_insert_round_trip(self, repository: TripRepository, user) -> None:
        candidate = _flight(
            booking_reference="ABC123",
            seat_number="14C",
            cost=350.0,
            currency="USD",
            extracted_data={"baggage": "1 bag"},
        )

        trip = repository.insert_trip(user.id, "msg-1", candidate, "raw body")

        assert trip.id > 0
        assert trip.user_id == user.id
        assert trip.source_message_id == "msg-1"
        assert trip.kind is TripKind.FLIGHT
        assert trip.candidate == candidate

    def test_lodging_round_trip(self, repository: TripRepository, user) -> None:
        candidate = HotelCandidate(hotel_name="Hyatt", check_in_date="2024-08-01", guests=2, confidence_score=0.7)

        trip = repository.insert_trip(user.id, "msg-1", candidate)

        assert trip.candidate == candidate
        assert repository.list_trips(user.id)[0].candidate == candidate

    def test_same_message_twice_rejected(self, repository: TripRepository, user) -> None:
        repository.insert_trip(user.id, "msg-1", _flight())

        with pytest.raises(DuplicateTripError):
            repository.insert_trip(user.id, "msg-1", HotelCandidate(hotel_name="Hyatt", confidence_score=0.5))

    def test_same_booking_reference_rejected(self, repository: TripRepository, user) -> None:
        repository.insert_trip(user.id, "msg-1", _flight(booking_reference="ABC123"))

        with pytest.raises(DuplicateTripError):
            repository.insert_trip(user.id, "msg-2", _flight(booking_reference="ABC123"))

    def test_missing_booking_references_do_not_collide(self, repository: TripRepository, user) -> None:
        repository.insert_trip(user.id, "msg-1", CarRentalCandidate(confidence_score=0.5))
        repository.insert_trip(user.id, "msg-2", CarRentalCandidate(confidence_score=0.5))

        assert repository.count_trips(user.id) == 2

    def test_uniqueness_is_per_user(self, repository: TripRepository, user) -> None:
        other = repository.ensure_user("other@example.com")
        repository.insert_trip(user.id, "msg-1", _flight(booking_reference="ABC123"))

        repository.insert_trip(other.id, "msg-1", _flight(booking_reference="ABC123"))

        assert repository.count_trips(user.id) == 1
        assert repository.count_trips(other.id) == 1

    def test_find_duplicate_trip(self, repository: TripRepository, user) -> None:
        trip = repository.insert_trip(user.id, "msg-1", _flight(booking_reference="ABC123"))

        assert repository.find_duplicate_trip(user.id, "msg-1", None) == trip.id
        assert repository.find_duplicate_trip(user.id, "msg-9", "ABC123") == trip.id
        assert repository.find_duplicate_trip(user.id, "msg-9", "XYZ999") is None
        assert repository.find_duplicate_trip(user.id + 1, "msg-1", "ABC123") is None

    def test_list_trips_most_recent_travel_first(self, repository: TripRepository, user) -> None:
        repository.insert_trip(user.id, "msg-1", _flight(departure_date="2024-05-01"))
        repository.insert_trip(user.id, "msg-2", HotelCandidate(hotel_name="Hyatt", confidence_score=0.5))
        repository.insert_trip(user.id, "msg-3", _flight(departure_date="2024-07-01"))

        trips = repository.list_trips(user.id)

        assert [t.source_message_id for t in trips] == ["msg-3", "msg-1", "msg-2"]

    def test_delete_scoped_to_owner(self, repository: TripRepository, user) -> None:
        other = repository.ensure_user("other@example.com")
        trip = repository.insert_trip(user.id, "msg-1", _flight())

        assert repository.delete_trip(trip.id, other.id) is False
        assert repository.delete_trip(trip.id, user.id) is True
        assert repository.delete_trip(trip.id, user.id) is False
        assert repository.list_trips(user.id) == []


class TestProcessingLog:
    """Test suite for the email processing log."""

    def _message(self) -> RawMessage:
        return RawMessage(id="msg-1", subject="Your flight", sender="noreply@aa.com", date="Tue")

    def test_entry_lifecycle(self, repository: TripRepository, user) -> None:
        log_id = repository.create_log_entry(user.id, self._message())

        (pending,) = repository.list_log_entries(user.id)
        assert pending.status is ProcessingStatus.PROCESSING
        assert pending.subject == "Your flight"

        repository.complete_log_entry(
            log_id, ProcessingStatus.COMPLETED, trips_found=1, processing_time_ms=42
        )

        (done,) = repository.list_log_entries(user.id)
        assert done.status is ProcessingStatus.COMPLETED
        assert done.trips_found == 1
        assert done.processing_time_ms == 42

    def test_terminal_status_is_final(self, repository: TripRepository, user) -> None:
        log_id = repository.create_log_entry(user.id, self._message())
        repository.complete_log_entry(log_id, ProcessingStatus.FAILED, error_message="boom")

        repository.complete_log_entry(log_id, ProcessingStatus.COMPLETED, trips_found=1)

        (entry,) = repository.list_log_entries(user.id)
        assert entry.status is ProcessingStatus.FAILED
        assert entry.error_message == "boom"
        assert entry.trips_found == 0

    def test_processing_is_not_a_terminal_status(self, repository: TripRepository, user) -> None:
        log_id = repository.create_log_entry(user.id, self._message())

        with pytest.raises(ValueError):
            repository.complete_log_entry(log_id, ProcessingStatus.PROCESSING)

    def test_list_newest_first_with_limit(self, repository: TripRepository, user) -> None:
        for i in range(3):
            repository.create_log_entry(user.id, RawMessage(id=f"msg-{i}", subject=f"s{i}"))

        entries = repository.list_log_entries(user.id, limit=2)

        assert [e.source_message_id for e in entries] == ["msg-2", "msg-1"]
