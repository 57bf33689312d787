"""Data models for Travel Tracker.

This module contains Pydantic models for data validation and serialization.
"""

from travel_tracker.models.message import EmailSummary, RawMessage
from travel_tracker.models.processing import (
    ItemStatus,
    ProcessingLogEntry,
    ProcessingLogSummary,
    ProcessingStatus,
)
from travel_tracker.models.progress import (
    ITEM_TERMINAL_EVENT_TYPES,
    BatchCompleteEvent,
    BatchStartEvent,
    CompleteEvent,
    DuplicateFoundEvent,
    EmailsFoundEvent,
    ErrorEvent,
    NoTravelDataEvent,
    ProcessingEmailEvent,
    ProgressEvent,
    StatusEvent,
    TripFoundEvent,
    is_terminal,
    progress_event_adapter,
)
from travel_tracker.models.trip import (
    CarRentalCandidate,
    FlightCandidate,
    HotelCandidate,
    OtherCandidate,
    Trip,
    TripCandidate,
    TripKind,
    TripSummary,
    User,
    VacationRentalCandidate,
    trip_candidate_adapter,
)

__all__ = [
    "ITEM_TERMINAL_EVENT_TYPES",
    "BatchCompleteEvent",
    "BatchStartEvent",
    "CarRentalCandidate",
    "CompleteEvent",
    "DuplicateFoundEvent",
    "EmailSummary",
    "EmailsFoundEvent",
    "ErrorEvent",
    "FlightCandidate",
    "HotelCandidate",
    "ItemStatus",
    "NoTravelDataEvent",
    "OtherCandidate",
    "ProcessingEmailEvent",
    "ProcessingLogEntry",
    "ProcessingLogSummary",
    "ProcessingStatus",
    "ProgressEvent",
    "RawMessage",
    "StatusEvent",
    "Trip",
    "TripCandidate",
    "TripFoundEvent",
    "TripKind",
    "TripSummary",
    "User",
    "VacationRentalCandidate",
    "is_terminal",
    "progress_event_adapter",
    "trip_candidate_adapter",
]
