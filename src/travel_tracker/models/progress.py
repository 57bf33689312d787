"""Progress events emitted while a scan runs.

Events are delivered in order to a single consumer. A scan's event stream
always ends with exactly one ``complete`` event or one ``error`` event with
``fatal=True``.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from travel_tracker.models.message import EmailSummary
from travel_tracker.models.trip import TripSummary


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    stage: Literal["initializing", "searching"]
    message: str
    progress: float


class EmailsFoundEvent(BaseModel):
    type: Literal["emails_found"] = "emails_found"
    count: int
    start_index: int
    message: str
    progress: float


class BatchStartEvent(BaseModel):
    type: Literal["batch_start"] = "batch_start"
    batch_number: int
    total_batches: int
    batch_size: int
    message: str


class ProcessingEmailEvent(BaseModel):
    type: Literal["processing_email"] = "processing_email"
    email: EmailSummary
    email_index: int = Field(description="1-based position of the email within the page")
    total_emails: int
    progress: float


class TripFoundEvent(BaseModel):
    type: Literal["trip_found"] = "trip_found"
    trip: TripSummary
    email: EmailSummary
    processing_time_ms: int


class DuplicateFoundEvent(BaseModel):
    type: Literal["duplicate_found"] = "duplicate_found"
    email: EmailSummary
    processing_time_ms: int


class NoTravelDataEvent(BaseModel):
    type: Literal["no_travel_data"] = "no_travel_data"
    email: EmailSummary
    processing_time_ms: int


class BatchCompleteEvent(BaseModel):
    type: Literal["batch_complete"] = "batch_complete"
    batch_number: int
    progress: float


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    message: str
    progress: float = 100.0
    trips_found: int
    emails_processed: int
    has_more: bool


class ErrorEvent(BaseModel):
    """A failure.

    ``fatal`` errors end the scan; item errors (``fatal=False``, with ``email``
    set) only concern one message.
    """

    type: Literal["error"] = "error"
    fatal: bool
    message: str
    error: str
    email: EmailSummary | None = None


ProgressEvent = Annotated[
    Union[
        StatusEvent,
        EmailsFoundEvent,
        BatchStartEvent,
        ProcessingEmailEvent,
        TripFoundEvent,
        DuplicateFoundEvent,
        NoTravelDataEvent,
        BatchCompleteEvent,
        CompleteEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

progress_event_adapter: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)

ITEM_TERMINAL_EVENT_TYPES = frozenset({"trip_found", "duplicate_found", "no_travel_data", "error"})


def is_terminal(event: BaseModel) -> bool:
    """Whether ``event`` ends a scan's event stream."""

    if isinstance(event, CompleteEvent):
        return True
    return isinstance(event, ErrorEvent) and event.fatal
