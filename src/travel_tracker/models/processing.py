"""Processing log models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


# Outcome of one scanned email.
ItemStatus = Literal["trip_found", "duplicate", "no_travel_data", "failed"]


class ProcessingStatus(str, Enum):
    """Lifecycle of one email's processing log entry."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingLogEntry(BaseModel):
    """Audit record for one processed email."""

    id: int
    user_id: int
    source_message_id: str
    subject: str | None = None
    sender: str | None = None
    date: str | None = None
    status: ProcessingStatus
    trips_found: int = Field(default=0, ge=0, le=1)
    processing_time_ms: int | None = None
    error_message: str | None = None
    created_at: datetime


class ProcessingLogSummary(BaseModel):
    """Per-email line in a scan summary."""

    source_message_id: str
    subject: str
    sender: str
    status: ItemStatus
    processing_time_ms: int
