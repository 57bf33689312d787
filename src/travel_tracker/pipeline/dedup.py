"""Duplicate check and persistence of accepted trip candidates."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from travel_tracker.exceptions import DuplicateTripError
from travel_tracker.models import Trip, TripCandidate
from travel_tracker.store import TripRepository

logger = structlog.get_logger()


DEFAULT_CURRENCY = "USD"


@dataclass(frozen=True)
class AdmitResult:
    """Outcome of admitting one candidate.

    Exactly one of ``trip`` (accepted) or ``duplicate`` is meaningful.
    """

    trip: Trip | None = None
    existing_trip_id: int | None = None

    @property
    def duplicate(self) -> bool:
        return self.trip is None


class DedupGate:
    """Admits trip candidates, suppressing duplicates per user.

    A candidate duplicates an existing trip of the same user when it comes
    from the same source message or carries the same booking reference. The
    lookup and the insert are separate statements; the store's uniqueness
    constraints catch candidates that race past the lookup.
    """

    def __init__(self, repository: TripRepository) -> None:
        self.repository = repository

    async def admit(
        self,
        user_id: int,
        candidate: TripCandidate,
        source_message_id: str,
        raw_email_content: str | None = None,
    ) -> AdmitResult:
        existing = await asyncio.to_thread(
            self.repository.find_duplicate_trip,
            user_id,
            source_message_id,
            candidate.booking_reference,
        )
        if existing is not None:
            logger.info(
                "trip_duplicate_skipped",
                user_id=user_id,
                source_message_id=source_message_id,
                existing_trip_id=existing,
            )
            return AdmitResult(existing_trip_id=existing)

        if not candidate.currency:
            candidate = candidate.model_copy(update={"currency": DEFAULT_CURRENCY})

        try:
            trip = await asyncio.to_thread(
                self.repository.insert_trip,
                user_id,
                source_message_id,
                candidate,
                raw_email_content,
            )
        except DuplicateTripError:
            logger.info(
                "trip_duplicate_on_insert",
                user_id=user_id,
                source_message_id=source_message_id,
            )
            return AdmitResult()

        logger.info(
            "trip_admitted",
            user_id=user_id,
            trip_id=trip.id,
            kind=candidate.kind,
            source_message_id=source_message_id,
        )
        return AdmitResult(trip=trip)
