"""Scan orchestration.

This module provides the orchestrator that turns one page of travel emails
into trips: it fetches the page, processes emails in fixed-size concurrent
batches and reports progress as it goes.

Event order for one scan::

    status(initializing) -> status(searching) -> emails_found
    -> {batch_start -> (processing_email -> item result)* -> batch_complete}*
    -> complete

A failure to list the mailbox ends the scan with a fatal ``error`` event
instead of ``complete``. Failures of single emails produce a non-fatal
``error`` event and the scan continues.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

import structlog
from pydantic import BaseModel, Field

from travel_tracker.config import Settings
from travel_tracker.exceptions import ExtractionError, ScanFailedError
from travel_tracker.extraction import TripExtractor
from travel_tracker.gmail.source import MessagePage, TravelMailSource
from travel_tracker.models import (
    BatchCompleteEvent,
    BatchStartEvent,
    CompleteEvent,
    DuplicateFoundEvent,
    EmailsFoundEvent,
    EmailSummary,
    ErrorEvent,
    ItemStatus,
    NoTravelDataEvent,
    ProcessingEmailEvent,
    ProcessingLogSummary,
    ProcessingStatus,
    ProgressEvent,
    RawMessage,
    StatusEvent,
    TripCandidate,
    TripFoundEvent,
    TripSummary,
)
from travel_tracker.pipeline.dedup import DedupGate
from travel_tracker.pipeline.progress import ProgressReporter
from travel_tracker.store import TripRepository
from travel_tracker.utils import chunked

logger = structlog.get_logger()


MAX_SUMMARY_LOGS = 20

# Progress percentages: searching takes the first 15%, email processing the
# next 70%, and the final 15% is reached on completion.
_PROGRESS_SEARCH_DONE = 15.0
_PROGRESS_PROCESSING_SPAN = 70.0


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _processing_progress(done: int, total: int) -> float:
    if total <= 0:
        return _PROGRESS_SEARCH_DONE
    return round(_PROGRESS_SEARCH_DONE + (done / total) * _PROGRESS_PROCESSING_SPAN, 1)


@dataclass(frozen=True)
class ItemOutcome:
    """What happened to one email."""

    message: RawMessage
    status: ItemStatus
    processing_time_ms: int
    trip: TripSummary | None = None
    error: str | None = None


class ScanSummary(BaseModel):
    """Result of one scan."""

    emails_processed: int
    trips_found: int
    duplicates: int = 0
    no_travel_data: int = 0
    failed: int = 0
    total_processing_time_ms: int = Field(description="Wall-clock duration of the scan")
    average_processing_time_ms: int = Field(description="Mean per-email processing time")
    has_more: bool
    trips: list[TripSummary] = Field(default_factory=list)
    processing_logs: list[ProcessingLogSummary] = Field(
        default_factory=list,
        description=f"Per-email results, capped at {MAX_SUMMARY_LOGS}",
    )


@dataclass
class ScanTally:
    """Counters for one scan; only the orchestrator updates them."""

    emails_processed: int = 0
    duplicates: int = 0
    no_travel_data: int = 0
    failed: int = 0
    item_time_ms: int = 0
    trips: list[TripSummary] = field(default_factory=list)
    logs: list[ProcessingLogSummary] = field(default_factory=list)

    def record(self, outcome: ItemOutcome) -> None:
        self.emails_processed += 1
        self.item_time_ms += outcome.processing_time_ms
        if outcome.status == "trip_found" and outcome.trip is not None:
            self.trips.append(outcome.trip)
        elif outcome.status == "duplicate":
            self.duplicates += 1
        elif outcome.status == "no_travel_data":
            self.no_travel_data += 1
        else:
            self.failed += 1

        self.logs.append(
            ProcessingLogSummary(
                source_message_id=outcome.message.id,
                subject=outcome.message.subject,
                sender=outcome.message.sender,
                status=outcome.status,
                processing_time_ms=outcome.processing_time_ms,
            )
        )

    def summary(self, *, has_more: bool, elapsed_ms: int) -> ScanSummary:
        average = self.item_time_ms // self.emails_processed if self.emails_processed else 0
        return ScanSummary(
            emails_processed=self.emails_processed,
            trips_found=len(self.trips),
            duplicates=self.duplicates,
            no_travel_data=self.no_travel_data,
            failed=self.failed,
            total_processing_time_ms=elapsed_ms,
            average_processing_time_ms=average,
            has_more=has_more,
            trips=list(self.trips),
            processing_logs=self.logs[:MAX_SUMMARY_LOGS],
        )


class ScanOrchestrator:
    """Drives a scan of one page of travel emails for one user.

    This orchestrator coordinates the mail source, the extractor, the
    duplicate gate and the processing log.
    """

    def __init__(
        self,
        source: TravelMailSource,
        extractor: TripExtractor,
        repository: TripRepository,
        gate: DedupGate | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            source: Paged travel email source.
            extractor: Trip extractor.
            repository: Trip store, used for the processing log.
            gate: Duplicate gate. If None, one is built on ``repository``.
            settings: Application settings. If None, uses default settings.
        """
        from travel_tracker.config import get_settings

        self.settings = settings or get_settings()
        self.source = source
        self.extractor = extractor
        self.repository = repository
        self.gate = gate or DedupGate(repository)
        self._background: set[asyncio.Task[None]] = set()
        logger.info("scan_orchestrator_initialized")

    async def run(
        self,
        user_id: int,
        offset: int = 0,
        limit: int | None = None,
        reporter: ProgressReporter | None = None,
    ) -> ScanSummary:
        """Scan one page of travel emails, reporting progress as it goes.

        Args:
            user_id: Owner of the mailbox.
            offset: Index of the first email of the page within the search results.
            limit: Page size. If None, uses ``scan_page_size``.
            reporter: Receives progress events. If None, events are discarded.

        Returns:
            Summary of the scan.

        Raises:
            ScanFailedError: If the scan aborted; a fatal ``error`` event has
                been emitted and no ``complete`` event follows.
        """
        reporter = reporter or ProgressReporter()
        limit = self.settings.scan_page_size if limit is None else limit

        try:
            return await self._run(user_id, offset, limit, reporter)
        except ScanFailedError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("scan_failed", user_id=user_id, error=str(exc))
            reporter.emit(ErrorEvent(fatal=True, message="Scan failed", error=str(exc)))
            raise ScanFailedError(str(exc)) from exc

    async def stream(
        self,
        user_id: int,
        offset: int = 0,
        limit: int | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Run a scan in the background and yield its progress events.

        The scan keeps running if the consumer stops iterating early, so
        in-flight writes always complete.
        """

        reporter = ProgressReporter()
        task = asyncio.create_task(self._run_detached(user_id, offset, limit, reporter))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        async for event in reporter.events():
            yield event

    async def scan(self, user_id: int, offset: int = 0, limit: int | None = None) -> ScanSummary:
        """Scan one page without progress reporting.

        A log entry is opened for every email of the page, then all of them
        are extracted with bounded concurrency, and each result is admitted
        and its entry closed in page order.

        Raises:
            ScanFailedError: If the mailbox search fails.
        """
        limit = self.settings.scan_page_size if limit is None else limit
        started = time.perf_counter()

        page = await self._fetch_page(offset, limit)
        opened: list[int | Exception] = []
        for message in page.messages:
            try:
                opened.append(
                    await asyncio.to_thread(self.repository.create_log_entry, user_id, message)
                )
            except Exception as exc:  # noqa: BLE001
                opened.append(exc)
        results = await self.extractor.extract_many(
            page.messages, self.settings.extraction_concurrency
        )

        tally = ScanTally()
        for message, entry, result in zip(page.messages, opened, results):
            admit_start = time.perf_counter()
            log_id = entry if isinstance(entry, int) else None
            try:
                if isinstance(entry, Exception):
                    raise entry
                if result.error is not None:
                    raise ExtractionError(result.error)
                outcome = await self._settle(
                    user_id,
                    message,
                    log_id,
                    result.candidate,
                    lambda: result.processing_time_ms + _elapsed_ms(admit_start),
                )
            except Exception as exc:  # noqa: BLE001
                outcome = await self._fail(
                    message, log_id, exc, result.processing_time_ms + _elapsed_ms(admit_start)
                )
            tally.record(outcome)

        summary = tally.summary(has_more=page.has_more, elapsed_ms=_elapsed_ms(started))
        logger.info(
            "scan_completed",
            user_id=user_id,
            emails_processed=summary.emails_processed,
            trips_found=summary.trips_found,
            total_processing_time_ms=summary.total_processing_time_ms,
        )
        return summary

    async def _run(
        self,
        user_id: int,
        offset: int,
        limit: int,
        reporter: ProgressReporter,
    ) -> ScanSummary:
        started = time.perf_counter()
        logger.info("scan_started", user_id=user_id, offset=offset, limit=limit)

        reporter.emit(
            StatusEvent(stage="initializing", message="Initializing mail connection...", progress=0)
        )
        reporter.emit(
            StatusEvent(stage="searching", message="Searching for travel emails...", progress=5)
        )

        try:
            page = await self._fetch_page(offset, limit)
        except ScanFailedError as exc:
            reporter.emit(
                ErrorEvent(fatal=True, message="Failed to scan mailbox", error=str(exc.__cause__ or exc))
            )
            raise

        emails = page.messages
        total = len(emails)
        reporter.emit(
            EmailsFoundEvent(
                count=total,
                start_index=offset,
                message=f"Found {total} emails to process",
                progress=_PROGRESS_SEARCH_DONE,
            )
        )

        tally = ScanTally()
        batch_size = max(1, self.settings.scan_batch_size)
        batches = chunked(emails, batch_size)

        for batch_index, batch in enumerate(batches):
            batch_number = batch_index + 1
            reporter.emit(
                BatchStartEvent(
                    batch_number=batch_number,
                    total_batches=len(batches),
                    batch_size=len(batch),
                    message=f"Processing batch {batch_number}/{len(batches)}...",
                )
            )

            outcomes = await asyncio.gather(
                *(
                    self._process_item(user_id, message, batch_index * batch_size + i, total, reporter)
                    for i, message in enumerate(batch)
                )
            )
            for outcome in outcomes:
                tally.record(outcome)

            reporter.emit(
                BatchCompleteEvent(
                    batch_number=batch_number,
                    progress=_processing_progress(tally.emails_processed, total),
                )
            )

            if batch_number < len(batches):
                await asyncio.sleep(self.settings.scan_batch_delay_seconds)

        summary = tally.summary(has_more=page.has_more, elapsed_ms=_elapsed_ms(started))
        if total == 0:
            message = "No more emails found"
        else:
            message = (
                f"Scan complete! Processed {summary.emails_processed} emails, "
                f"found {summary.trips_found} trips"
            )
        reporter.emit(
            CompleteEvent(
                message=message,
                trips_found=summary.trips_found,
                emails_processed=summary.emails_processed,
                has_more=summary.has_more,
            )
        )
        logger.info(
            "scan_completed",
            user_id=user_id,
            emails_processed=summary.emails_processed,
            trips_found=summary.trips_found,
            failed=summary.failed,
            has_more=summary.has_more,
        )
        return summary

    async def _run_detached(
        self,
        user_id: int,
        offset: int,
        limit: int | None,
        reporter: ProgressReporter,
    ) -> None:
        try:
            await self.run(user_id, offset, limit, reporter)
        except ScanFailedError as exc:
            logger.info("streamed_scan_aborted", user_id=user_id, error=str(exc))
        finally:
            if not reporter.closed:
                reporter.emit(
                    ErrorEvent(fatal=True, message="Scan ended unexpectedly", error="scan interrupted")
                )

    async def _fetch_page(self, offset: int, limit: int) -> MessagePage:
        try:
            return await self.source.fetch_page(offset, limit)
        except Exception as exc:  # noqa: BLE001
            logger.error("scan_page_fetch_failed", offset=offset, limit=limit, error=str(exc))
            raise ScanFailedError(f"Failed to fetch travel emails: {exc}") from exc

    async def _process_item(
        self,
        user_id: int,
        message: RawMessage,
        index: int,
        total: int,
        reporter: ProgressReporter,
    ) -> ItemOutcome:
        reporter.emit(
            ProcessingEmailEvent(
                email=EmailSummary.from_message(message),
                email_index=index + 1,
                total_emails=total,
                progress=_processing_progress(index, total),
            )
        )

        start = time.perf_counter()
        log_id: int | None = None
        try:
            log_id = await asyncio.to_thread(self.repository.create_log_entry, user_id, message)
            candidate = await self.extractor.extract(message)
            outcome = await self._settle(user_id, message, log_id, candidate, lambda: _elapsed_ms(start))
        except Exception as exc:  # noqa: BLE001
            outcome = await self._fail(message, log_id, exc, _elapsed_ms(start))

        reporter.emit(self._item_event(outcome))
        return outcome

    async def _settle(
        self,
        user_id: int,
        message: RawMessage,
        log_id: int,
        candidate: TripCandidate | None,
        elapsed_ms: Callable[[], int],
    ) -> ItemOutcome:
        if candidate is None:
            status: ItemStatus = "no_travel_data"
            trip = None
        else:
            result = await self.gate.admit(user_id, candidate, message.id, message.body)
            status = "duplicate" if result.duplicate else "trip_found"
            trip = result.trip.summary() if result.trip is not None else None

        processing_time_ms = elapsed_ms()
        await asyncio.to_thread(
            self.repository.complete_log_entry,
            log_id,
            ProcessingStatus.COMPLETED,
            trips_found=1 if trip is not None else 0,
            processing_time_ms=processing_time_ms,
        )
        return ItemOutcome(
            message=message,
            status=status,
            processing_time_ms=processing_time_ms,
            trip=trip,
        )

    async def _fail(
        self,
        message: RawMessage,
        log_id: int | None,
        exc: Exception,
        processing_time_ms: int,
    ) -> ItemOutcome:
        error = str(exc) or type(exc).__name__
        logger.warning("email_processing_failed", message_id=message.id, error=error)

        if log_id is not None:
            try:
                await asyncio.to_thread(
                    self.repository.complete_log_entry,
                    log_id,
                    ProcessingStatus.FAILED,
                    processing_time_ms=processing_time_ms,
                    error_message=error,
                )
            except Exception as log_exc:  # noqa: BLE001
                logger.error("log_entry_update_failed", log_id=log_id, error=str(log_exc))

        return ItemOutcome(
            message=message,
            status="failed",
            processing_time_ms=processing_time_ms,
            error=error,
        )

    def _item_event(self, outcome: ItemOutcome) -> ProgressEvent:
        email = EmailSummary.from_message(outcome.message)
        if outcome.status == "trip_found" and outcome.trip is not None:
            return TripFoundEvent(
                trip=outcome.trip, email=email, processing_time_ms=outcome.processing_time_ms
            )
        if outcome.status == "duplicate":
            return DuplicateFoundEvent(email=email, processing_time_ms=outcome.processing_time_ms)
        if outcome.status == "no_travel_data":
            return NoTravelDataEvent(email=email, processing_time_ms=outcome.processing_time_ms)
        return ErrorEvent(
            fatal=False,
            message="Failed to process email",
            error=outcome.error or "unknown error",
            email=email,
        )
