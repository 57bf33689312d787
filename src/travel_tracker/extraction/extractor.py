"""Trip extraction from travel emails.

Extraction is best-effort: a reply that cannot be parsed or that fails
validation simply yields no candidate. Only a completion call that keeps
failing after all retries is reported as an error.
"""

from __future__ import annotations

import asyncio
import json
import math
import re
import time
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError

from travel_tracker.config import Settings
from travel_tracker.exceptions import ExtractionError, TravelTrackerError
from travel_tracker.extraction.prompt import (
    PROMPT_VERSION,
    SYSTEM_PROMPT,
    build_trip_extraction_prompt,
)
from travel_tracker.models import RawMessage, TripCandidate, TripKind, trip_candidate_adapter
from travel_tracker.models.trip import COMMON_FIELDS, FLIGHT_FIELDS, LODGING_FIELDS, MAX_GUESTS
from travel_tracker.protocols import CompletionClient
from travel_tracker.utils import chunked, retry_async

logger = structlog.get_logger()


_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.S)

_KIND_FIELDS: dict[str, tuple[str, ...]] = {
    TripKind.FLIGHT.value: FLIGHT_FIELDS,
    TripKind.HOTEL.value: LODGING_FIELDS,
    TripKind.VACATION_RENTAL.value: LODGING_FIELDS,
    TripKind.CAR_RENTAL.value: (),
    TripKind.OTHER.value: (),
}

_NUMERIC_FIELDS = frozenset({"cost", "guests", "confidence_score"})


def _extract_json_object(raw: str) -> dict:
    """Extract the first JSON object from a raw model response."""

    raw = (raw or "").strip()
    if not raw:
        raise ValueError("empty model response")

    # Fast path: direct JSON.
    try:
        obj = json.loads(raw)
        if isinstance(obj, dict):
            return obj
    except ValueError:
        pass

    # Tolerant path: find {...} region (code fences, leading prose).
    m = _JSON_OBJECT_RE.search(raw)
    if not m:
        raise ValueError("model response did not contain a JSON object")

    obj = json.loads(m.group(0))
    if not isinstance(obj, dict):
        raise ValueError("extracted JSON was not an object")
    return obj


def _clean_str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    s = str(value).strip()
    if not s or s.lower() in {"null", "none", "n/a"}:
        return None
    return s


def _parse_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            number = float(str(value).strip().replace(",", ""))
    except (OverflowError, ValueError):
        return None
    # inf and NaN are not amounts.
    return number if math.isfinite(number) else None


def build_candidate(data: dict[str, Any], min_confidence: float = 0.3) -> TripCandidate | None:
    """Validate a parsed model reply and turn it into a trip candidate.

    Returns None when the reply has an unknown kind, a missing or low
    confidence score, or lacks the minimum details for its kind.
    """

    kind = _clean_str(data.get("type") or data.get("kind"))
    kind = kind.lower() if kind else None
    if kind not in _KIND_FIELDS:
        logger.info("candidate_rejected", reason="unknown_kind", kind=kind)
        return None

    confidence = data.get("confidence_score")
    if (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not math.isfinite(confidence)
    ):
        logger.info("candidate_rejected", reason="missing_confidence", kind=kind)
        return None
    if confidence < min_confidence:
        logger.info("candidate_rejected", reason="low_confidence", kind=kind, confidence=confidence)
        return None

    fields: dict[str, Any] = {"kind": kind, "confidence_score": float(confidence)}
    for name in (*COMMON_FIELDS, *_KIND_FIELDS[kind]):
        if name in fields:
            continue
        if name == "cost":
            fields[name] = _parse_number(data.get(name))
        elif name == "guests":
            guests = _parse_number(data.get(name))
            in_range = guests is not None and 0 <= guests <= MAX_GUESTS
            fields[name] = int(guests) if in_range else None
        elif name == "currency":
            currency = _clean_str(data.get(name))
            fields[name] = currency.upper() if currency else None
        elif name not in _NUMERIC_FIELDS:
            fields[name] = _clean_str(data.get(name))

    extra = data.get("extracted_data")
    if isinstance(extra, dict):
        fields["extracted_data"] = extra

    try:
        candidate = trip_candidate_adapter.validate_python(fields)
    except ValidationError as exc:
        logger.info("candidate_rejected", reason="invalid_fields", kind=kind, error=str(exc))
        return None

    if not candidate.has_required_details():
        logger.info("candidate_rejected", reason="missing_required_details", kind=kind)
        return None

    return candidate


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of extracting one message in a bulk run."""

    message_id: str
    candidate: TripCandidate | None
    processing_time_ms: int
    error: str | None = None


class TripExtractor:
    """Turns travel emails into validated trip candidates using an LLM."""

    def __init__(self, client: CompletionClient, settings: Settings | None = None) -> None:
        """Initialize the extractor.

        Args:
            client: Completion backend.
            settings: Application settings. If None, uses default settings.
        """
        from travel_tracker.config import get_settings

        self.client = client
        self.settings = settings or get_settings()
        self._calls = asyncio.Semaphore(max(1, self.settings.extraction_concurrency))

    async def extract(self, message: RawMessage) -> TripCandidate | None:
        """Extract a trip candidate from one email.

        Returns:
            The validated candidate, or None if the email holds no usable
            travel data.

        Raises:
            ExtractionError: If the completion call fails after all retries.
        """

        prompt = build_trip_extraction_prompt(
            subject=message.subject,
            sender=message.sender,
            body=message.body,
            body_char_limit=self.settings.body_char_limit,
        )

        raw = await self._complete(message.id, prompt)

        try:
            data = _extract_json_object(raw)
        except ValueError as exc:
            logger.info("extraction_unparseable", message_id=message.id, error=str(exc))
            return None

        candidate = build_candidate(data, self.settings.min_confidence)
        if candidate is not None:
            logger.info(
                "trip_candidate_extracted",
                message_id=message.id,
                kind=candidate.kind,
                confidence=candidate.confidence_score,
                prompt_version=PROMPT_VERSION,
            )
        return candidate

    async def extract_many(
        self,
        messages: list[RawMessage],
        concurrency_limit: int | None = None,
    ) -> list[ExtractionResult]:
        """Extract candidates from many emails in fixed-size concurrent windows.

        Each window runs concurrently and is awaited as a whole before the
        next one starts; a short pause separates windows. Results keep the
        input order.
        """

        limit = concurrency_limit or self.settings.extraction_concurrency
        windows = chunked(list(messages), max(1, limit))
        results: list[ExtractionResult] = []

        for index, window in enumerate(windows):
            results.extend(await asyncio.gather(*(self._timed_extract(m) for m in window)))

            if index < len(windows) - 1:
                await asyncio.sleep(self.settings.extraction_batch_delay_seconds)

        return results

    async def _timed_extract(self, message: RawMessage) -> ExtractionResult:
        start = time.perf_counter()
        try:
            candidate = await self.extract(message)
            error = None
        except Exception as exc:  # noqa: BLE001
            logger.warning("extraction_failed", message_id=message.id, error=str(exc))
            candidate, error = None, str(exc)
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        return ExtractionResult(
            message_id=message.id,
            candidate=candidate,
            processing_time_ms=elapsed_ms,
            error=error,
        )

    async def _complete(self, message_id: str, prompt: str) -> str:
        async def attempt() -> str:
            async with self._calls:
                return await asyncio.wait_for(
                    self.client.complete(SYSTEM_PROMPT, prompt),
                    timeout=self.settings.extraction_timeout_seconds,
                )

        try:
            return await retry_async(
                attempt,
                max_retries=self.settings.max_retries,
                delay=self.settings.retry_base_delay_seconds,
                exceptions=(TravelTrackerError, asyncio.TimeoutError),
                name="complete",
            )
        except (TravelTrackerError, asyncio.TimeoutError) as exc:
            reason = str(exc) or type(exc).__name__
            raise ExtractionError(f"Extraction failed for message {message_id}: {reason}") from exc
