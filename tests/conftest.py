"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import structlog

from travel_tracker.config import Settings
from travel_tracker.exceptions import GmailAPIError
from travel_tracker.models import RawMessage, User
from travel_tracker.store import TripRepository

NO_TRAVEL_REPLY = json.dumps({"type": None, "confidence_score": 0.0})


class FakeMailProvider:
    """In-memory mailbox implementing the MailProvider protocol."""

    def __init__(
        self,
        messages: list[RawMessage],
        *,
        failing_ids: set[str] | None = None,
        flaky_ids: set[str] | None = None,
        search_error: Exception | None = None,
    ) -> None:
        self.messages = {m.id: m for m in messages}
        self.order = [m.id for m in messages]
        self.failing_ids = set(failing_ids or ())
        self.flaky_ids = set(flaky_ids or ())
        self.search_error = search_error
        self.search_calls: list[tuple[str, int]] = []
        self.detail_calls: list[str] = []

    async def search(self, query: str, max_results: int) -> list[str]:
        self.search_calls.append((query, max_results))
        if self.search_error is not None:
            raise self.search_error
        return self.order[:max_results]

    async def get_detail(self, message_id: str) -> RawMessage:
        self.detail_calls.append(message_id)
        if message_id in self.failing_ids:
            raise GmailAPIError(f"detail unavailable for {message_id}")
        if message_id in self.flaky_ids:
            self.flaky_ids.discard(message_id)
            raise GmailAPIError(f"transient failure for {message_id}")
        return self.messages[message_id]


class FakeCompletionClient:
    """Completion client replying by keyword found in the prompt.

    ``replies`` maps a keyword (usually a subject) to the reply text, or to an
    exception raised on every call for prompts containing it.
    """

    def __init__(
        self,
        replies: dict[str, str | Exception] | None = None,
        *,
        default: str = NO_TRAVEL_REPLY,
        delay: float = 0.0,
    ) -> None:
        self.replies = dict(replies or {})
        self.default = default
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            for keyword, reply in self.replies.items():
                if keyword in user_prompt:
                    if isinstance(reply, Exception):
                        raise reply
                    return reply
            return self.default
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def mock_settings(tmp_path: Path) -> Settings:
    """Provide settings with no pauses and a single retry."""
    return Settings(
        ollama_host="http://test:11434",
        ollama_model="test-model",
        database_path=tmp_path / "trips.sqlite3",
        gmail_credentials_path=tmp_path / "missing-credentials.json",
        gmail_token_path=tmp_path / "token.json",
        gmail_batch_delay_seconds=0.0,
        scan_batch_delay_seconds=0.0,
        extraction_batch_delay_seconds=0.0,
        extraction_timeout_seconds=5.0,
        max_retries=1,
        retry_base_delay_seconds=0.0,
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def repository(mock_settings: Settings) -> TripRepository:
    repo = TripRepository(mock_settings.database_path)
    repo.initialize()
    return repo


@pytest.fixture
def user(repository: TripRepository) -> User:
    return repository.ensure_user("traveler@example.com", "Test Traveler")


@pytest.fixture
def make_message() -> Callable[..., RawMessage]:
    """Build a RawMessage whose subject doubles as the reply keyword."""

    def _make(index: int, subject: str | None = None, body: str = "Thanks for booking.") -> RawMessage:
        return RawMessage(
            id=f"msg-{index:03d}",
            subject=subject or f"Email {index:03d}",
            sender="noreply@delta.com",
            date="Mon, 1 Jul 2024 09:00:00 +0000",
            snippet=body[:40],
            body=body,
        )

    return _make


@pytest.fixture
def flight_reply() -> Callable[..., str]:
    """Build a model reply describing a flight."""

    def _reply(**overrides: Any) -> str:
        data: dict[str, Any] = {
            "type": "flight",
            "airline": "Delta Air Lines",
            "flight_number": "DL123",
            "departure_airport_code": "JFK",
            "arrival_airport_code": "LAX",
            "departure_date": "2024-07-15",
            "departure_time": "08:30",
            "origin_city": "New York",
            "destination_city": "Los Angeles",
            "booking_reference": None,
            "cost": 350.0,
            "currency": "USD",
            "confidence_score": 0.9,
        }
        data.update(overrides)
        return json.dumps(data)

    return _reply


@pytest.fixture
def hotel_reply() -> Callable[..., str]:
    """Build a model reply describing a hotel stay."""

    def _reply(**overrides: Any) -> str:
        data: dict[str, Any] = {
            "type": "hotel",
            "hotel_name": "Marriott Downtown",
            "hotel_address": "1 Main St, Chicago",
            "check_in_date": "2024-08-01",
            "check_out_date": "2024-08-04",
            "guests": 2,
            "destination_city": "Chicago",
            "confirmation_number": "MAR-555",
            "cost": "612.40",
            "currency": "usd",
            "confidence_score": 0.8,
        }
        data.update(overrides)
        return json.dumps(data)

    return _reply


def encode_part(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@pytest.fixture
def sample_email_data() -> dict:
    """Provide a Gmail API message (format=full) with an html part before the plain part."""
    return {
        "id": "msg123456",
        "threadId": "thread789",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "Your flight to Los Angeles is confirmed",
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "Subject", "value": "Flight Confirmation - DL123"},
                {"name": "From", "value": "Delta <noreply@delta.com>"},
                {"name": "To", "value": "traveler@example.com"},
                {"name": "Date", "value": "Mon, 1 Jul 2024 09:00:00 +0000"},
            ],
            "body": {"size": 0},
            "parts": [
                {
                    "mimeType": "text/html",
                    "body": {"data": encode_part("<p>Your flight DL123 is <b>confirmed</b></p>")},
                },
                {
                    "mimeType": "text/plain",
                    "body": {"data": encode_part("Your flight DL123 is confirmed")},
                },
            ],
        },
    }


@pytest.fixture
def make_provider() -> type[FakeMailProvider]:
    return FakeMailProvider


@pytest.fixture
def make_completion() -> type[FakeCompletionClient]:
    return FakeCompletionClient


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration done by CLI entry points."""
    yield
    structlog.reset_defaults()
