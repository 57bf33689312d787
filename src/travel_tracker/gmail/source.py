"""Paged retrieval of candidate travel emails.

Gmail's search API has no offset parameter, so a page at ``offset`` is read by
listing ``offset + limit`` matches and keeping the trailing window. Deep pages
therefore cost I/O proportional to ``offset + limit``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog

from travel_tracker.config import Settings
from travel_tracker.exceptions import MailSourceError
from travel_tracker.models import RawMessage
from travel_tracker.protocols import MailProvider
from travel_tracker.utils import chunked, retry_async

logger = structlog.get_logger()


TRAVEL_SENDERS: tuple[str, ...] = (
    "noreply@delta.com",
    "confirmation@united.com",
    "noreply@aa.com",
    "booking@southwest.com",
    "noreply@jetblue.com",
    "noreply@alaskaair.com",
    "reservations@marriott.com",
    "reservations@hilton.com",
    "bookings@booking.com",
    "noreply@expedia.com",
    "noreply@hotels.com",
    "confirmation@airbnb.com",
    "noreply@kayak.com",
    "noreply@priceline.com",
    "confirmation@orbitz.com",
    "noreply@tripadvisor.com",
    "reservations@hyatt.com",
    "noreply@ihg.com",
    "confirmation@hertz.com",
    "noreply@enterprise.com",
    "confirmation@avis.com",
    "noreply@budget.com",
)

TRAVEL_SUBJECT_KEYWORDS: tuple[str, ...] = (
    "flight",
    "hotel",
    "booking",
    "confirmation",
    "itinerary",
    "reservation",
    "travel",
)

TRAVEL_BODY_PHRASES: tuple[str, ...] = (
    "flight confirmation",
    "hotel booking",
    "travel itinerary",
    "boarding pass",
)


def build_travel_query() -> str:
    """Build the Gmail search query matching known travel emails."""

    senders = " OR ".join(TRAVEL_SENDERS)
    subjects = " OR ".join(TRAVEL_SUBJECT_KEYWORDS)
    phrases = " OR ".join(TRAVEL_BODY_PHRASES)
    return f"from:({senders}) OR (subject:({subjects})) OR ({phrases})"


TRAVEL_SEARCH_QUERY = build_travel_query()


@dataclass(frozen=True)
class MessagePage:
    """One page of candidate travel emails."""

    offset: int
    limit: int
    messages: list[RawMessage] = field(default_factory=list)
    listed: int = 0

    @property
    def has_more(self) -> bool:
        """Whether the listing filled the window, so further pages likely exist."""
        return self.limit > 0 and self.listed >= self.limit

    def __len__(self) -> int:
        return len(self.messages)


class TravelMailSource:
    """Reads pages of travel emails from a mail provider."""

    def __init__(self, provider: MailProvider, settings: Settings | None = None) -> None:
        from travel_tracker.config import get_settings

        self.provider = provider
        self.settings = settings or get_settings()

    async def fetch_page(
        self,
        offset: int,
        limit: int,
        query: str = TRAVEL_SEARCH_QUERY,
    ) -> MessagePage:
        """Fetch messages ``offset`` to ``offset + limit`` of the travel search.

        Raises:
            MailSourceError: If the listing call fails. Individual message
                detail failures are logged and the message is dropped.
        """

        if offset < 0 or limit < 0:
            raise ValueError("offset and limit must be non-negative")

        logger.info("travel_search_started", offset=offset, limit=limit)

        try:
            ids = await self.provider.search(query, offset + limit)
        except Exception as exc:  # noqa: BLE001
            logger.error("travel_search_failed", error=str(exc))
            raise MailSourceError(f"Failed to search mailbox: {exc}") from exc

        window = ids[offset : offset + limit]
        logger.info(
            "travel_search_completed",
            total_listed=len(ids),
            window_start=offset,
            window_size=len(window),
        )

        messages: list[RawMessage] = []
        batches = chunked(window, max(1, self.settings.gmail_detail_batch_size))
        for index, batch in enumerate(batches):
            results = await asyncio.gather(*(self._fetch_detail(mid) for mid in batch))
            messages.extend(m for m in results if m is not None)

            if index < len(batches) - 1:
                await asyncio.sleep(self.settings.gmail_batch_delay_seconds)

        return MessagePage(offset=offset, limit=limit, messages=messages, listed=len(window))

    async def _fetch_detail(self, message_id: str) -> RawMessage | None:
        try:
            return await retry_async(
                lambda: self.provider.get_detail(message_id),
                max_retries=self.settings.max_retries,
                delay=self.settings.retry_base_delay_seconds,
                name="get_detail",
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("message_detail_dropped", message_id=message_id, error=str(exc))
            return None
