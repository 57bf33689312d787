"""Delivery of scan progress events to a single consumer."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable

import structlog

from travel_tracker.models import ProgressEvent, is_terminal

logger = structlog.get_logger()


class ProgressReporter:
    """Ordered event channel for one scan.

    Events are buffered until read with `events()` and are optionally passed
    to a listener as they are emitted. The channel closes after the first
    terminal event (``complete`` or a fatal ``error``).
    """

    def __init__(self, listener: Callable[[ProgressEvent], None] | None = None) -> None:
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        self._listener = listener
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ProgressEvent) -> None:
        if self._closed:
            logger.warning("progress_event_after_close", event_type=event.type)
            return

        if is_terminal(event):
            self._closed = True

        self._queue.put_nowait(event)

        if self._listener is not None:
            try:
                self._listener(event)
            except Exception as exc:  # noqa: BLE001
                # A failing consumer must not stop the scan.
                logger.warning("progress_listener_failed", event_type=event.type, error=str(exc))

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Yield events in emission order until the terminal event."""

        while True:
            event = await self._queue.get()
            yield event
            if is_terminal(event):
                return

    def drain(self) -> list[ProgressEvent]:
        """Return all events emitted so far that have not been read."""

        drained: list[ProgressEvent] = []
        while not self._queue.empty():
            drained.append(self._queue.get_nowait())
        return drained
