"""Utility functions for Travel Tracker."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


async def retry_async(
    call: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    delay: float,
    backoff: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    name: str = "call",
) -> T:
    """Await ``call()`` until it succeeds or ``max_retries`` retries are used up.

    The last exception is re-raised once retries are exhausted.
    """

    current_delay = delay
    attempt = 0
    while True:
        try:
            return await call()
        except exceptions as e:
            if attempt >= max_retries:
                logger.error(
                    "function_retry_exhausted",
                    function=name,
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise
            attempt += 1
            logger.warning(
                "function_retry",
                function=name,
                attempt=attempt,
                max_retries=max_retries,
                delay=current_delay,
                error=str(e),
            )
            await asyncio.sleep(current_delay)
            current_delay *= backoff


def chunked(items: list[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive windows of at most ``size`` items."""

    if size < 1:
        raise ValueError("size must be at least 1")
    return [items[i : i + size] for i in range(0, len(items), size)]
