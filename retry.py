"""Bounded exponential-backoff retry for transient provider overload."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from errors import ProviderUnavailable
from models import RetryAttempt

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY_SECONDS = 1.0

# Substrings of provider error messages that signal temporary overload.
_TRANSIENT_MARKERS: tuple[str, ...] = ("503", "UNAVAILABLE")
_TRANSIENT_MARKERS_CASELESS: tuple[str, ...] = ("overloaded",)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_error(exc: BaseException) -> bool:
    """Return True if the error message carries a provider-overload marker."""
    message = str(exc)
    if any(marker in message for marker in _TRANSIENT_MARKERS):
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in _TRANSIENT_MARKERS_CASELESS)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Await ``operation`` until it succeeds, retrying only on transient overload.

    Non-transient errors propagate on the first occurrence so client errors are
    never masked by retry latency. Every transient failure of attempt ``k``
    (0-indexed) is followed by a delay of ``initial_delay * 2**k``. Once
    ``max_retries`` attempts have failed transiently, ProviderUnavailable is
    raised; the underlying errors are only logged.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    attempts: list[RetryAttempt] = []
    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            return await operation()
        except Exception as exc:
            if not is_transient_error(exc):
                raise
            last_error = exc
            delay = initial_delay * 2**attempt
            attempts.append(RetryAttempt(attempt=attempt, delay=delay, transient=True))
            LOGGER.warning(
                "API call failed (attempt %s/%s), model overloaded. Waiting %.2fs: %s",
                attempt + 1,
                max_retries,
                delay,
                exc,
            )
            await sleep(delay)

    LOGGER.error(
        "API call failed after %s attempts (delays=%s): %s",
        len(attempts),
        [a.delay for a in attempts],
        last_error,
    )
    raise ProviderUnavailable(attempts=len(attempts)) from None
