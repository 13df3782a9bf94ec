"""Retry-with-backoff combinator shared by every completion path."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from research_gantt.errors import InputError
from research_gantt.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
DelayPolicy = Callable[[int], float]
Sleep = Callable[[float], Awaitable[None]]


def linear_backoff(base_seconds: float = 1.0) -> DelayPolicy:
    """Delay after failed attempt ``n`` (1-based) is ``base_seconds * n``."""

    def policy(attempt: int) -> float:
        return base_seconds * attempt

    return policy


def default_is_retryable(exc: Exception) -> bool:
    return not isinstance(exc, InputError)


async def retry_with_backoff(
    call: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    delay: DelayPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
    is_retryable: Callable[[Exception], bool] = default_is_retryable,
    label: str = "call",
) -> T:
    """Run ``call`` up to ``attempts`` times; the last failure is re-raised as-is."""
    delay = delay or linear_backoff(1.0)
    attempts = max(1, attempts)
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except Exception as exc:
            last_error = exc
            logger.warning("%s attempt %d/%d failed: %s", label, attempt, attempts, exc)
            if attempt >= attempts or not is_retryable(exc):
                raise
            await sleep(delay(attempt))
    raise RuntimeError(f"Failed after retries: {last_error}")
