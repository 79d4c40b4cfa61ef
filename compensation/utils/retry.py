"""
Bounded retry with exponential backoff.

Used around units of work that may hit a member lock timeout or a
transient storage failure.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger

from compensation.config.settings import settings
from compensation.utils.exceptions import is_retryable


T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int | None = None,
    base_delay: float | None = None,
    description: str = "operation",
) -> T:
    """
    Run operation, retrying transient failures.

    Delays grow as base, 2*base, 4*base ... Non-retryable exceptions
    propagate immediately; the last retryable one propagates once the
    budget is spent.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        max_retries: Retries after the first attempt
        base_delay: First backoff delay in seconds
        description: Name used in log messages

    Returns:
        Result of the first successful attempt
    """
    retries = settings.max_conflict_retries if max_retries is None else max_retries
    delay = settings.retry_base_delay_seconds if base_delay is None else base_delay

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt >= retries:
                raise
            wait = delay * (2**attempt)
            attempt += 1
            logger.warning(
                f"{description} failed with {type(e).__name__}, "
                f"retry {attempt}/{retries} in {wait:.3f}s"
            )
            await asyncio.sleep(wait)
