"""Exponential backoff helpers for flaky network calls."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule for a retried operation.

    The delay before retry ``n`` (1-based) is
    ``initial_delay * multiplier ** (n - 1)`` plus a uniform jitter in
    ``[0, jitter]``.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    jitter: float = 0.2

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt."""
        base = self.initial_delay * self.multiplier ** (attempt - 1)
        return base + random.uniform(0, self.jitter)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: SleepFn = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run an async operation, retrying on the given exceptions.

    Args:
        operation: Zero-argument coroutine factory to call on each attempt.
        policy: Backoff schedule.
        retry_on: Exception types that trigger a retry. Anything else
            propagates immediately.
        sleep: Awaitable sleep function (injectable for tests).
        description: Short label used in log messages.

    Returns:
        The operation's result.

    Raises:
        The last exception raised by the operation once attempts run out.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt == policy.max_attempts:
                logger.error(f"{description} failed after {attempt} attempts: {e}")
                raise
            delay = policy.delay(attempt)
            logger.warning(
                f"{description} attempt {attempt} failed: {e}. Retrying in {delay:.2f}s..."
            )
            await sleep(delay)
    raise RuntimeError(f"{description} failed after all retries")
