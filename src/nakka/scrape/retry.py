"""
Retry policy shared by every scrape operation.

The policy owns three decisions: how many attempts (the ceiling, counting the
first one), how long to wait between them (exponential backoff), and which
errors are worth another attempt at all (a predicate over the exception).
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from nakka.scrape.errors import is_retryable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff with an error predicate.

    Attributes:
        max_attempts: Total attempts including the first
        base_delay: Delay in seconds before the first retry (doubles each time)
        jitter: Upper bound of a random extra delay added to each wait
        should_retry: Predicate deciding whether an exception may be retried
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    jitter: float = 0.0
    should_retry: Callable[[BaseException], bool] = field(default=is_retryable)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the given 0-based attempt."""
        delay = self.base_delay * (2 ** attempt)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay

    async def run(
        self,
        coro_func: Callable[[], Awaitable[Any]],
        description: str = "Operation",
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> Any:
        """
        Execute an async operation under this policy.

        Pass a callable that creates a coroutine, not a coroutine: each
        attempt needs a fresh one.

        Args:
            coro_func: Callable returning a coroutine (e.g. lambda: scrape(url))
            description: Label for log messages
            sleep: Awaitable sleep function (defaults to asyncio.sleep)

        Returns:
            Result of the first successful attempt

        Raises:
            The first non-retryable error, or the last attempt's error once
            the ceiling is reached.
        """
        sleep = sleep or asyncio.sleep

        for attempt in range(self.max_attempts):
            try:
                return await coro_func()
            except Exception as e:
                if not self.should_retry(e):
                    logger.error("%s failed (not retryable): %s", description, e)
                    raise

                if attempt >= self.max_attempts - 1:
                    logger.error(
                        "%s failed after %d attempts: %s",
                        description, self.max_attempts, e,
                    )
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    "[Retry %d/%d] %s failed: %s. Retrying in %.1fs...",
                    attempt + 1, self.max_attempts, description, e, delay,
                )
                await sleep(delay)
