"""Retry utilities for async operations."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Literal, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    ``max_attempts`` counts the first call, so ``max_attempts=3`` means one
    call plus at most two retries.
    """

    max_attempts: int = 3
    delay: float = 1.0
    backoff: Literal["linear", "exponential"] = "linear"
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    exceptions: tuple[Type[Exception], ...] = field(default_factory=lambda: (Exception,))

    def get_delay(self, attempt: int) -> float:
        """Calculate delay after a failed attempt (1-indexed)."""
        if self.backoff == "linear":
            delay = self.delay * attempt
        else:
            delay = self.delay * (self.backoff_factor ** (attempt - 1))
        return min(delay, self.max_delay)


async def retry_call(
    func: Callable[..., Awaitable[T]],
    *args,
    config: Optional[RetryConfig] = None,
    sleep: SleepFn = asyncio.sleep,
    **kwargs,
) -> T:
    """Await ``func`` until it succeeds or the attempts run out.

    A bounded loop, never recursion. The last exception is re-raised once
    every attempt failed.

    Usage:
        session = await retry_call(start_browser, config=RetryConfig(max_attempts=3))
    """
    if config is None:
        config = RetryConfig()

    attempts = max(config.max_attempts, 1)
    name = getattr(func, "__qualname__", repr(func))
    last_exception: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return await func(*args, **kwargs)
        except config.exceptions as e:
            last_exception = e
            if attempt < attempts:
                delay_time = config.get_delay(attempt)
                logger.warning(
                    "Attempt %d/%d for %s failed: %s: %s. Waiting %.1fs...",
                    attempt, attempts, name, type(e).__name__, e, delay_time,
                )
                await sleep(delay_time)
            else:
                logger.error(
                    "All %d attempts failed for %s: %s: %s",
                    attempts, name, type(e).__name__, e,
                )

    assert last_exception is not None
    raise last_exception
