"""
Retry with exponential backoff for calls to the embedding service.

Only ``RetryableError``s are retried. A ``retry_after`` reported by the
service (HTTP ``Retry-After``) replaces the computed backoff, capped at
``max_delay``.

Usage:
------
    from bookrag.utils.retry import RetryConfig, retry_async

    config = RetryConfig(max_attempts=3, base_delay=0.5)
    vector = await retry_async(embedder.embed, text, config=config)
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from bookrag.errors import RetryableError, is_retryable

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts, including the first
        base_delay: Delay before the first retry (seconds)
        max_delay: Upper bound for any single delay (seconds)
        exponential_base: delay = base_delay * exponential_base ** (attempt - 1)
        jitter: Random jitter as a fraction of the delay (0.0 to 1.0)
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 0.1

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be between 0 and 1")


def calculate_delay(attempt: int, config: RetryConfig, error: Exception | None = None) -> float:
    """
    Seconds to wait after a failed attempt.

    Args:
        attempt: The attempt that just failed (1-based)
        config: Retry configuration
        error: The error it raised
    """
    if isinstance(error, RetryableError) and error.retry_after is not None and error.retry_after > 0:
        return min(error.retry_after, config.max_delay)

    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    if config.jitter > 0:
        jitter_range = delay * config.jitter
        delay += random.uniform(-jitter_range, jitter_range)
    return max(min(delay, config.max_delay), 0.0)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """
    Await ``func(*args, **kwargs)``, retrying retryable failures.

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error immediately
    """
    config = config or RetryConfig()
    name = getattr(func, "__qualname__", repr(func))

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e) or attempt >= config.max_attempts:
                if attempt > 1:
                    logger.error(f"[{name}] Giving up after {attempt} attempts: {type(e).__name__}: {e}")
                raise

            delay = calculate_delay(attempt, config, e)
            logger.warning(
                f"[{name}] Retrying in {delay:.2f}s "
                f"(attempt {attempt}/{config.max_attempts}) after {type(e).__name__}: {e}"
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"Retry loop for {name} exited without a result")
