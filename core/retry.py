"""
core/retry.py - Retry/Backoff Utilities

Wraps a single network operation with capped exponential backoff and
jitter. The retry loop is an explicit bounded loop: the first attempt plus
at most ``max_attempts`` retries.

Failure classification:
- NotFoundError (404) is never retried; callers decide what "not found" means
- RateLimitError (429), 5xx responses and transport errors are retried
- Every other 4xx, and any unrecognised exception, is terminal

Example:
    policy = RetryPolicy(max_attempts=3, base_delay_ms=1000)
    balance = await execute_with_retry(
        lambda: client.fetch(address),
        policy,
        operation_name=f"balance {address}",
    )
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from core.exceptions import NetworkError, NotFoundError, RateLimitError, SourceHTTPError
from core.validation import validate_retry_attempts

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_BACKOFF_MS = 30_000.0
JITTER_RATIO = 0.3


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration for one class of network operation."""
    max_attempts: int = 3             # Retries after the first attempt
    base_delay_ms: float = 1000.0
    max_delay_ms: float = MAX_BACKOFF_MS
    jitter_ratio: float = JITTER_RATIO

    def __post_init__(self):
        validate_retry_attempts(self.max_attempts)

    def delay_ms(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """
        Delay before retry ``attempt`` (1-based).

        base * 2^attempt plus up to ``jitter_ratio`` of that as positive
        jitter, capped at ``max_delay_ms``.
        """
        exponential = self.base_delay_ms * (2 ** attempt)
        jitter = rng() * self.jitter_ratio * exponential
        return min(exponential + jitter, self.max_delay_ms)


def is_retryable(error: BaseException) -> bool:
    """Decide whether a failed attempt should be retried."""
    if isinstance(error, NotFoundError):
        return False
    if isinstance(error, RateLimitError):
        return True
    if isinstance(error, SourceHTTPError):
        return error.is_server_error
    if isinstance(error, (NetworkError, httpx.TransportError, asyncio.TimeoutError)):
        return True
    if isinstance(error, (ConnectionError, OSError)):
        return True
    return False


def retry_all(error: BaseException) -> bool:
    """Classifier that retries every failure."""
    return True


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    operation_name: str = "operation",
    classify: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> T:
    """
    Run ``operation`` until it succeeds, fails terminally, or retries run out.

    Args:
        operation: Factory returning a fresh awaitable for each attempt
        policy: Backoff configuration (defaults to RetryPolicy())
        operation_name: Name used in log messages
        classify: Returns True when an error is worth retrying
        sleep: Awaitable sleep in seconds (injectable for tests)
        rng: Uniform [0, 1) source for jitter

    Returns:
        The first successful result

    Raises:
        The terminal error, or the last retryable error once retries are exhausted
    """
    policy = policy or RetryPolicy()
    total_attempts = policy.max_attempts + 1

    for attempt in range(total_attempts):
        try:
            return await operation()
        except Exception as e:
            if not classify(e):
                logger.debug(f"{operation_name} failed with non-retryable error: {e}")
                raise
            if attempt >= policy.max_attempts:
                logger.warning(
                    f"{operation_name} failed after {total_attempts} attempts: {e}"
                )
                raise

            delay_ms = policy.delay_ms(attempt + 1, rng)
            logger.info(
                f"{operation_name} failed (attempt {attempt + 1}/{total_attempts}): {e}; "
                f"retrying in {delay_ms:.0f}ms"
            )
            await sleep(delay_ms / 1000.0)

    # range() always enters the loop; every path above returns or raises
    raise RuntimeError(f"{operation_name}: retry loop exited without a result")
