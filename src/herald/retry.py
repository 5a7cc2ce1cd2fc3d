"""Retry utilities with exponential backoff for transient errors.

Call sites pick a policy rather than tuning the loop:

- DEFAULT_POLICY: connection failures, timeouts and 5xx
- API_CALL_POLICY: the above plus HTTP 429 (Slack rate limiting)
- STORAGE_POLICY: database busy/locked contention only
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TypeVar

import httpx
from sqlalchemy.exc import OperationalError

from herald.errors import RefreshFailedError, TransientTransportError

T = TypeVar("T")

logger = logging.getLogger(__name__)

RetryPredicate = Callable[[Exception], bool]
Jitter = Callable[[float], float]


def is_transient_error(error: Exception) -> bool:
    """Connection failures, timeouts and 5xx responses."""
    if isinstance(error, httpx.TimeoutException | httpx.TransportError):
        return True
    if isinstance(error, TimeoutError | ConnectionError):
        return True
    if isinstance(error, RefreshFailedError):
        return True
    if isinstance(error, TransientTransportError):
        status = error.http_status
        return status is None or 500 <= status < 600
    return False


def is_retryable_api_error(error: Exception) -> bool:
    """Transient errors plus rate limiting."""
    if isinstance(error, TransientTransportError) and error.is_rate_limited:
        return True
    return is_transient_error(error)


def is_storage_contention(error: Exception) -> bool:
    """SQLite/driver busy or locked signals."""
    if not isinstance(error, OperationalError):
        return False
    text = str(error).lower()
    return "locked" in text or "busy" in text


def full_jitter(delay: float) -> float:
    """Jitter variant: uniform in [0, delay]."""
    return random.uniform(0, delay)  # noqa: S311


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    should_retry: RetryPredicate = is_transient_error
    # None keeps delays deterministic
    jitter: Jitter | None = None
    # Cap on server-provided Retry-After hints
    max_retry_after: float = 60.0

    def with_overrides(self, **changes) -> "RetryPolicy":
        return replace(self, **changes)


DEFAULT_POLICY = RetryPolicy()
API_CALL_POLICY = RetryPolicy(should_retry=is_retryable_api_error)
STORAGE_POLICY = RetryPolicy(
    max_attempts=3,
    base_delay=0.5,
    should_retry=is_storage_contention,
    jitter=full_jitter,
)


def calculate_delay(
    attempt: int, policy: RetryPolicy, error: Exception | None = None
) -> float:
    """Calculate the delay before the next attempt.

    Args:
        attempt: Zero-based index of the attempt that just failed.
        policy: Retry policy.
        error: The failure; a rate-limit ``retry_after`` hint overrides backoff.

    Returns:
        Delay in seconds.
    """
    retry_after = getattr(error, "retry_after", None)
    if retry_after is not None and retry_after > 0:
        return min(float(retry_after), policy.max_retry_after)

    delay = min(policy.base_delay * (policy.multiplier**attempt), policy.max_delay)
    if policy.jitter is not None:
        delay = policy.jitter(delay)
    return max(0.0, delay)


async def with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    operation_name: str = "operation",
) -> T:
    """Execute an async function with exponential backoff retry.

    Args:
        func: Async function to execute (takes no arguments).
        policy: Retry policy; defaults to DEFAULT_POLICY.
        operation_name: Name for logging.

    Returns:
        Result of the function.

    Raises:
        The last exception once attempts are exhausted, or immediately when
        the policy's predicate rejects it.
    """
    policy = policy or DEFAULT_POLICY

    for attempt in range(policy.max_attempts):
        try:
            return await func()
        except Exception as e:
            if not policy.should_retry(e):
                logger.debug(
                    "retry_not_retryable",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt + 1,
                        "error.type": type(e).__name__,
                    },
                )
                raise

            if attempt + 1 >= policy.max_attempts:
                logger.warning(
                    "retry_exhausted",
                    extra={
                        "operation": operation_name,
                        "attempts": policy.max_attempts,
                        "error.message": str(e),
                        "error.type": type(e).__name__,
                    },
                )
                raise

            delay = calculate_delay(attempt, policy, e)
            logger.info(
                "retry_attempt",
                extra={
                    "operation": operation_name,
                    "attempt": attempt + 1,
                    "max_attempts": policy.max_attempts,
                    "retry_delay_s": round(delay, 2),
                    "error.message": str(e),
                    "error.type": type(e).__name__,
                },
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"{operation_name}: retry policy allows no attempts")
