"""
Retry Utility with Bounded Backoff

Every retry in the pipeline goes through call_with_retry: a fixed attempt
budget, a monotonically increasing delay between attempts, and an explicit
set of exception types worth retrying. Anything else (including
asyncio.CancelledError) propagates on the first occurrence.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from src.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar('T')

SleepFunc = Callable[[float], Awaitable[None]]


class BackoffPolicy(str, Enum):
    """How the delay grows between attempts."""
    LINEAR = "linear"            # attempt x base_delay
    EXPONENTIAL = "exponential"  # base_delay x 2^(attempt - 1)


def compute_delay(
    attempt: int,
    base_delay: float,
    policy: BackoffPolicy = BackoffPolicy.LINEAR,
    max_delay: Optional[float] = None
) -> float:
    """
    Delay to wait after the given (1-based) failed attempt.

    Args:
        attempt: Number of the attempt that just failed, starting at 1
        base_delay: Base delay in seconds
        policy: Growth policy
        max_delay: Optional cap in seconds

    Returns:
        Delay in seconds, never negative
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    if policy == BackoffPolicy.EXPONENTIAL:
        delay = base_delay * (2 ** (attempt - 1))
    else:
        delay = base_delay * attempt

    if max_delay is not None:
        delay = min(delay, max_delay)
    return max(0.0, delay)


def is_rate_limit_error(exc: BaseException) -> bool:
    """Check if an exception looks like a 429 / RESOURCE_EXHAUSTED error."""
    error_str = str(exc)
    return (
        "429" in error_str or
        "RESOURCE_EXHAUSTED" in error_str or
        "Quota exceeded" in error_str or
        "rate limit" in error_str.lower()
    )


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    policy: BackoffPolicy = BackoffPolicy.LINEAR,
    max_delay: Optional[float] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    operation_name: str = "operation",
    sleep: Optional[SleepFunc] = None
) -> T:
    """
    Call an async function, retrying retryable failures with bounded backoff.

    Args:
        func: Zero-argument callable returning an awaitable (usually a lambda)
        max_attempts: Total attempts including the first one
        base_delay: Base delay in seconds
        policy: LINEAR or EXPONENTIAL backoff
        max_delay: Optional cap on a single delay
        retry_on: Exception types that trigger another attempt
        operation_name: Description of operation for logging
        sleep: Awaitable sleep function (tests inject a recorder)

    Returns:
        Result from the first successful call

    Raises:
        The last retryable exception once attempts are exhausted, or any
        non-retryable exception immediately.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    sleep = sleep or asyncio.sleep

    for attempt in range(1, max_attempts + 1):
        try:
            result = await func()
        except asyncio.CancelledError:
            raise
        except retry_on as e:
            if attempt >= max_attempts:
                logger.error(
                    f"❌ {operation_name} failed after {max_attempts} attempts: {e}",
                    attempts=max_attempts,
                )
                raise

            delay = compute_delay(attempt, base_delay, policy, max_delay)
            logger.warning(
                f"⚠️  {operation_name} failed (attempt {attempt}/{max_attempts}): {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await sleep(delay)
            continue

        if attempt > 1:
            logger.info(f"✅ {operation_name} succeeded after {attempt - 1} retries")
        return result

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"{operation_name} exhausted retries without raising")
