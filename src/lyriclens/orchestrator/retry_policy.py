"""Retry policy implementation for remote generation calls.

This module provides retry logic with exponential backoff for rate-limited
requests. It distinguishes between retryable errors (quota exhaustion) and
everything else, which is surfaced immediately so the user can re-trigger the
action.

The retry system supports:
- Exponential, linear, and constant backoff strategies
- Configurable max attempts and delay bounds
- Error code-based retry decisions
- An injectable sleep coroutine so tests run without waiting
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from lyriclens.agents.base import (
    DIAGRAM_GENERATION_FAILED,
    FRAME_GENERATION_FAILED,
    GENERATION_FAILED,
    INVALID_CONFIGURATION,
    INVALID_INPUT,
    INVALID_JSON,
    INVALID_REFERENCE_IMAGES,
    QUOTA_EXHAUSTED,
    BackoffStrategy,
    RetryPolicy,
)


logger = logging.getLogger(__name__)


T = TypeVar('T')


RETRYABLE_ERROR_CODES = {
    QUOTA_EXHAUSTED,
}


# Deterministic failures: retrying cannot help
NON_RETRYABLE_ERROR_CODES = {
    INVALID_INPUT,
    INVALID_JSON,
    INVALID_REFERENCE_IMAGES,
    INVALID_CONFIGURATION,
    GENERATION_FAILED,
    FRAME_GENERATION_FAILED,
    DIAGRAM_GENERATION_FAILED,
}


def calculate_backoff_delay(
    attempt: int,
    strategy: BackoffStrategy,
    base_delay: float,
    max_delay: float
) -> float:
    """Calculate backoff delay for retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        strategy: Backoff strategy to use
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds, capped at max_delay

    Examples:
        >>> calculate_backoff_delay(0, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        1.0
        >>> calculate_backoff_delay(2, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        4.0
        >>> calculate_backoff_delay(10, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        60.0
    """
    if strategy == BackoffStrategy.EXPONENTIAL:
        delay = base_delay * (2 ** attempt)
    elif strategy == BackoffStrategy.LINEAR:
        delay = base_delay * (attempt + 1)
    else:  # CONSTANT
        delay = base_delay

    return min(delay, max_delay)


def is_retryable_error(error: Exception, retry_policy: RetryPolicy) -> bool:
    """Determine if an error is retryable based on retry policy.

    Logic:
        1. Errors without an error_code are never retried
        2. Codes in NON_RETRYABLE_ERROR_CODES are never retried
        3. Otherwise check the policy's retryable_errors, falling back to
           RETRYABLE_ERROR_CODES when the policy lists none
    """
    error_code = getattr(error, 'error_code', None)

    if error_code is None:
        return False

    if error_code in NON_RETRYABLE_ERROR_CODES:
        return False

    if retry_policy.retryable_errors:
        return error_code in retry_policy.retryable_errors

    return error_code in RETRYABLE_ERROR_CODES


async def execute_with_retry(
    func: Callable[[], Awaitable[T]],
    retry_policy: RetryPolicy,
    context_name: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None
) -> T:
    """Await ``func()`` with retry logic.

    Args:
        func: Zero-argument coroutine factory; called once per attempt
        retry_policy: Retry policy to apply
        context_name: Name for logging context
        sleep: Coroutine used to wait between attempts (defaults to asyncio.sleep)

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: Last exception if all retries exhausted or not retryable
    """
    sleep = sleep or asyncio.sleep
    total_delay = 0.0

    for attempt in range(retry_policy.max_attempts):
        try:
            result = await func()

            if attempt > 0:
                logger.info(
                    f"{context_name} succeeded on attempt {attempt + 1} "
                    f"after {total_delay:.2f}s total delay"
                )

            return result

        except Exception as e:
            is_last_attempt = (attempt == retry_policy.max_attempts - 1)
            should_retry = (
                not is_last_attempt
                and is_retryable_error(e, retry_policy)
            )

            if not should_retry:
                if is_last_attempt and retry_policy.max_attempts > 1:
                    logger.error(
                        f"{context_name} failed after {retry_policy.max_attempts} attempts"
                    )
                raise

            delay = calculate_backoff_delay(
                attempt,
                retry_policy.backoff_strategy,
                retry_policy.base_delay_seconds,
                retry_policy.max_delay_seconds
            )
            total_delay += delay

            error_code = getattr(e, 'error_code', 'UNKNOWN')
            logger.warning(
                f"{context_name} failed with {error_code}, "
                f"retrying in {delay:.2f}s (attempt {attempt + 2}/{retry_policy.max_attempts})"
            )

            await sleep(delay)

    raise AssertionError("unreachable: retry loop exited without result")


def create_quota_retry_policy(
    max_attempts: int = 3,
    base_delay_seconds: float = 2.0,
    max_delay_seconds: float = 30.0
) -> RetryPolicy:
    """Exponential backoff on quota exhaustion only.

    ``max_attempts=1`` disables retries entirely.
    """
    return RetryPolicy(
        max_attempts=max_attempts,
        backoff_strategy=BackoffStrategy.EXPONENTIAL,
        base_delay_seconds=base_delay_seconds,
        max_delay_seconds=max_delay_seconds,
        retryable_errors=[QUOTA_EXHAUSTED] if max_attempts > 1 else []
    )
