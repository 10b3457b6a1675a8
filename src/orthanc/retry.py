"""Retry policy for remote calls.

Builds the tenacity controller the request pipeline runs every attempt
through. Only errors accepted by ``is_retryable`` are retried; the wait
before attempt ``k + 1`` is ``retry_delay_seconds * 2 ** (k - 1)``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import OrthancError, is_retryable

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


def _should_retry(exc: BaseException) -> bool:
    return isinstance(exc, OrthancError) and is_retryable(exc)


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a retry before the backoff sleep starts."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying Orthanc request",
        extra={
            "attempt": retry_state.attempt_number,
            "next_attempt": retry_state.attempt_number + 1,
            "wait_seconds": retry_state.next_action.sleep if retry_state.next_action else None,
            "error_kind": exc.kind.value if isinstance(exc, OrthancError) else None,
            "exception": str(exc) if exc else None,
        },
    )


def request_retrying(
    retries: int,
    retry_delay_seconds: float,
    sleep: SleepFunc = asyncio.sleep,
) -> AsyncRetrying:
    """Create a retry controller for one logical call.

    Args:
        retries: Maximum attempts, including the first one.
        retry_delay_seconds: Delay after the first failed attempt.
        sleep: Coroutine used for backoff waits. Injectable for tests.

    Returns:
        An AsyncRetrying instance that re-raises the last error once
        attempts are exhausted or the error is not retryable.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, retries)),
        wait=wait_exponential(multiplier=retry_delay_seconds, exp_base=2),
        retry=retry_if_exception(_should_retry),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
