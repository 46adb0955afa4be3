"""
Retry utilities with tenacity.

Wraps GitHub API calls so transient failures (connection drops, timeouts,
5xx answers, rate limiting) are retried with exponential backoff.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 30  # seconds
DEFAULT_MULTIPLIER = 2


class RetryAfterWait(wait_base):
    """Wait for the server's ``retry_after`` hint when the error carries one.

    Falls back to the wrapped strategy otherwise. Hints are capped at
    ``max_wait``.
    """

    def __init__(self, fallback: wait_base, max_wait: float):
        self.fallback = fallback
        self.max_wait = max_wait

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            hint = getattr(outcome.exception(), "retry_after", None)
            if hint is not None:
                return min(max(float(hint), 0.0), self.max_wait)
        return self.fallback(retry_state)


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (1 disables retrying)
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds
        multiplier: Exponential backoff multiplier
        jitter: Add random jitter to wait times
        retry_exceptions: Exception types to retry on
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    min_wait: float = DEFAULT_MIN_WAIT
    max_wait: float = DEFAULT_MAX_WAIT
    multiplier: float = DEFAULT_MULTIPLIER
    jitter: bool = True
    retry_exceptions: tuple[type[BaseException], ...] = field(default=(Exception,))

    def wait_strategy(self) -> wait_base:
        """Build the tenacity wait strategy for this config."""
        backoff: wait_base
        if self.jitter:
            backoff = wait_random_exponential(
                multiplier=self.multiplier,
                min=self.min_wait,
                max=self.max_wait,
            )
        else:
            backoff = wait_exponential(
                multiplier=self.multiplier,
                min=self.min_wait,
                max=self.max_wait,
            )
        return RetryAfterWait(backoff, self.max_wait)


async def retry_async(
    coro_func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """Execute an async function with retry logic.

    Args:
        coro_func: Async function to call
        *args: Positional arguments
        config: Retry configuration
        **kwargs: Keyword arguments

    Returns:
        Function result

    Raises:
        The last exception raised by coro_func once attempts run out
    """
    if config is None:
        config = RetryConfig()

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=retry_if_exception_type(config.retry_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await coro_func(*args, **kwargs)

    raise AssertionError("unreachable")  # pragma: no cover
