"""Fetch utilities - retries."""

from .retries import RetryAfterWait, RetryConfig, retry_async

__all__ = [
    "RetryAfterWait",
    "RetryConfig",
    "retry_async",
]
