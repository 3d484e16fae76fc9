"""Fetch utilities - retries."""

from .retries import RetryConfig, retry_async, with_retry

__all__ = [
    "RetryConfig",
    "retry_async",
    "with_retry",
]
