"""
Retry utilities with tenacity.

Provides configurable retry decorators for handling transient failures
in network operations. Permanent failures are never retried.
"""

from __future__ import annotations

import copy
import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

if TYPE_CHECKING:
    from bidbase.core.config.models import RetryPolicyConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 30  # seconds
DEFAULT_MULTIPLIER = 2


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_wait: float = DEFAULT_MIN_WAIT,
        max_wait: float = DEFAULT_MAX_WAIT,
        multiplier: float = DEFAULT_MULTIPLIER,
        jitter: bool = True,
        retry_exceptions: tuple[type[Exception], ...] | None = None,
        retry_if: Callable[[BaseException], bool] | None = None,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts
            min_wait: Minimum wait time in seconds
            max_wait: Maximum wait time in seconds
            multiplier: Exponential backoff multiplier
            jitter: Add random jitter to wait times
            retry_exceptions: Exception types to retry on
            retry_if: Predicate deciding whether a raised exception is retryable;
                applied on top of retry_exceptions
        """
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.multiplier = multiplier
        self.jitter = jitter
        self.retry_exceptions = retry_exceptions or (Exception,)
        self.retry_if = retry_if

    @classmethod
    def from_policy(cls, policy: "RetryPolicyConfig", **kwargs: Any) -> "RetryConfig":
        """Build from the feed's validated retry policy."""
        return cls(
            max_attempts=policy.max_attempts,
            min_wait=policy.min_wait,
            max_wait=policy.max_wait,
            multiplier=policy.multiplier,
            jitter=policy.jitter,
            **kwargs,
        )

    def wait_strategy(self) -> Any:
        """Build the tenacity wait strategy."""
        if self.jitter:
            return wait_random_exponential(
                multiplier=self.multiplier,
                min=self.min_wait,
                max=self.max_wait,
            )
        return wait_exponential(
            multiplier=self.multiplier,
            min=self.min_wait,
            max=self.max_wait,
        )

    def retry_strategy(self) -> Any:
        """Build the tenacity retry predicate."""
        strategy = retry_if_exception_type(self.retry_exceptions)
        if self.retry_if is not None:
            strategy = strategy & retry_if_exception(self.retry_if)
        return strategy


def with_retry(
    func: Callable[..., Awaitable[T]] | None = None,
    *,
    config: RetryConfig | None = None,
    max_attempts: int | None = None,
    min_wait: float | None = None,
    max_wait: float | None = None,
    retry_on: tuple[type[Exception], ...] | None = None,
) -> Any:
    """Decorator to add retry logic to an async function.

    Can be used with or without arguments:

        @with_retry
        async def my_func(): ...

        @with_retry(max_attempts=5, retry_on=(ValueError,))
        async def my_func(): ...

    Args:
        func: Function to wrap (when used without parens)
        config: Full retry configuration
        max_attempts: Override max attempts
        min_wait: Override minimum wait
        max_wait: Override maximum wait
        retry_on: Exception types to retry

    Returns:
        Decorated function with retry logic
    """
    config = copy.copy(config) if config is not None else RetryConfig()

    if max_attempts is not None:
        config.max_attempts = max_attempts
    if min_wait is not None:
        config.min_wait = min_wait
    if max_wait is not None:
        config.max_wait = max_wait
    if retry_on is not None:
        config.retry_exceptions = retry_on

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_async(fn, *args, config=config, **kwargs)

        return wrapper

    # Handle both @with_retry and @with_retry()
    if func is not None:
        return decorator(func)
    return decorator


async def retry_async(
    coro_func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """Execute an async function with retry logic.

    Alternative to decorator when you want more control.

    Raises:
        The last exception raised by coro_func once attempts are exhausted
        or the exception is not retryable.
    """
    if config is None:
        config = RetryConfig()

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=config.retry_strategy(),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await coro_func(*args, **kwargs)

    raise RuntimeError("retry loop exited without a result")  # pragma: no cover
