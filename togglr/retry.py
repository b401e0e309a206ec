"""
Retry utility with exponential backoff.
"""

import asyncio
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from togglr.errors import TogglrError

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffConfig:
    """Configuration for exponential backoff between retries."""

    base_delay: float = 0.5
    """Delay before the first retry, in seconds."""

    max_delay: float = 10.0
    """Upper bound for any single delay, in seconds."""

    multiplier: float = 1.5
    """Growth factor applied for each further retry."""

    def __post_init__(self) -> None:
        for name in ("base_delay", "max_delay", "multiplier"):
            if math.isnan(getattr(self, name)):
                raise ValueError(f"{name} must be a number")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        if self.multiplier <= 0:
            raise ValueError("multiplier must be > 0")

    def calculate_delay(self, attempt: int) -> float:
        """
        Delay to wait before retry number ``attempt``.

        Args:
            attempt: Retry number; 0 is the initial try and never waits

        Returns:
            Delay in seconds
        """
        if attempt < 0:
            raise ValueError("attempt must be >= 0")
        if attempt == 0:
            return 0.0

        try:
            delay = self.base_delay * (self.multiplier ** (attempt - 1))
        except OverflowError:
            return self.max_delay

        return min(delay, self.max_delay)


@dataclass
class RetryResult(Generic[T]):
    """Result of a retry operation."""

    success: bool
    data: Optional[T] = None
    error: Optional[Exception] = None
    attempts: int = 1


DEFAULT_BACKOFF_CONFIG = BackoffConfig()


def calculate_backoff(attempt: int, config: BackoffConfig = DEFAULT_BACKOFF_CONFIG) -> float:
    """
    Calculate the backoff delay for a retry.

    Args:
        attempt: Retry number (0 is the initial try)
        config: Backoff configuration

    Returns:
        Delay in seconds
    """
    return config.calculate_delay(attempt)


def is_retryable_error(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Only classified SDK errors carry retry information; anything else is
    treated as a programming error and surfaced immediately.

    Args:
        error: The exception to check

    Returns:
        True if the error should be retried
    """
    if isinstance(error, TogglrError):
        return error.retryable
    return False


async def fetch_with_retry(
    fn: Callable[[int], Awaitable[T]],
    retries: int,
    backoff: Optional[BackoffConfig] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, float, Exception], None]] = None,
) -> RetryResult[T]:
    """
    Execute an async function with retry logic and exponential backoff.

    Args:
        fn: Async function to execute, called with the attempt number
        retries: Maximum number of retries after the initial attempt
        backoff: Backoff configuration
        sleep: Coroutine used to wait between attempts
        on_retry: Called with (next attempt, delay, error) before each wait

    Returns:
        RetryResult with success status and data/error
    """
    cfg = backoff or DEFAULT_BACKOFF_CONFIG
    attempt = 0

    while True:
        try:
            data = await fn(attempt)
            return RetryResult(success=True, data=data, attempts=attempt + 1)
        except Exception as error:
            if attempt >= retries or not is_retryable_error(error):
                return RetryResult(success=False, error=error, attempts=attempt + 1)

            delay = cfg.calculate_delay(attempt + 1)
            if on_retry is not None:
                on_retry(attempt + 1, delay, error)
            await sleep(delay)
            attempt += 1


async def retry_async(
    fn: Callable[[int], Awaitable[T]],
    retries: int,
    backoff: Optional[BackoffConfig] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Execute an async function with retry, raising on failure.

    Raises:
        Exception: The last error if all retries fail
    """
    result = await fetch_with_retry(fn, retries, backoff, sleep=sleep)

    if not result.success:
        raise result.error  # type: ignore

    return result.data  # type: ignore
