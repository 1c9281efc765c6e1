"""
Backoff schedules and the retry loop shared by readiness probing and
connector start-up.
"""

import asyncio
import enum
from collections.abc import Awaitable, Iterator
from dataclasses import dataclass
from typing import Any, Callable, Optional

from chainbox.constants import (
    CONNECTOR_RETRY_ATTEMPTS,
    CONNECTOR_RETRY_DELAY,
    CONNECTOR_RETRY_MAX_DELAY,
    HTTP_PROBE_ATTEMPTS,
    HTTP_PROBE_BACKOFF,
    HTTP_PROBE_DELAY,
    HTTP_PROBE_MAX_DELAY,
)

Sleep = Callable[[float], Awaitable[Any]]


class BackoffStrategy(str, enum.Enum):
    EXPONENTIAL = "exponential"
    FIBONACCI = "fibonacci"


class RetriesExhausted(Exception):
    """Raised by retry_async_call when every attempt failed.

    Attributes:
        attempts: Number of attempts made
        last_error: The exception raised by the final attempt
    """

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{attempts} attempts failed, last error: {last_error}")


@dataclass(frozen=True)
class BackoffPolicy:
    """Configuration for retry behavior.

    Attributes:
        strategy: How the delay grows between attempts
        delay: First delay in seconds
        backoff: Multiplier for the exponential strategy
        max_delay: Cap applied to every delay
        max_attempts: Total number of attempts, including the first one
        exceptions: Exception types treated as transient; anything else
            propagates immediately
    """

    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    delay: float = 1.0
    backoff: float = 2.0
    max_delay: float = 5.0
    max_attempts: int = 3
    exceptions: tuple = (Exception,)

    def delays(self) -> Iterator[float]:
        """Yield the delay to sleep after each failed attempt but the last."""
        if self.strategy is BackoffStrategy.FIBONACCI:
            current, following = self.delay, self.delay
            for _ in range(self.max_attempts - 1):
                yield min(current, self.max_delay)
                current, following = following, current + following
        else:
            current = self.delay
            for _ in range(self.max_attempts - 1):
                yield min(current, self.max_delay)
                current *= self.backoff


async def retry_async_call(
    func: Callable[..., Awaitable[Any]],
    *args,
    policy: BackoffPolicy,
    sleep: Optional[Sleep] = None,
    **kwargs,
) -> Any:
    """
    Retry an async function call on the given backoff schedule.

    Args:
        func: The async function to call
        *args: Positional arguments for the function
        policy: BackoffPolicy describing delays, attempts and transient errors
        sleep: Awaitable sleep used between attempts (asyncio.sleep by default)
        **kwargs: Keyword arguments for the function

    Returns:
        The result of the first successful call

    Raises:
        RetriesExhausted: If all attempts failed with transient errors
        Any exception not listed in ``policy.exceptions``, unchanged
    """
    sleep = sleep or asyncio.sleep
    delays = policy.delays()
    last_exception = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except policy.exceptions as e:
            last_exception = e

            # Don't wait after the last attempt
            if attempt == policy.max_attempts:
                break

            await sleep(next(delays))

    raise RetriesExhausted(policy.max_attempts, last_exception)


class TransientProbeError(Exception):
    """A readiness request failed but the container is still alive."""


HTTP_PROBE_POLICY = BackoffPolicy(
    strategy=BackoffStrategy.EXPONENTIAL,
    delay=HTTP_PROBE_DELAY,
    backoff=HTTP_PROBE_BACKOFF,
    max_delay=HTTP_PROBE_MAX_DELAY,
    max_attempts=HTTP_PROBE_ATTEMPTS,
    exceptions=(TransientProbeError,),
)

CONNECTOR_POLICY = BackoffPolicy(
    strategy=BackoffStrategy.FIBONACCI,
    delay=CONNECTOR_RETRY_DELAY,
    max_delay=CONNECTOR_RETRY_MAX_DELAY,
    max_attempts=CONNECTOR_RETRY_ATTEMPTS,
    exceptions=(Exception,),
)
