"""Fixed-interval polling helpers built on tenacity.

A RetryPolicy describes the budget; poll_until and apoll_until run a probe
until a predicate accepts its result or the budget runs out. Exceptions
raised by the probe are never retried: they propagate immediately.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from ufile.core.errors import WaitTimeoutError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Polling budget.

    Attributes:
        interval: Seconds to wait between polls
        max_retry: Polls allowed after the first one
    """

    interval: float = 10.0
    max_retry: int = 30

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError("interval must not be negative")
        if self.max_retry < 0:
            raise ValueError("max_retry must not be negative")

    @property
    def max_attempts(self) -> int:
        return self.max_retry + 1


def poll_until(
    probe: Callable[[], T],
    predicate: Callable[[T], bool],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``probe`` until ``predicate`` accepts its result.

    Blocks the calling thread for ``policy.interval`` between polls.

    Returns:
        The first probe result accepted by the predicate

    Raises:
        WaitTimeoutError: If no result was accepted within the budget
    """
    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_fixed(policy.interval),
        retry=retry_if_result(lambda result: not predicate(result)),
        sleep=sleep,
        reraise=True,
    )
    try:
        return retrying(probe)
    except RetryError as e:
        raise WaitTimeoutError(
            f"condition not met after {policy.max_attempts} attempts",
            attempts=policy.max_attempts,
        ) from e


async def apoll_until(
    probe: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Async counterpart of poll_until; suspends the task between polls."""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_fixed(policy.interval),
        retry=retry_if_result(lambda result: not predicate(result)),
        sleep=sleep,
        reraise=True,
    )
    try:
        return await retrying(probe)
    except RetryError as e:
        raise WaitTimeoutError(
            f"condition not met after {policy.max_attempts} attempts",
            attempts=policy.max_attempts,
        ) from e
