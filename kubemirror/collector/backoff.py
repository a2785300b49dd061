"""Exponential back-off shared by list retries and stream reopen retries."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

SleepFn = Callable[[float], Awaitable[object]]

_DEFAULT_INITIAL_DELAY = 1.0


def backoff_delay(attempt: int, initial: float = _DEFAULT_INITIAL_DELAY, maximum: float | None = None) -> float:
    """Delay before retry number *attempt* (0-based): initial, 2x, 4x, ...

    Args:
        attempt: Number of consecutive failures already waited for.
        initial: Delay after the first failure.
        maximum: Optional upper bound; None doubles without limit.
    """
    if attempt < 0:
        raise ValueError(f"attempt must not be negative, got {attempt}")
    if maximum is not None:
        # stop doubling once the cap is reached so huge attempt counts never overflow
        delay = initial
        for _ in range(attempt):
            if delay >= maximum:
                break
            delay *= 2
        return min(delay, maximum)
    return initial * 2**attempt


class Backoff:
    """Consecutive-failure counter that sleeps for the matching delay.

    There is no attempt limit: callers retry until they succeed or are
    cancelled.  ``sleep`` is injectable so tests can run on a virtual clock.
    """

    def __init__(
        self,
        initial: float = _DEFAULT_INITIAL_DELAY,
        maximum: float | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        if initial <= 0:
            raise ValueError(f"initial delay must be positive, got {initial}")
        self._initial = initial
        self._maximum = maximum
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    def peek(self) -> float:
        """Delay the next wait() will sleep for, without consuming it."""
        return backoff_delay(self._attempts, self._initial, self._maximum)

    def next_delay(self) -> float:
        delay = backoff_delay(self._attempts, self._initial, self._maximum)
        self._attempts += 1
        return delay

    async def wait(self) -> float:
        """Sleep for the next delay and return it."""
        delay = self.next_delay()
        await self._sleep(delay)
        return delay

    def reset(self) -> None:
        self._attempts = 0
