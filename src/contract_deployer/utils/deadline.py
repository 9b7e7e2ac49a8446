"""Deadline utilities for the Contract Deployer.

This module provides a monotonic deadline and the tenacity stop/wait
strategies that keep a retry loop from running past it.
"""

import time
from typing import Callable, Optional

from tenacity import RetryCallState
from tenacity.stop import stop_base
from tenacity.wait import wait_base


class Deadline:
    """A point in monotonic time after which an operation gives up."""

    def __init__(self, timeout: Optional[float], clock: Callable[[], float] = time.monotonic):
        """Start the deadline.

        Args:
            timeout: Seconds until the deadline (None for no deadline)
            clock: Monotonic clock, injectable for tests
        """
        self.timeout = timeout
        self._clock = clock
        self.started_at = clock()

    @property
    def expires_at(self) -> Optional[float]:
        if self.timeout is None:
            return None
        return self.started_at + self.timeout

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, never negative (None if unbounded)."""
        if self.timeout is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        return self.timeout is not None and self._clock() >= self.expires_at

    def elapsed(self) -> float:
        return self._clock() - self.started_at


class stop_at_deadline(stop_base):
    """Stop retrying once the deadline has passed."""

    def __init__(self, deadline: Deadline):
        self.deadline = deadline

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self.deadline.expired()


class wait_until_deadline(wait_base):
    """Wrap a wait strategy so a sleep never runs past the deadline.

    The attempt after the last sleep then lands on the deadline, so a retry
    loop finishes within its timeout plus one poll.
    """

    def __init__(self, wait: wait_base, deadline: Deadline):
        self.wait = wait
        self.deadline = deadline

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self.wait(retry_state)
        remaining = self.deadline.remaining()
        if remaining is None:
            return delay
        return min(delay, remaining)
