"""Per-invocation deadline tracking."""

from __future__ import annotations

import time
from typing import Callable

from ..exceptions import DeadlineExceeded


class Deadline:
    """Time budget for one reconcile invocation."""

    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = clock() + timeout

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    def check(self, step: str) -> float:
        """Return the remaining seconds, or raise once the budget is spent.

        Args:
            step: What is about to run, for the error message

        Raises:
            DeadlineExceeded: If no time is left
        """
        remaining = self.remaining()
        if remaining <= 0:
            raise DeadlineExceeded(f"deadline exceeded before {step}")
        return remaining
