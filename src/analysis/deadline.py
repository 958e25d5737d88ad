# src/analysis/deadline.py - v1
"""Monotonic wall-clock budget shared by one request."""

from __future__ import annotations

import time
from collections.abc import Callable


class Deadline:
    """Fixed point in time, measured on a monotonic clock.

    ``child`` carves out a sub-budget that can never outlive its parent.
    """

    def __init__(self, budget_s: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started = clock()
        self._expires_at = self._started + max(budget_s, 0.0)

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    def elapsed(self) -> float:
        return self._clock() - self._started

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def child(self, budget_s: float) -> Deadline:
        return Deadline(min(budget_s, self.remaining()), clock=self._clock)

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.3f}s)"
