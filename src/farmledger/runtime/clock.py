from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Wall-clock seconds."""
    return int(time.time())


class ManualClock:
    """Deterministic clock for tests and simulations. Never moves backwards."""

    def __init__(self, now: int = 0) -> None:
        self._now = int(now)

    def __call__(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if int(seconds) < 0:
            raise ValueError("clock cannot move backwards")
        self._now += int(seconds)
        return self._now

    def set(self, now: int) -> int:
        if int(now) < self._now:
            raise ValueError("clock cannot move backwards")
        self._now = int(now)
        return self._now
