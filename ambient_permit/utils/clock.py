"""
Time sources for nonce and expiry defaults.

Builders take a clock instead of reading wall-clock time directly so tests
can pin "now".
"""

import time
from typing import Protocol


class Clock(Protocol):
    """Anything that can report the current Unix time in milliseconds."""

    def now_millis(self) -> int:
        ...


class SystemClock:
    """Wall-clock time."""

    def now_millis(self) -> int:
        return time.time_ns() // 1_000_000

    def __repr__(self) -> str:
        return "SystemClock()"


class FixedClock:
    """
    Clock frozen at a given instant.

    Args:
        millis: Unix time in milliseconds
    """

    def __init__(self, millis: int):
        self.millis = int(millis)

    @classmethod
    def from_seconds(cls, seconds: int) -> "FixedClock":
        return cls(int(seconds) * 1000)

    def now_millis(self) -> int:
        return self.millis

    def __repr__(self) -> str:
        return f"FixedClock(millis={self.millis})"


def now_seconds(clock: Clock) -> int:
    """Whole Unix seconds according to clock (floor)."""
    return clock.now_millis() // 1000
