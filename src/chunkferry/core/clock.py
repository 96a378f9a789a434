"""Clock abstraction so throttling and scheduling can be tested without sleeping."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic time source with a blocking sleep."""

    def monotonic(self) -> float:
        """Return seconds from an arbitrary, never-decreasing origin."""
        ...

    def sleep(self, seconds: float) -> None:
        """Block the calling thread for the given number of seconds."""
        ...


class SystemClock:
    """Clock backed by time.monotonic and time.sleep."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
