"""Shared transfer rate limiting.

This module provides:
- RateLimiter: Aggregate bytes/second ceiling over one-second windows
- ThrottledWriter: Writer proxy that draws from a RateLimiter on every write

A single RateLimiter is shared by every chunk of every transfer that holds
a reference to it, so the ceiling caps aggregate throughput rather than
per-chunk throughput.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from chunkferry.core.clock import Clock, SystemClock

if TYPE_CHECKING:
    from chunkferry.core.crypto import Writer

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 1.0


class RateLimiter:
    """Thread-safe fixed-window rate limiter.

    Each window lasts one second. Writers acquire bytes from the current
    window's budget; once it is spent they block until the window resets.
    A limit of 0 disables throttling.

    Usage:
        limiter = RateLimiter(limit=1024 * 1024)
        limiter.acquire(len(data))  # may block
        conn.write(data)
    """

    def __init__(self, limit: int = 0, clock: Clock | None = None) -> None:
        """Initialize the limiter.

        Args:
            limit: Bytes per second (0 = unlimited).
            clock: Time source (defaults to the system clock).
        """
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._limit = self._validate(limit)
        self._window_start = self._clock.monotonic()
        self._used = 0

    @staticmethod
    def _validate(limit: int) -> int:
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise TypeError(f"Rate limit must be an int, got {type(limit).__name__}")
        if limit < 0:
            raise ValueError(f"Rate limit must be >= 0, got {limit}")
        return limit

    def set_limit(self, bytes_per_second: int) -> None:
        """Overwrite the ceiling. Takes effect at the next acquisition."""
        limit = self._validate(bytes_per_second)
        with self._lock:
            self._limit = limit
        if limit:
            logger.info(f"Transfer rate limit set to {limit} B/s")
        else:
            logger.info("Transfer rate limit disabled")

    def get_limit(self) -> int:
        """Get the current ceiling in bytes per second."""
        with self._lock:
            return self._limit

    @property
    def unlimited(self) -> bool:
        return self.get_limit() == 0

    def acquire(self, nbytes: int) -> None:
        """Take nbytes from the shared budget, blocking as needed.

        Requests larger than the remaining budget are split across windows.

        Args:
            nbytes: Number of bytes about to be written.
        """
        remaining = nbytes
        while remaining > 0:
            with self._lock:
                now = self._clock.monotonic()
                if now - self._window_start >= WINDOW_SECONDS:
                    self._window_start = now
                    self._used = 0

                limit = self._limit
                if limit == 0:
                    return

                allowance = limit - self._used
                if allowance > 0:
                    taken = min(allowance, remaining)
                    self._used += taken
                    remaining -= taken
                    continue

                wait = self._window_start + WINDOW_SECONDS - now

            logger.debug(f"Rate limit reached, waiting {wait:.3f}s")
            self._clock.sleep(wait)


class ThrottledWriter:
    """Proxy a writer so every write first draws from a RateLimiter."""

    def __init__(self, writer: Writer, limiter: RateLimiter) -> None:
        self._writer = writer
        self._limiter = limiter
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        self._limiter.acquire(len(data))
        self._writer.write(data)
        self.bytes_written += len(data)
        return len(data)
