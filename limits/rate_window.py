from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional

from config.settings import settings
from messaging.errors import RateLimitExceeded


class FixedWindowRateLimiter:
    """
    Single process-wide send quota over a fixed window.

    The window resets lazily: the first call at or after ``reset_at`` zeroes the
    count and opens a new window starting at that call. ``reserve`` counts a
    send before it happens; ``release`` hands the slot back if the provider
    call failed, so only successful sends consume quota.
    """

    def __init__(
        self,
        max_per_window: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max = max_per_window
        self.window_seconds = float(window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS)
        self._clock = clock
        self._lock = threading.Lock()
        self.count = 0
        self.reset_at = self._clock() + self.window_seconds

    @property
    def max_per_window(self) -> int:
        if self._max is not None:
            return int(self._max)
        return int(settings.RATE_LIMIT_PER_MINUTE)

    def _roll(self) -> None:
        now = self._clock()
        if now >= self.reset_at:
            self.count = 0
            self.reset_at = now + self.window_seconds

    def _raise_if_exhausted(self) -> None:
        limit = self.max_per_window
        if self.count >= limit:
            raise RateLimitExceeded(f"Rate limit exceeded ({limit}/min)")

    def check(self) -> None:
        with self._lock:
            self._roll()
            self._raise_if_exhausted()

    def reserve(self) -> float:
        """Take one slot; returns a token identifying the window it was taken from."""
        with self._lock:
            self._roll()
            self._raise_if_exhausted()
            self.count += 1
            return self.reset_at

    def release(self, token: float) -> None:
        with self._lock:
            # A slot from an already-expired window was reset away with it.
            if token == self.reset_at and self.count > 0:
                self.count -= 1

    def remaining(self) -> int:
        with self._lock:
            self._roll()
            return max(0, self.max_per_window - self.count)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            self._roll()
            return {
                "count": self.count,
                "max_per_window": self.max_per_window,
                "window_seconds": self.window_seconds,
                "resets_in_s": max(0.0, round(self.reset_at - self._clock(), 3)),
            }
