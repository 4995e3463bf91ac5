"""
Per-client fixed-window rate limiting.

Counters live in process memory and vanish on restart. This throttles
accidental resubmits; it is not a correctness mechanism.
"""
from __future__ import annotations
import threading
import time
from typing import Callable, Optional


class RateLimiter:
    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> Optional[float]:
        """Count one request for ``key``; return seconds to wait if over the limit."""
        with self._lock:
            now = self._clock()
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                self._windows[key] = (1, now + self.window_seconds)
                self._prune(now)
                return None
            if count >= self.max_requests:
                return reset_at - now
            self._windows[key] = (count + 1, reset_at)
            return None

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._windows.items() if reset_at <= now]
        for k in expired:
            del self._windows[k]
