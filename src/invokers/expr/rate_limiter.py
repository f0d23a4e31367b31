"""
Sliding-window rate limiter for expression evaluation.

A denial is a signal to skip work, not an error.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Optional


class SlidingWindowRateLimiter:
    """Grants at most ``max_events`` permits in any window of ``window_ms`` milliseconds."""

    def __init__(
        self,
        max_events: int = 1000,
        window_ms: int = 1000,
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_events < 1:
            raise ValueError(f"max_events must be positive, got {max_events}")
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        self._max_events = max_events
        self._window = window_ms / 1000.0
        # Seconds, monotonic
        self._clock = clock or time.monotonic
        self._events: Deque[float] = deque()
        self._lock = threading.Lock()

    @property
    def max_events(self) -> int:
        return self._max_events

    def _prune(self, now: float) -> None:
        while self._events and now - self._events[0] >= self._window:
            self._events.popleft()

    def try_acquire(self) -> bool:
        """Records an event and returns True, or returns False when the window is full."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._events) >= self._max_events:
                return False
            self._events.append(now)
            return True

    def in_window(self) -> int:
        """Number of events currently inside the window."""
        with self._lock:
            self._prune(self._clock())
            return len(self._events)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
