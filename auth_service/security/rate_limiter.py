"""In-memory sliding window rate limiter for the login route."""

from __future__ import annotations

import math
import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, DefaultDict


class SlidingWindowRateLimiter:
    """Thread-safe per-client sliding window limiter local to this process."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._events: DefaultDict[str, Deque[float]] = DefaultDict(deque)
        self._lock = Lock()

    def _evict(self, queue: Deque[float], now: float) -> None:
        while queue and now - queue[0] >= self._window:
            queue.popleft()

    def allow(self, key: str) -> bool:
        """Record a request for ``key`` and return ``False`` once over the limit."""
        now = self._clock()
        with self._lock:
            queue = self._events[key]
            self._evict(queue, now)
            if len(queue) >= self._max_requests:
                return False
            queue.append(now)
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may send another request (0 when allowed now)."""
        now = self._clock()
        with self._lock:
            queue = self._events.get(key)
            if not queue:
                return 0
            self._evict(queue, now)
            if len(queue) < self._max_requests:
                return 0
            return max(1, math.ceil(self._window - (now - queue[0])))
