"""Simple async rate limiter shared by every generation call in a process."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable
from typing import Deque


class RateLimiter:
    """Sliding one-minute window with a minimum spacing between requests."""

    def __init__(
        self,
        requests_per_minute: int,
        on_waiting: Callable[[int, int], None] | None = None,
    ):
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        self._limit = requests_per_minute
        self._calls: Deque[float] = deque()
        self._last_request_time = 0.0
        self._on_waiting = on_waiting
        self._last_wait_log = 0.0
        self._wait_log_interval = 30.0
        self._lock = asyncio.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    async def acquire(self) -> None:
        window = 60.0
        min_interval = window / self._limit
        while True:
            async with self._lock:
                now = time.monotonic()
                while self._calls and (now - self._calls[0]) > window:
                    self._calls.popleft()
                if len(self._calls) < self._limit:
                    if self._last_request_time > 0 and (now - self._last_request_time) < min_interval:
                        await asyncio.sleep(min_interval - (now - self._last_request_time))
                        now = time.monotonic()
                    self._calls.append(now)
                    self._last_request_time = now
                    return
                if self._on_waiting and (now - self._last_wait_log) >= self._wait_log_interval:
                    self._on_waiting(len(self._calls), self._limit)
                    self._last_wait_log = now
            await asyncio.sleep(0.05)
