"""In-memory sliding-window rate limiting for credential endpoints."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

SWEEP_INTERVAL_SECONDS = 60


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by caller; suitable for single-node deployments.

    Keys whose window has emptied are dropped, on access and by a periodic
    sweep, so one-off keys (e.g. random login emails) do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}
        self._windows: Dict[str, int] = {}
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._hits)

    def _prune(self, key: str, now: float) -> None:
        hits = self._hits[key]
        cutoff = now - self._windows[key]
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
            del self._windows[key]

    def _sweep(self, now: float) -> None:
        if now < self._next_sweep:
            return
        for key in list(self._hits):
            self._prune(key, now)
        self._next_sweep = now + SWEEP_INTERVAL_SECONDS

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        """Record a hit for key and report whether it fits in the window."""
        if limit <= 0:
            return True

        with self._lock:
            now = self._clock()
            self._sweep(now)
            if key in self._hits:
                self._windows[key] = window_seconds
                self._prune(key, now)

            hits = self._hits.get(key)
            if hits is not None and len(hits) >= limit:
                return False

            self._hits.setdefault(key, deque()).append(now)
            self._windows[key] = window_seconds
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._windows.clear()
            self._next_sweep = 0.0


rate_limiter = InMemoryRateLimiter()
