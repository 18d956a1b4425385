"""In-memory rate limiting for GeoThinkr guesses (single-process deployments)."""

from __future__ import annotations

import asyncio
import math
import os
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Optional


class RateLimiter:
    """Sliding window limiter keyed by an arbitrary string (``user:<id>``)."""

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window = window_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)

    def _prune(self, key: str, now: float) -> Deque[float]:
        hits = self._hits[key]
        cutoff = now - self.window
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    async def try_acquire(self, key: str) -> bool:
        async with self._lock:
            now = self._clock()
            hits = self._prune(key, now)
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            return True

    async def retry_after(self, key: str) -> int:
        """Whole seconds until ``key`` may try again (0 when it may now)."""
        async with self._lock:
            now = self._clock()
            hits = self._prune(key, now)
            if len(hits) < self.limit:
                return 0
            return max(1, math.ceil(hits[0] + self.window - now))


_guess_limiter: Optional[RateLimiter] = None


def get_guess_rate_limiter() -> Optional[RateLimiter]:
    """Return the shared per-user limiter for guess submissions, or None when disabled."""

    global _guess_limiter
    if _guess_limiter is not None:
        return _guess_limiter

    try:
        limit = int(os.getenv("GUESS_RATE_LIMIT", "0"))
        window = float(os.getenv("GUESS_RATE_WINDOW", "60"))
    except ValueError:
        return None

    if limit <= 0:
        return None

    _guess_limiter = RateLimiter(limit=limit, window_seconds=window)
    return _guess_limiter


__all__ = ["RateLimiter", "get_guess_rate_limiter"]
