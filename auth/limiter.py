"""
auth/limiter.py -- Process-wide token bucket guarding the login path.

One bucket for every login attempt in the process: not per email, not per IP.
The bucket starts full, holds at most `capacity` tokens and earns one token
back every `refill_seconds`. Refill is computed lazily from elapsed time on
each call, so there is no timer thread and no periodic reset.

Per-client HTTP throttling is a separate concern handled by slowapi in
api/limiter.py; this bucket is the brute-force ceiling behind it.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class LoginRateLimiter:
    """Thread-safe, non-blocking token bucket.

    Usage:
        limiter = LoginRateLimiter(capacity=5, refill_seconds=12.0)
        if not limiter.allow():
            ...  # report "too many attempts"

    The check and the decrement happen under one lock, so concurrent callers
    can never jointly take more tokens than the bucket holds.
    """

    def __init__(
        self,
        capacity: int = 5,
        refill_seconds: float = 12.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_seconds <= 0:
            raise ValueError("refill_seconds must be positive")
        self.capacity = capacity
        self.refill_seconds = refill_seconds
        self._clock = clock
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    def allow(self) -> bool:
        """Take one token if available. Never blocks or queues the caller."""
        with self._lock:
            now = self._clock()
            elapsed = now - self._last_refill
            if elapsed > 0:
                self._tokens = min(float(self.capacity), self._tokens + elapsed / self.refill_seconds)
            self._last_refill = now
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False
