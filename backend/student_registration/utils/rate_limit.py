"""In-memory rate limiter used to throttle login attempts."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from typing import Optional


class LoginRateLimiter:
    """Sliding-window limiter: at most `max_attempts` per `window_seconds` per key."""

    def __init__(self, max_attempts: int, window_seconds: int):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str) -> tuple[bool, int]:
        """Record an attempt for `key`; return `(allowed, retry_after_seconds)`."""
        now = time.monotonic()
        with self._lock:
            q = self._hits[key]
            cutoff = now - self.window_seconds
            while q and q[0] < cutoff:
                q.popleft()
            if len(q) >= self.max_attempts:
                return False, max(1, int(self.window_seconds - (now - q[0])))
            q.append(now)
        return True, 0

    def reset(self, key: Optional[str] = None) -> None:
        """Forget the attempts of `key`, or of every key when omitted."""
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
