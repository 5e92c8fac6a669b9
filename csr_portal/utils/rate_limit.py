"""In-memory throttle for failed login attempts."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class LoginThrottle:
    """Block a key after too many failed logins within a sliding window.

    Only failures are recorded; a successful login clears the key.
    """

    def __init__(self, max_failures: int, window_seconds: int):
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self._failures = defaultdict(deque)
        self._lock = threading.Lock()

    def _prune(self, q: deque, now: float) -> None:
        cutoff = now - self.window_seconds
        while q and q[0] < cutoff:
            q.popleft()

    def retry_after(self, key: str) -> int:
        """Seconds until `key` may try again; 0 when it is not blocked."""
        now = time.monotonic()
        with self._lock:
            q = self._failures.get(key)
            if q is None:
                return 0
            self._prune(q, now)
            if not q:
                del self._failures[key]
                return 0
            if len(q) < self.max_failures:
                return 0
            return max(1, int(self.window_seconds - (now - q[0])))

    def record_failure(self, key: str) -> None:
        with self._lock:
            self._failures[key].append(time.monotonic())

    def reset(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
