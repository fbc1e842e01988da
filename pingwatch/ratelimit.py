import threading
import time as time_module


class FixedWindowLimiter:
    """Allow ``limit`` hits per client in each ``window_seconds`` window."""

    def __init__(self, limit, window_seconds=60, clock=time_module.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = {}

    def hit(self, key):
        now = self._clock()
        with self._lock:
            started, count = self._hits.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._hits[key] = (started, count)
            self._expire(now)
            return count <= self.limit

    def _expire(self, now):
        if len(self._hits) < 1024:
            return
        for key, (started, _) in list(self._hits.items()):
            if now - started >= self.window_seconds:
                del self._hits[key]
