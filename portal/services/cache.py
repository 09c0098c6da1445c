import threading
import time


class TransactionCache:
    """Last transaction page seen per key, kept for ``ttl`` seconds.

    Never authoritative: views read it only when the live fetch fails.
    """

    def __init__(self, ttl=300, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def put(self, key, rows):
        with self._lock:
            self._entries[key] = (self._clock(), list(rows))

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, rows = entry
            if self.ttl is not None and self._clock() - stored_at > self.ttl:
                del self._entries[key]
                return None
            return list(rows)

    def clear(self):
        with self._lock:
            self._entries.clear()
