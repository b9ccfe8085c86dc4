from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable


class TTLCache:
    def __init__(self, default_ttl_s: float, max_entries: int | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl_s = max(0.001, float(default_ttl_s))
        self.max_entries = max(1, int(max_entries)) if max_entries is not None else None
        self._clock = clock
        self._data: OrderedDict[str, tuple[float, object]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> object | None:
        now = self._clock()
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= now:
                self._data.pop(key, None)
                return None
            return value

    def set(self, key: str, value: object, ttl_s: float | None = None) -> None:
        ttl_value = self.default_ttl_s if ttl_s is None else max(0.001, float(ttl_s))
        expires_at = self._clock() + ttl_value
        with self._lock:
            self._data.pop(key, None)
            self._data[key] = (expires_at, value)
            if self.max_entries is not None:
                while len(self._data) > self.max_entries:
                    self._data.popitem(last=False)

    def latest(self) -> object | None:
        """Most recently inserted value that has not expired."""
        now = self._clock()
        with self._lock:
            for expires_at, value in reversed(self._data.values()):
                if expires_at > now:
                    return value
        return None

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for expires_at, _ in self._data.values() if expires_at > now)

