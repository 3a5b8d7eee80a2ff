# app/tco/cache.py

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")


class ResultCache(Generic[T]):
    """
    Small TTL cache for calculation results, keyed by the input hash.

    Owned by whoever hosts the engine (the FastAPI app keeps one on
    ``app.state``) and passed in explicitly; the calculator itself never
    holds on to results.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(int(max_entries), 1)
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, T]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._purge_expired()
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)  # oldest insert goes first
            self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._entries)

    def _purge_expired(self) -> None:
        now = self._clock()
        stale = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in stale:
            del self._entries[key]
