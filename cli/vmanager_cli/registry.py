from __future__ import annotations

import threading
import time
from typing import Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLRegistry(Generic[K, V]):
    """Thread-safe per-user map whose entries expire after ``ttl_s`` idle seconds.

    ``put`` stamps an entry with the current time; ``peek`` only reads it.
    A ``ttl_s`` of ``None`` or ``0`` disables expiry.
    """

    def __init__(self, ttl_s: float | None, *, clock: Callable[[], float] = time.monotonic):
        self._ttl_s = ttl_s or None
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[K, tuple[V, float]] = {}

    def _expired(self, touched_at: float, now: float) -> bool:
        return self._ttl_s is not None and now - touched_at >= self._ttl_s

    def put(self, key: K, value: V) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = (value, now)

    def peek(self, key: K) -> V | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, touched_at = entry
            if self._expired(touched_at, now):
                del self._entries[key]
                return None
            return value

    def pop(self, key: K) -> V | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None or self._expired(entry[1], now):
            return None
        return entry[0]

    def sweep(self) -> list[K]:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, t) in self._entries.items() if self._expired(t, now)]
            for key in expired:
                del self._entries[key]
        return expired

    def __contains__(self, key: object) -> bool:
        return self.peek(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for _, t in self._entries.values() if not self._expired(t, now))
