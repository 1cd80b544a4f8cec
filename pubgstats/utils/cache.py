"""Keyed TTL cache with an LRU size bound.

Replaces the process-wide dict pattern:
    _cache = {}  # key -> {"data": ..., "timestamp": ...}

Usage:
    cache = TTLCache(ttl=300, max_entries=512)

    # Read
    hit, data = cache.get(key)
    if hit:
        return data

    # Write
    data = expensive_aggregation()
    cache.set(key, data)

    # Invalidate
    cache.invalidate(key)
    cache.clear()

Writes to the underlying store never invalidate entries; staleness is
bounded by the TTL only.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Hashable


class TTLCache:
    """TTL-based keyed cache; least recently used entries are evicted past max_entries."""

    __slots__ = ("ttl", "max_entries", "_clock", "_entries", "_lock")

    def __init__(
        self,
        ttl: float,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Hashable, tuple[float, object]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> tuple[bool, object]:
        """Return (hit, data). Expired entries are dropped on read."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            stored_at, data = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                return False, None
            self._entries.move_to_end(key)
            return True, data

    def set(self, key: Hashable, data: object) -> None:
        """Store data with current timestamp."""
        with self._lock:
            self._entries[key] = (self._clock(), data)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def age(self, key: Hashable) -> "float | None":
        """Seconds since key was set, or None if absent."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return self._clock() - entry[0]

    def __len__(self) -> int:
        return len(self._entries)
