"""Bounded in-process cache with per-entry expiry."""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Generic, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """LRU cache whose entries also expire after a time-to-live.

    Instances are owned by whoever constructs them. There is no module-level
    state.
    """

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_entries: Maximum number of live entries before LRU eviction.
            ttl_seconds: Default lifetime of an entry in seconds.
            clock: Monotonic time source (injectable for tests).
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, V]] = OrderedDict()

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: V, ttl_seconds: float | None = None) -> None:
        """Store a value, evicting the least recently used entries if full."""
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = (self._clock() + ttl, value)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

