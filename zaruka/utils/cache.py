"""
TTL Cache
=========

A small in-memory key/value cache whose entries expire after a fixed
time-to-live. Components that need a cache receive an instance from their
caller instead of keeping module-level state, so two assistants (or two
tests) never share entries by accident.

Example:
    cache = TTLCache(ttl_seconds=3600)
    cache.set("English", ["⏳ one moment…"])
    cache.get("English")        # -> [...] until the hour is up
"""

import time
from typing import Any, Callable


class TTLCache:
    """
    Expiring key/value store.

    Expired entries are dropped lazily when they are read.

    Attributes:
        ttl_seconds: Lifetime of an entry
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl_seconds: Lifetime of each entry, must be positive
            clock: Time source returning seconds (injectable for tests)
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Any, tuple[float, Any]] = {}

    def get(self, key: Any, default: Any = None) -> Any:
        """Return the live value for key, or default."""
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def set(self, key: Any, value: Any) -> None:
        """Store value under key, resetting its lifetime."""
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def pop(self, key: Any, default: Any = None) -> Any:
        """Remove key and return its live value, or default."""
        value = self.get(key, default)
        self._entries.pop(key, None)
        return value

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Any) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for expires_at, _ in self._entries.values() if now < expires_at)
