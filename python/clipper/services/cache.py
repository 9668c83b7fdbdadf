"""In-memory TTL cache for upstream access tokens and link previews.

- Entries carry an absolute expiry computed from the injected clock
- get() never returns an entry past its expiry; expired entries are evicted on access
- set() sweeps other expired entries opportunistically
- A lock makes each operation atomic; keys are independent

No persistence: a process restart empties the cache and callers re-fetch.
One instance is created per application (see clipper.app lifespan) and injected.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass
class CacheEntry:
    """Cached value with its absolute expiry (clock seconds)."""

    value: Any
    expires_at: float


def cache_key(kind: str, *parts: str) -> str:
    """Build a namespaced cache key, e.g. cache_key("token", email) -> "token:<email>"."""
    return ":".join((kind, *parts))


class TTLCache:
    """Thread-safe expiring key-value store."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()

    def set(self, key: str, value: Any, ttl_s: float) -> None:
        """Store value until now + ttl_s."""
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(value=value, expires_at=now + ttl_s)
            self._evict_expired(now)

    def get(self, key: str) -> Any | None:
        """Return the live value for key, or None on miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def delete(self, key: str) -> bool:
        """Remove key; returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        """Evict every expired entry; returns how many were removed."""
        with self._lock:
            return self._evict_expired(self._clock())

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._entries.clear()

    @property
    def size(self) -> int:
        """Number of live entries."""
        with self._lock:
            self._evict_expired(self._clock())
            return len(self._entries)

    def _evict_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)
