"""
In-memory memoization cache with per-entry expiry.

Entries are evicted lazily: an expired entry is removed when it is next read.
Nothing sweeps in the background, so keys that are never read again stay
resident until overwritten. A bound on resident entries can be configured;
when it is reached, expired entries are swept first and then the entries
closest to expiry are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
import time
from typing import Any, Callable


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class EphemeralCache:
    """Thread-safe key/value store with a TTL per entry.

    A miss is reported as None; no operation raises.

    Attributes:
        default_ttl: TTL in seconds used when set() is called without one
        max_entries: Resident entry bound, or None for unbounded
    """

    def __init__(
        self,
        default_ttl: int = 300,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        """Return the value for key, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store value under key, replacing any previous entry."""
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
            if self.max_entries is not None and len(self._entries) > self.max_entries:
                self._shrink()

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove every expired entry and return how many were removed."""
        with self._lock:
            return self._sweep_expired()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def _sweep_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _shrink(self) -> None:
        # Caller holds the lock.
        self._sweep_expired()
        overflow = len(self._entries) - self.max_entries
        if overflow <= 0:
            return
        by_expiry = sorted(self._entries.items(), key=lambda item: item[1].expires_at)
        for key, _entry in by_expiry[:overflow]:
            del self._entries[key]
