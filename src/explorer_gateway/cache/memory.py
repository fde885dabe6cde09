"""TTL-based in-memory cache tier."""

import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any


class Backend(StrEnum):
    """Cache tier an entry lives in."""

    MEMORY = "memory"
    SESSION = "session"
    DURABLE = "durable"


class CacheEntry:
    """
    Cache entry with TTL support.

    Parameters
    ----------
    key : str
        Cache key
    value : Any
        Cached value
    ttl : float
        Time-to-live in seconds
    created_at : float | None
        Creation timestamp. Uses current time if None.
    backend : Backend
        Tier holding this entry

    """

    __slots__ = ("backend", "created_at", "expires_at", "key", "value")

    def __init__(
        self,
        key: str,
        value: Any,
        ttl: float,
        created_at: float | None = None,
        backend: Backend = Backend.MEMORY,
    ) -> None:
        self.key = key
        self.value = value
        self.created_at = time.time() if created_at is None else created_at
        self.expires_at = self.created_at + ttl
        self.backend = backend

    @classmethod
    def restore(
        cls, key: str, value: Any, created_at: float, expires_at: float, backend: Backend
    ) -> "CacheEntry":
        """Rebuild an entry read back from a persistent tier."""
        return cls(key, value, expires_at - created_at, created_at=created_at, backend=backend)

    def is_expired(self, now: float | None = None) -> bool:
        """
        Check if cache entry has expired.

        Parameters
        ----------
        now : float | None
            Reference timestamp. Uses current time if None.

        Returns
        -------
        bool
            True if expired, False otherwise

        """
        now = time.time() if now is None else now
        return now >= self.expires_at

    def remaining_ttl(self, now: float | None = None) -> float:
        """Seconds left before expiry (never negative)."""
        now = time.time() if now is None else now
        return max(0.0, self.expires_at - now)


class MemoryCache:
    """
    In-memory cache for upstream responses with TTL.

    Entries stay in place after expiry until :meth:`cleanup_expired` runs, so
    :meth:`get_stale` can still serve them.

    Parameters
    ----------
    default_ttl : float
        Default time-to-live in seconds for cache entries
    clock : Callable[[], float]
        Wall clock, injectable for tests

    """

    def __init__(self, default_ttl: float = 60.0, clock: Callable[[], float] = time.time) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        entry = self._cache.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def get(self, key: str) -> Any | None:
        """
        Get cached value if it exists and hasn't expired.

        Parameters
        ----------
        key : str
            Cache key

        Returns
        -------
        Any | None
            Cached value if found and valid, None otherwise

        Notes
        -----
        A cached ``None`` (a JSON ``null`` body) reads the same as a miss.
        Use :meth:`get_entry` where the two must be told apart.

        """
        entry = self._cache.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry.value

    def get_stale(self, key: str) -> Any | None:
        """Get cached value regardless of expiry."""
        entry = self._cache.get(key)
        return None if entry is None else entry.value

    def get_entry(self, key: str) -> CacheEntry | None:
        """Get the raw entry regardless of expiry."""
        return self._cache.get(key)

    def set(self, key: str, value: Any, ttl: float | None = None) -> CacheEntry:
        """
        Store value in cache with TTL, replacing any existing entry.

        Parameters
        ----------
        key : str
            Cache key
        value : Any
            Value to cache
        ttl : float | None
            Time-to-live in seconds. Uses default_ttl if None.

        Returns
        -------
        CacheEntry
            The stored entry

        """
        ttl = self.default_ttl if ttl is None else ttl
        entry = CacheEntry(key, value, ttl, created_at=self._clock())
        self._cache[key] = entry
        return entry

    def put_entry(self, entry: CacheEntry) -> None:
        """Store an entry read from a slower tier, keeping its expiry."""
        self._cache[entry.key] = CacheEntry.restore(
            entry.key, entry.value, entry.created_at, entry.expires_at, Backend.MEMORY
        )

    def remove(self, key: str) -> None:
        """Remove a single key."""
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._cache.clear()

    def clear_by_pattern(self, pattern: str) -> int:
        """
        Remove every entry whose key contains ``pattern``.

        Parameters
        ----------
        pattern : str
            Substring to match against keys

        Returns
        -------
        int
            Number of entries removed

        """
        matched = [key for key in self._cache if pattern in key]
        for key in matched:
            del self._cache[key]
        return len(matched)

    def cleanup_expired(self) -> int:
        """
        Remove all expired entries from cache.

        Returns
        -------
        int
            Number of entries removed

        """
        now = self._clock()
        expired_keys = [key for key, entry in self._cache.items() if entry.is_expired(now)]
        for key in expired_keys:
            del self._cache[key]
        return len(expired_keys)

    def keys(self) -> list[str]:
        """Return all keys currently held, expired or not."""
        return list(self._cache)
