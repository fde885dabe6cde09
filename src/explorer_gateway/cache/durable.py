"""Durable cache tier backed by SQLite through aiosqlite."""

import asyncio
import json
import logging
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import aiosqlite

from explorer_gateway.cache.memory import Backend, CacheEntry

logger = logging.getLogger(__name__)

# Any of these means "storage unavailable"; callers see a miss instead.
_STORAGE_ERRORS = (aiosqlite.Error, sqlite3.Error, OSError, TypeError, ValueError)


class DurableCache:
    """
    Asynchronous key-value cache persisted in SQLite.

    The connection is opened lazily on first use. All storage errors are
    logged and absorbed: reads return None, writes become no-ops.

    Parameters
    ----------
    path : Path | str
        Database file, or ``":memory:"``
    clock : Callable[[], float]
        Wall clock, injectable for tests

    """

    def __init__(self, path: Path | str, clock: Callable[[], float] = time.time) -> None:
        self.path = str(path)
        self._clock = clock
        self._conn: aiosqlite.Connection | None = None
        self._init_lock = asyncio.Lock()
        self._unavailable = False

    async def _connection(self) -> aiosqlite.Connection | None:
        if self._conn is not None or self._unavailable:
            return self._conn
        async with self._init_lock:
            if self._conn is not None or self._unavailable:
                return self._conn
            try:
                if self.path != ":memory:":
                    Path(self.path).parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(self.path)
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS cache_entries (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        created_at REAL NOT NULL,
                        expires_at REAL NOT NULL
                    )
                    """
                )
                await conn.commit()
                self._conn = conn
            except _STORAGE_ERRORS as e:
                logger.warning("Durable cache %s unavailable, continuing without it: %s", self.path, e)
                self._unavailable = True
        return self._conn

    async def get_entry(self, key: str) -> CacheEntry | None:
        """Return the stored entry regardless of expiry."""
        conn = await self._connection()
        if conn is None:
            return None
        try:
            async with conn.execute(
                "SELECT value, created_at, expires_at FROM cache_entries WHERE key=?",
                (key,),
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                return None
            return CacheEntry.restore(key, json.loads(row[0]), row[1], row[2], Backend.DURABLE)
        except _STORAGE_ERRORS as e:
            logger.warning("Durable cache read failed for %s: %s", key, e)
            return None

    async def get(self, key: str) -> Any | None:
        """Return the value if present and not expired; expired rows are deleted."""
        entry = await self.get_entry(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            await self.remove(key)
            return None
        return entry.value

    async def get_stale(self, key: str) -> Any | None:
        """Return the value regardless of expiry."""
        entry = await self.get_entry(key)
        return None if entry is None else entry.value

    async def set(self, key: str, value: Any, ttl: float) -> None:
        """Upsert ``key``."""
        conn = await self._connection()
        if conn is None:
            return
        now = self._clock()
        try:
            await conn.execute(
                "INSERT OR REPLACE INTO cache_entries(key, value, created_at, expires_at) VALUES(?, ?, ?, ?)",
                (key, json.dumps(value), now, now + ttl),
            )
            await conn.commit()
        except _STORAGE_ERRORS as e:
            logger.warning("Durable cache write failed for %s: %s", key, e)

    async def _execute(self, sql: str, params: tuple = ()) -> int:
        conn = await self._connection()
        if conn is None:
            return 0
        try:
            cursor = await conn.execute(sql, params)
            await conn.commit()
            return cursor.rowcount
        except _STORAGE_ERRORS as e:
            logger.warning("Durable cache statement failed (%s): %s", sql.split()[0], e)
            return 0

    async def remove(self, key: str) -> None:
        """Remove a single key."""
        await self._execute("DELETE FROM cache_entries WHERE key=?", (key,))

    async def clear(self) -> None:
        """Remove every entry."""
        await self._execute("DELETE FROM cache_entries")

    async def clear_by_pattern(self, pattern: str) -> int:
        """Remove every entry whose key contains ``pattern``; returns the count."""
        return await self._execute("DELETE FROM cache_entries WHERE instr(key, ?) > 0", (pattern,))

    async def cleanup_expired(self) -> int:
        """Remove expired entries; returns the count."""
        return await self._execute("DELETE FROM cache_entries WHERE expires_at < ?", (self._clock(),))

    async def close(self) -> None:
        """Close the underlying connection."""
        if self._conn is not None:
            try:
                await self._conn.close()
            except _STORAGE_ERRORS as e:
                logger.debug("Error closing durable cache: %s", e)
            self._conn = None
