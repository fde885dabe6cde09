"""Tiered cache combining memory, session, and durable backends."""

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import Any

from explorer_gateway.cache.durable import DurableCache
from explorer_gateway.cache.memory import CacheEntry, MemoryCache
from explorer_gateway.cache.session import SessionStore

logger = logging.getLogger(__name__)


class TieredCache:
    """
    Layered key-value cache.

    Reads consult the tiers fastest first (memory, session, durable) and
    promote lower-tier hits into memory. Writes land in memory immediately;
    the session file and durable rows are written in the background and never
    report failure to the caller.

    Parameters
    ----------
    memory : MemoryCache | None
        In-memory tier. A fresh one is created if None.
    session : SessionStore | None
        Optional session tier
    durable : DurableCache | None
        Optional durable tier
    memory_sweep_interval : float
        Seconds between memory expiry sweeps
    durable_sweep_interval : float
        Seconds between durable expiry sweeps
    clock : Callable[[], float]
        Wall clock, injectable for tests

    """

    def __init__(
        self,
        memory: MemoryCache | None = None,
        session: SessionStore | None = None,
        durable: DurableCache | None = None,
        memory_sweep_interval: float = 300.0,
        durable_sweep_interval: float = 600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self.memory = memory if memory is not None else MemoryCache(clock=clock)
        self.session = session
        self.durable = durable
        self.memory_sweep_interval = memory_sweep_interval
        self.durable_sweep_interval = durable_sweep_interval
        self._pending_writes: set[asyncio.Task] = set()
        self._sweepers: list[asyncio.Task] = []

    def now(self) -> float:
        """Current time on the cache clock."""
        return self._clock()

    async def get_entry(self, key: str) -> CacheEntry | None:
        """
        Find ``key`` in the fastest tier holding it, expired or not.

        Parameters
        ----------
        key : str
            Cache key

        Returns
        -------
        CacheEntry | None
            Entry (possibly stale) or None when no tier has it

        """
        entry = self.memory.get_entry(key)
        if entry is not None:
            return entry

        if self.session is not None:
            entry = self.session.get_entry(key)
        if entry is None and self.durable is not None:
            entry = await self.durable.get_entry(key)
            # A write that landed during the read is newer than the row
            written = self.memory.get_entry(key)
            if written is not None:
                return written

        if entry is not None:
            self.memory.put_entry(entry)
        return entry

    async def get(self, key: str) -> Any | None:
        """
        Strict read: None if absent or expired in every tier.

        A cached JSON ``null`` also reads as None, but a live memory entry
        holding it still answers the read without consulting slower tiers.

        """
        now = self._clock()
        entry = self.memory.get_entry(key)
        if entry is not None and not entry.is_expired(now):
            return entry.value

        if self.session is not None:
            entry = self.session.get_entry(key)
            if entry is not None and not entry.is_expired(now):
                self.memory.put_entry(entry)
                return entry.value
        if self.durable is not None:
            entry = await self.durable.get_entry(key)
            if entry is not None and not entry.is_expired(now):
                if self.memory.get_entry(key) is None:
                    self.memory.put_entry(entry)
                return entry.value
        return None

    async def get_stale(self, key: str) -> Any | None:
        """Read regardless of expiry; last-resort fallback for callers."""
        entry = await self.get_entry(key)
        return None if entry is None else entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """
        Upsert ``key`` in every tier, replacing any previous value.

        Must be called from a running event loop when a durable tier is
        configured, since the durable write is scheduled as a task. The
        session file is rewritten on a worker thread when a loop is running.

        """
        self.memory.set(key, value, ttl)
        if self.session is not None:
            self.session.set(key, value, ttl)
        if self.durable is not None:
            task = asyncio.ensure_future(self.durable.set(key, value, ttl))
            self._pending_writes.add(task)
            task.add_done_callback(self._write_done)

    def _write_done(self, task: asyncio.Task) -> None:
        self._pending_writes.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Background durable write failed: %s", task.exception())

    async def flush(self) -> None:
        """Wait for scheduled session and durable writes to settle."""
        if self.session is not None:
            await self.session.flush()
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def remove(self, key: str) -> None:
        """Remove ``key`` from every tier."""
        self.memory.remove(key)
        if self.session is not None:
            self.session.remove(key)
        if self.durable is not None:
            await self.flush()
            await self.durable.remove(key)

    async def clear_by_pattern(self, pattern: str) -> int:
        """
        Remove every key containing ``pattern`` from every tier.

        Parameters
        ----------
        pattern : str
            Substring matched against keys (typically a chain name)

        Returns
        -------
        int
            Number of entries removed from the memory tier

        """
        removed = self.memory.clear_by_pattern(pattern)
        if self.session is not None:
            self.session.clear_by_pattern(pattern)
        if self.durable is not None:
            await self.flush()
            await self.durable.clear_by_pattern(pattern)
        logger.debug("Cleared %d cached entries matching %r", removed, pattern)
        return removed

    async def clear(self) -> None:
        """Remove every entry from every tier."""
        self.memory.clear()
        if self.session is not None:
            self.session.clear()
        if self.durable is not None:
            await self.flush()
            await self.durable.clear()

    async def sweep(self) -> int:
        """Run one memory and one durable expiry sweep; returns memory evictions."""
        removed = self.memory.cleanup_expired()
        if self.durable is not None:
            await self.durable.cleanup_expired()
        return removed

    async def _sweep_loop(self, interval: float, sweep: Callable[[], Any]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                result = sweep()
                if asyncio.iscoroutine(result):
                    result = await result
                logger.debug("Cache sweep evicted %s entries", result)
            except Exception as e:
                logger.warning("Cache sweep failed: %s", e)

    def start(self) -> None:
        """Start the periodic expiry sweeps on the running loop."""
        if self._sweepers:
            return
        self._sweepers.append(
            asyncio.create_task(self._sweep_loop(self.memory_sweep_interval, self.memory.cleanup_expired))
        )
        if self.durable is not None:
            self._sweepers.append(
                asyncio.create_task(self._sweep_loop(self.durable_sweep_interval, self.durable.cleanup_expired))
            )

    async def stop(self) -> None:
        """Cancel the sweeps, drain pending writes, and close the durable tier."""
        for task in self._sweepers:
            task.cancel()
        for task in self._sweepers:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._sweepers.clear()
        await self.flush()
        if self.durable is not None:
            await self.durable.close()
