"""Stale-while-revalidate resolution with in-flight request de-duplication."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from explorer_gateway.cache.tiered import TieredCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StaleWhileRevalidate:
    """
    Serve cached values immediately and refresh them in the background.

    A memory hit (fresh, or stale with revalidation) is answered inline
    without suspending. Anything else runs the whole "look up the slower
    tiers, then maybe fetch" sequence inside one shared task per key. That
    task is registered synchronously before the first suspension point, so
    concurrent callers always attach to it instead of starting their own
    lookup and fetch. At most one upstream fetch per key is in flight at any
    time.

    Parameters
    ----------
    cache : TieredCache
        Cache consulted and populated by :meth:`resolve`

    """

    def __init__(self, cache: TieredCache) -> None:
        self.cache = cache
        self._resolving: dict[tuple[str, bool], asyncio.Task] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()

    async def resolve(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: float,
        stale_while_revalidate: bool = True,
    ) -> T:
        """
        Return the value for ``key``, fetching it only when needed.

        Parameters
        ----------
        key : str
            Cache key
        fetcher : Callable[[], Awaitable[T]]
            Coroutine factory producing a fresh value
        ttl : float
            Freshness lifetime of a fetched value in seconds
        stale_while_revalidate : bool
            Serve an expired entry while refreshing it. If False, an expired
            entry is treated as a miss.

        Returns
        -------
        T
            Fresh, stale, or newly fetched value

        Raises
        ------
        Exception
            Whatever ``fetcher`` raised, when no cached value exists

        """
        entry = self.cache.memory.get_entry(key)
        if entry is not None:
            if not entry.is_expired(self.cache.now()):
                return entry.value
            if stale_while_revalidate:
                self._fetch_and_cache(key, fetcher, ttl)
                logger.debug("Serving stale %s while revalidating", key)
                return entry.value

        # Memory miss: the slower tiers suspend, so share one lookup per key
        marker = (key, stale_while_revalidate)
        task = self._resolving.get(marker)
        if task is None:
            task = self._spawn(self._resolve_once(marker, fetcher, ttl))
            self._resolving[marker] = task
            task.add_done_callback(lambda done: self._detach(self._resolving, marker, done))
        return await asyncio.shield(task)

    async def _resolve_once(
        self,
        marker: tuple[str, bool],
        fetcher: Callable[[], Awaitable[T]],
        ttl: float,
    ) -> T:
        key, stale_while_revalidate = marker
        entry = await self.cache.get_entry(key)
        if entry is not None and not entry.is_expired(self.cache.now()):
            return entry.value

        # A forgotten lookup still finishes, but must not claim the key again
        attached = self._resolving.get(marker) is asyncio.current_task()
        refresh = self._fetch_and_cache(key, fetcher, ttl, register=attached)
        if entry is not None and stale_while_revalidate:
            logger.debug("Serving stale %s while revalidating", key)
            return entry.value
        return await refresh

    def _fetch_and_cache(
        self, key: str, fetcher: Callable[[], Awaitable[T]], ttl: float, register: bool = True
    ) -> asyncio.Task:
        pending = self._in_flight.get(key) if register else None
        if pending is not None:
            return pending

        task = self._spawn(self._run(key, fetcher, ttl))
        if register:
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._detach(self._in_flight, key, done))
        return task

    async def _run(self, key: str, fetcher: Callable[[], Awaitable[T]], ttl: float) -> T:
        data = await fetcher()
        self.cache.set(key, data, ttl)
        return data

    def _spawn(self, coro: Awaitable[T]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._settle)
        return task

    def _settle(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        # Retrieve the outcome even when every caller has gone away
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug("Cache fetch failed: %s", error)

    @staticmethod
    def _detach(markers: dict, marker, task: asyncio.Task) -> None:
        if markers.get(marker) is task:
            del markers[marker]

    def in_flight(self, key: str) -> bool:
        """Whether a lookup or fetch for ``key`` is currently running."""
        return key in self._in_flight or any(marker[0] == key for marker in self._resolving)

    def forget(self, key: str) -> None:
        """Detach the in-flight markers for ``key``; running work keeps going."""
        self._in_flight.pop(key, None)
        for marker in [m for m in self._resolving if m[0] == key]:
            del self._resolving[marker]

    def forget_pattern(self, pattern: str) -> int:
        """Detach every in-flight marker whose key contains ``pattern``; returns the key count."""
        matched = {key for key in self._in_flight if pattern in key}
        matched.update(marker[0] for marker in self._resolving if pattern in marker[0])
        for key in matched:
            self.forget(key)
        return len(matched)

    async def drain(self) -> None:
        """Wait for every in-flight lookup and fetch to settle, ignoring failures."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def pending(self) -> list[str]:
        """Keys with a lookup or fetch in flight."""
        keys = dict.fromkeys(self._in_flight)
        keys.update(dict.fromkeys(marker[0] for marker in self._resolving))
        return list(keys)
