"""Session-scoped persistent cache tier backed by a JSON file."""

import asyncio
import json
import logging
import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from explorer_gateway.cache.keys import CACHE_VERSION
from explorer_gateway.cache.memory import Backend, CacheEntry

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Small key-value store persisted as one JSON document.

    Every record carries the cache version it was written with; records from
    another version are dropped on read. Storage and serialization problems
    are logged and behave like a miss, never as an error.

    Reads are served from the document loaded on first use. Inside a running
    event loop, writes are persisted in the background on a worker thread;
    call :meth:`flush` to wait for them. Outside a loop they are written
    immediately.

    Parameters
    ----------
    path : Path
        JSON file holding the store
    prefix : str
        Prefix applied to every key inside the document
    version : str
        Cache version stamped onto records
    clock : Callable[[], float]
        Wall clock, injectable for tests

    """

    def __init__(
        self,
        path: Path,
        prefix: str = "explorer_",
        version: str = CACHE_VERSION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path)
        self.prefix = prefix
        self.version = version
        self._clock = clock
        self._items: dict[str, dict[str, Any]] | None = None
        self._dirty = False
        self._writer: asyncio.Task | None = None

    def _load(self) -> dict[str, dict[str, Any]]:
        if self._items is not None:
            return self._items
        self._items = {}
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
            if isinstance(raw, dict):
                self._items = raw
        except FileNotFoundError:
            pass
        except (OSError, ValueError) as e:
            logger.warning("Session store %s unreadable, starting empty: %s", self.path, e)
        return self._items

    def _persist(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            document = self._serialize()
            if document is not None:
                self._write(document)
            return

        # On the event loop the file write moves to a worker thread;
        # writes requested while one is running coalesce into the next
        self._dirty = True
        if self._writer is None or self._writer.done():
            self._writer = asyncio.ensure_future(self._write_behind())

    async def _write_behind(self) -> None:
        while self._dirty:
            self._dirty = False
            document = self._serialize()
            if document is not None:
                await asyncio.to_thread(self._write, document)

    def _serialize(self) -> str | None:
        try:
            return json.dumps(self._load())
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize session store %s: %s", self.path, e)
            return None

    def _write(self, document: str) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(document, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning("Failed to persist session store %s: %s", self.path, e)

    async def flush(self) -> None:
        """Wait for a scheduled background write to land."""
        if self._writer is not None:
            await asyncio.gather(self._writer, return_exceptions=True)

    def _record(self, key: str) -> dict[str, Any] | None:
        items = self._load()
        record = items.get(self.prefix + key)
        if record is None:
            return None
        if not isinstance(record, dict) or record.get("version") != self.version:
            items.pop(self.prefix + key, None)
            self._persist()
            return None
        return record

    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the stored entry regardless of expiry."""
        record = self._record(key)
        if record is None:
            return None
        try:
            return CacheEntry.restore(
                key, record["data"], float(record["created_at"]), float(record["expires_at"]), Backend.SESSION
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Dropping malformed session record %s: %s", key, e)
            self.remove(key)
            return None

    def get(self, key: str) -> Any | None:
        """Return the value if present and not expired."""
        entry = self.get_entry(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry.value

    def get_stale(self, key: str) -> Any | None:
        """Return the value regardless of expiry."""
        entry = self.get_entry(key)
        return None if entry is None else entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Upsert ``key``; unserializable values are skipped with a warning."""
        now = self._clock()
        record = {"data": value, "created_at": now, "expires_at": now + ttl, "version": self.version}
        try:
            json.dumps(record)
        except (TypeError, ValueError) as e:
            logger.warning("Value for %s is not JSON serializable, not persisted: %s", key, e)
            return
        self._load()[self.prefix + key] = record
        self._persist()

    def remove(self, key: str) -> None:
        """Remove a single key."""
        if self._load().pop(self.prefix + key, None) is not None:
            self._persist()

    def clear(self) -> None:
        """Remove every key carrying this store's prefix."""
        items = self._load()
        for stored_key in [k for k in items if k.startswith(self.prefix)]:
            del items[stored_key]
        self._persist()

    def clear_by_pattern(self, pattern: str) -> int:
        """Remove every key containing ``pattern``; returns the count."""
        items = self._load()
        matched = [k for k in items if k.startswith(self.prefix) and pattern in k[len(self.prefix) :]]
        for stored_key in matched:
            del items[stored_key]
        if matched:
            self._persist()
        return len(matched)

    def cleanup_expired(self) -> int:
        """Remove expired records; returns the count."""
        items = self._load()
        now = self._clock()
        expired = [
            k
            for k, record in items.items()
            if k.startswith(self.prefix) and isinstance(record, dict) and record.get("expires_at", 0) <= now
        ]
        for stored_key in expired:
            del items[stored_key]
        if expired:
            self._persist()
        return len(expired)
