"""
commitboard.engine.cache — Cache-Aside Store with TTL
======================================================

Every cached value is stored JSON-serialised, so a hit hands back an
equal copy rather than a shared object.  Two interchangeable backends:

* :class:`MemoryCacheStore` — per-process dict, injectable clock.
* :class:`SqlCacheStore` — ``cache_entries`` table, shared between API
  workers.

Neither backend locks around ``compute``: two concurrent misses on the same
key may both compute, and the last write wins.  Entries silently expire
after their TTL; there is no other invalidation.  Expired entries are
dropped when read, and writes sweep out the rest at most once every
``sweep_interval`` seconds.

Usage::

    cache = MemoryCacheStore()
    stats = await cache.cached("stats:response", compute_stats, ttl=15)
"""

from __future__ import annotations

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from commitboard.database.engine import run_db
from commitboard.database.models import CacheEntry

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]

SWEEP_INTERVAL = 60.0  # seconds between expired-entry sweeps on write


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


class CacheStore(ABC):
    """Key/value store with optional per-entry TTL (seconds)."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value for *key*, or ``None`` if absent/expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store *value* under *key*.  ``ttl=None`` keeps it indefinitely."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every entry."""

    async def cached(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value for *key*, computing and storing it on a miss.

        A stored ``None`` counts as a miss.
        """
        existing = await self.get(key)
        if existing is not None:
            logger.debug("Cache HIT: %s", key)
            return existing

        logger.debug("Cache MISS: %s", key)
        value = await compute()
        await self.set(key, value, ttl)
        return value


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------
class MemoryCacheStore(CacheStore):
    """Thread-safe in-process cache.

    *clock* defaults to :func:`time.monotonic`; tests pass a fake clock to
    step past TTLs without sleeping.
    """

    def __init__(
        self, clock: Clock = time.monotonic, sweep_interval: float = SWEEP_INTERVAL
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        # key → (serialised value, expiry or None)
        self._entries: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if expires_at is not None and now >= expires_at:
                del self._entries[key]
                return None
        return json.loads(raw)

    def _sweep_locked(self, now: float) -> None:
        expired = [
            key for key, (_, expires_at) in self._entries.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self._sweep_interval
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        now = self._clock()
        expires_at = now + ttl if ttl is not None else None
        raw = _dumps(value)
        with self._lock:
            if now >= self._next_sweep:
                self._sweep_locked(now)
            self._entries[key] = (raw, expires_at)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------
class SqlCacheStore(CacheStore):
    """Cache backed by the ``cache_entries`` table.

    Expiry is stored as a wall-clock epoch so every worker process agrees
    on it.  Expired rows are deleted when read, and :meth:`set` calls
    :meth:`purge_expired` at most once every *sweep_interval* seconds.
    """

    def __init__(
        self,
        engine: Engine,
        clock: Clock = time.time,
        sweep_interval: float = SWEEP_INTERVAL,
    ) -> None:
        self._engine = engine
        self._clock = clock
        self._write_lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def _get_sync(self, key: str) -> str | None:
        now = self._clock()
        with Session(self._engine) as session:
            row = session.get(CacheEntry, key)
            if row is None:
                return None
            if row.expires_at is not None and now >= row.expires_at:
                session.delete(row)
                session.commit()
                return None
            return row.value_json

    def _set_sync(self, key: str, raw: str, expires_at: float | None) -> None:
        with self._write_lock, Session(self._engine) as session:
            row = session.get(CacheEntry, key)
            if row is None:
                session.add(CacheEntry(key=key, value_json=raw, expires_at=expires_at))
            else:
                row.value_json = raw
                row.expires_at = expires_at
            try:
                session.commit()
                return
            except IntegrityError:
                # Another worker process inserted the key first; overwrite it.
                session.rollback()
            session.execute(
                update(CacheEntry)
                .where(CacheEntry.key == key)
                .values(value_json=raw, expires_at=expires_at)
            )
            session.commit()

    def _clear_sync(self) -> None:
        with Session(self._engine) as session:
            session.execute(delete(CacheEntry))
            session.commit()

    def purge_expired(self) -> int:
        """Delete every expired row and return how many were removed."""
        now = self._clock()
        with self._write_lock, Session(self._engine) as session:
            keys = session.scalars(
                select(CacheEntry.key).where(
                    CacheEntry.expires_at.is_not(None),
                    CacheEntry.expires_at <= now,
                )
            ).all()
            if keys:
                session.execute(delete(CacheEntry).where(CacheEntry.key.in_(keys)))
                session.commit()
        if keys:
            logger.info("Purged %d expired cache entries", len(keys))
        return len(keys)

    async def get(self, key: str) -> Any | None:
        raw = await run_db(self._get_sync, key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self._next_sweep = now + self._sweep_interval
            await run_db(self.purge_expired)
        expires_at = now + ttl if ttl is not None else None
        await run_db(self._set_sync, key, _dumps(value), expires_at)

    async def clear(self) -> None:
        await run_db(self._clear_sync)
