#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Stale-while-revalidate cache
============================
Serves slow remote data (site configuration, documents, listings) without
making the caller wait on the network more than necessary.

Per key, by ``age = now - cached_at``:

  placeholder        refresh synchronously; on failure serve the placeholder
  age < fresh_ttl    serve cached value
  age < stale_ttl    serve cached value, refresh in a background task
  otherwise / miss   refresh synchronously; on failure serve the previous
                     value if there is one, else store a short-lived
                     placeholder holding ``default`` and serve that

Each entry is a value plus its metadata (``cached_at``, ``is_placeholder``).
Backends write and delete the two as one unit; a half-present pair reads as
a miss.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import json
import logging
import pickle
import time
import weakref
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional

from unfold.core.errors import CacheFetchError

log = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
Clock = Callable[[], float]


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class CacheEntry:
    value: Any
    cached_at: float
    is_placeholder: bool = False


# -----------------------------------------------------------------------------
# Backends
# -----------------------------------------------------------------------------

class BaseCacheStore(ABC):
    """Storage for (value, metadata) pairs."""

    @abstractmethod
    async def read(self, key: str) -> Optional[CacheEntry]:
        """Return the entry, or None when either half is missing or expired."""

    @abstractmethod
    async def write(self, key: str, entry: CacheEntry, ttl: float) -> None:
        """Store value and metadata together; both expire after *ttl* seconds."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove value and metadata together."""

    async def close(self) -> None:
        return None


# -----------------------------------------------------------------------------

class MemoryCacheStore(BaseCacheStore):
    """
    In-process store.  The pair lives in a single dict slot.  Expired slots
    are dropped when read, and swept at most once per ``sweep_interval`` on
    write.
    """

    def __init__(self, clock: Clock = time.time, sweep_interval: float = 60) -> None:
        self._clock = clock
        self._slots: dict[str, tuple[Any, dict, float]] = {}
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    async def read(self, key: str) -> Optional[CacheEntry]:
        slot = self._slots.get(key)
        if slot is None:
            return None
        value, meta, expires_at = slot
        if self._clock() >= expires_at:
            self._slots.pop(key, None)
            return None
        return CacheEntry(value, meta["cached_at"], meta["is_placeholder"])

    async def write(self, key: str, entry: CacheEntry, ttl: float) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        meta = {"cached_at": entry.cached_at, "is_placeholder": entry.is_placeholder}
        self._slots[key] = (entry.value, meta, now + ttl)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, _, expires_at) in self._slots.items() if now >= expires_at]
        for key in expired:
            del self._slots[key]
        self._next_sweep = now + self._sweep_interval
        if expired:
            log.debug("Memory cache swept %d expired slot(s)", len(expired))

    async def delete(self, key: str) -> None:
        self._slots.pop(key, None)

    def __len__(self) -> int:
        return len(self._slots)


# -----------------------------------------------------------------------------

class RedisCacheStore(BaseCacheStore):
    """
    Redis-backed store for multi-process deployments (CACHE_BACKEND=redis).

    The value is pickled under ``<prefix><key>`` and the metadata is JSON under
    ``<prefix><key>:meta``; both are set in one MULTI/EXEC with the same
    expiry, read with one MGET and deleted with one DEL.
    """

    META_SUFFIX = ":meta"

    def __init__(self, redis_url: str = "", prefix: str = "unfold:", client=None) -> None:
        if client is None:
            import redis.asyncio as aioredis
            client = aioredis.Redis.from_url(redis_url)
        self._client = client
        self._prefix = prefix

    def _keys(self, key: str) -> tuple[str, str]:
        k = f"{self._prefix}{key}"
        return k, k + self.META_SUFFIX

    async def read(self, key: str) -> Optional[CacheEntry]:
        value_key, meta_key = self._keys(key)
        raw_value, raw_meta = await self._client.mget(value_key, meta_key)
        if raw_value is None or raw_meta is None:
            return None
        try:
            meta = json.loads(raw_meta)
            value = pickle.loads(raw_value)
        except (ValueError, pickle.UnpicklingError, EOFError) as exc:
            log.warning("Discarding unreadable cache entry %s: %s", key, exc)
            return None
        return CacheEntry(value, float(meta["cached_at"]), bool(meta["is_placeholder"]))

    async def write(self, key: str, entry: CacheEntry, ttl: float) -> None:
        value_key, meta_key = self._keys(key)
        meta = json.dumps({"cached_at": entry.cached_at, "is_placeholder": entry.is_placeholder})
        expiry = max(1, int(ttl))
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(value_key, pickle.dumps(entry.value), ex=expiry)
            pipe.set(meta_key, meta, ex=expiry)
            await pipe.execute()

    async def delete(self, key: str) -> None:
        await self._client.delete(*self._keys(key))

    async def close(self) -> None:
        await self._client.aclose()


# -----------------------------------------------------------------------------

def create_cache_store(settings=None, clock: Clock = time.time) -> BaseCacheStore:
    """Instantiate the configured cache backend (memory unless told otherwise)."""
    backend = "memory" if settings is None else settings.cache_backend

    if backend == "memory":
        return MemoryCacheStore(clock=clock)

    if backend == "redis":
        if not settings.cache_redis_url:
            raise ValueError("CACHE_REDIS_URL must be set when CACHE_BACKEND=redis")
        return RedisCacheStore(settings.cache_redis_url, prefix=settings.cache_key_prefix)

    raise ValueError(f"Unsupported cache backend: {backend!r}")


# -----------------------------------------------------------------------------
# Stale-while-revalidate
# -----------------------------------------------------------------------------

class StaleWhileRevalidateCache:

    def __init__(
        self,
        store: BaseCacheStore,
        clock: Clock = time.time,
        placeholder_ttl: float = 30,
        keep_expired_for: float = 86400,
    ) -> None:
        self._store = store
        self._clock = clock
        self._placeholder_ttl = placeholder_ttl
        # How long past stale_ttl an entry is kept as a fallback for failed refreshes
        self._keep_expired_for = keep_expired_for
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    def store(self) -> BaseCacheStore:
        return self._store

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # ── read path ──────────────────────────────────────────────────────────

    async def get(
        self,
        key: str,
        fetcher: Fetcher,
        fresh_ttl: float = 120,
        stale_ttl: float = 3600,
        default: Any = None,
    ) -> Any:
        entry = await self._store.read(key)

        if entry is not None:
            age = self._clock() - entry.cached_at

            if entry.is_placeholder:
                log.debug("SWR hit on placeholder, refreshing key=%s age=%.0fs", key, age)
                try:
                    return await self._refresh(key, fetcher, fresh_ttl, stale_ttl, seen=entry)
                except CacheFetchError as exc:
                    log.warning("SWR refresh failed, serving placeholder key=%s: %s", key, exc.cause)
                    return entry.value

            if age < fresh_ttl:
                log.debug("SWR hit (fresh) key=%s age=%.0fs", key, age)
                return entry.value

            if age < stale_ttl:
                log.debug("SWR hit (stale, revalidating) key=%s age=%.0fs", key, age)
                self._schedule_refresh(key, fetcher, fresh_ttl, stale_ttl)
                return entry.value

            log.debug("SWR expired, refreshing with fallback key=%s age=%.0fs", key, age)
            try:
                return await self._refresh(key, fetcher, fresh_ttl, stale_ttl, seen=entry)
            except CacheFetchError as exc:
                log.warning("SWR refresh failed, serving expired value key=%s: %s", key, exc.cause)
                return entry.value

        log.debug("SWR miss, fetching key=%s", key)
        try:
            return await self._refresh(key, fetcher, fresh_ttl, stale_ttl, seen=None)
        except CacheFetchError as exc:
            log.error("SWR fetch failed on miss, storing placeholder key=%s: %s", key, exc.cause)
            placeholder = CacheEntry(default, self._clock(), is_placeholder=True)
            await self._store.write(key, placeholder, self._placeholder_ttl)
            return default

    async def invalidate(self, key: str) -> None:
        await self._store.delete(key)
        log.debug("SWR invalidated key=%s", key)

    async def warm(self, key: str, fetcher: Fetcher,
                   fresh_ttl: float = 120, stale_ttl: float = 3600) -> bool:
        """Fetch and store unconditionally.  Returns False (and logs) on failure."""
        try:
            await self._fetch_and_cache(key, fetcher, fresh_ttl, stale_ttl)
        except CacheFetchError as exc:
            log.warning("SWR warm failed key=%s: %s", key, exc.cause)
            return False
        return True

    async def drain(self) -> None:
        """Wait for every scheduled background refresh to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    # ── refresh ────────────────────────────────────────────────────────────

    async def _refresh(self, key: str, fetcher: Fetcher, fresh_ttl: float,
                       stale_ttl: float, seen: Optional[CacheEntry]) -> Any:
        async with self._lock_for(key):
            # Another caller may have refreshed while we waited for the lock
            current = await self._store.read(key)
            if (
                current is not None
                and not current.is_placeholder
                and (seen is None or current.cached_at > seen.cached_at)
                and self._clock() - current.cached_at < fresh_ttl
            ):
                return current.value
            return await self._fetch_and_cache(key, fetcher, fresh_ttl, stale_ttl)

    async def _fetch_and_cache(self, key: str, fetcher: Fetcher,
                               fresh_ttl: float, stale_ttl: float) -> Any:
        try:
            value = await fetcher()
        except Exception as exc:
            raise CacheFetchError(key, exc) from exc

        entry = CacheEntry(value, self._clock(), is_placeholder=False)
        await self._store.write(key, entry, stale_ttl + self._keep_expired_for)
        log.debug("SWR cached fresh value key=%s fresh_ttl=%s stale_ttl=%s", key, fresh_ttl, stale_ttl)
        return value

    def _schedule_refresh(self, key: str, fetcher: Fetcher,
                          fresh_ttl: float, stale_ttl: float) -> None:
        if key in self._inflight:
            return
        task = asyncio.get_running_loop().create_task(
            self._background_refresh(key, fetcher, fresh_ttl, stale_ttl),
            name=f"swr-refresh:{key}",
        )
        self._inflight[key] = task
        task.add_done_callback(lambda _t: self._inflight.pop(key, None))

    async def _background_refresh(self, key: str, fetcher: Fetcher,
                                  fresh_ttl: float, stale_ttl: float) -> None:
        try:
            async with self._lock_for(key):
                await self._fetch_and_cache(key, fetcher, fresh_ttl, stale_ttl)
            log.debug("SWR background refresh completed key=%s", key)
        except CacheFetchError as exc:
            log.warning("SWR background refresh failed key=%s: %s", key, exc.cause)


# -----------------------------------------------------------------------------
