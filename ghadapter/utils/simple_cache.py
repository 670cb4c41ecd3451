"""In-memory TTL cache used to avoid repeated installation-token exchanges.

Keeps the LRU/TTL bookkeeping of a plain dict cache and adds
``get_or_compute``: on a miss the factory runs once per key, and concurrent
callers asking for the same key wait on that single in-flight computation.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass
class CacheItem(Generic[V]):
    """Container for cached values with expiration metadata."""

    value: V
    expires_at: float


class ExpiringCache(Generic[V]):
    """In-memory TTL cache with LRU eviction and single-flight fills.

    ``None`` is not a storable value; a ``None`` read is always a miss.

    Attributes:
        ttl_seconds: Default time-to-live applied to entries.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(self, ttl_seconds: float = 3600, max_entries: int | None = 1024) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._store: OrderedDict[str, CacheItem[V]] = OrderedDict()
        self._inflight: dict[str, asyncio.Future[V]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._coalesced = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"ExpiringCache(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    def get(self, key: str) -> V | None:
        """Retrieve a cached value if it exists and is not expired.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found/expired.
        """

        with self._lock:
            item = self._store.get(key)
            if not item:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
                return None

            if self._is_expired(item):
                self._evict_single(key)
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "expired"})
                return None

            self._hits += 1
            self._store.move_to_end(key)  # mark as recently used
            logger.debug("cache.hit", extra={"cache_key": key})
            return item.value

    def set(self, key: str, value: V, ttl_seconds: float | None = None) -> None:
        """Store a value with TTL, evicting as needed.

        Args:
            key: Cache key.
            value: Value to store.
            ttl_seconds: Per-entry TTL; falls back to the cache default.
        """

        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._evict_expired_locked()
            self._store[key] = CacheItem(value=value, expires_at=time.time() + ttl)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.set",
                extra={"cache_key": key, "size": len(self._store), "ttl_s": ttl},
            )

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    async def get_or_compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[V]],
        ttl_seconds: float | None = None,
    ) -> V:
        """Return the cached value for ``key``, computing and storing it on a miss.

        Concurrent misses for one key share a single ``factory()`` call. If
        the factory raises, every waiter receives the error and nothing is
        stored. A waiter that gets cancelled does not cancel the shared
        computation.

        Args:
            key: Cache key.
            factory: Zero-argument coroutine function producing the value.
            ttl_seconds: TTL for the computed entry.

        Returns:
            The cached or freshly computed value.
        """

        value = self.get(key)
        if value is not None:
            return value

        pending = self._inflight.get(key)
        if pending is not None:
            self._coalesced += 1
            logger.debug("cache.coalesced", extra={"cache_key": key})
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._compute(key, factory, ttl_seconds))
        task.add_done_callback(_mark_exception_retrieved)
        self._inflight[key] = task
        return await asyncio.shield(task)

    async def _compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[V]],
        ttl_seconds: float | None,
    ) -> V:
        try:
            value = await factory()
            self.set(key, value, ttl_seconds)
            return value
        finally:
            self._inflight.pop(key, None)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._coalesced = 0

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "coalesced": self._coalesced,
                "inflight": len(self._inflight),
            }

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = time.time()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

    def _is_expired(self, item: CacheItem[V]) -> bool:
        return time.time() >= item.expires_at


def _mark_exception_retrieved(future: asyncio.Future) -> None:
    # Waiters may all have been cancelled; avoid "exception was never retrieved"
    if not future.cancelled():
        future.exception()


def installation_token_key(installation_id: int) -> str:
    """Build the cache key holding the token of one installation."""

    return f"installation:{installation_id}:token"
