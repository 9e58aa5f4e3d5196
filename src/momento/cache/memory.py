"""In-process keyed cache with per-entry TTL and bounded size.

Entries expire lazily on read and proactively through a background sweep.
When the cache is full, inserting a new key evicts roughly the oldest 10%
of entries by creation time. Reads never reorder entries, so an old entry
that is read often can still be evicted before a new one that is never read.

All operations are synchronous and never suspend; the cache is shared by
every request handler on the event loop without locks. Adding true
parallelism requires guarding `get`/`set` again.

Example:
    cache = KeyedCache(max_size=1000, default_ttl=300)
    cache.set("post:42", payload, ttl=120)
    cache.get("post:42")
    cache.delete_namespace("post")
"""

from __future__ import annotations

import asyncio
import heapq
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable

from momento.cache.keys import NAMESPACE_SEPARATOR
from momento.observability.metrics import record_cache_eviction

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0
DEFAULT_MAX_SIZE = 1000
DEFAULT_SWEEP_INTERVAL = 300.0

# Share of max_size evicted when a new key arrives at capacity
EVICTION_FRACTION = 0.1


@dataclass
class CacheEntry:
    """A cached value with its creation and expiry times."""

    value: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache statistics."""

    total: int
    active: int
    expired: int
    max_size: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "active": self.active,
            "expired": self.expired,
            "maxSize": self.max_size,
        }


class KeyedCache:
    """Opaque key to value store with expiration and capacity-bounded eviction."""

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._sweeper: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def get(self, key: str) -> Any | None:
        """Return the value for key, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """Store value under key for ttl seconds (default_ttl when omitted)."""
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_oldest()

        now = self._clock()
        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + (self.default_ttl if ttl is None else ttl),
        )
        return True

    def delete(self, key: str) -> bool:
        """Remove key. Returns whether it was present."""
        return self._entries.pop(key, None) is not None

    def delete_namespace(self, namespace: str) -> int:
        """Remove every key under namespace. Returns the number removed.

        Only exact namespace members match: "post" removes "post:1" but not
        "posts:list".
        """
        prefix = f"{namespace}{NAMESPACE_SEPARATOR}"
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> int:
        """Remove all entries. Returns the number removed."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> CacheStats:
        """Classify entries as active or expired at call time."""
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
        return CacheStats(
            total=len(self._entries),
            active=len(self._entries) - expired,
            expired=expired,
            max_size=self.max_size,
        )

    def cleanup(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_oldest(self) -> None:
        count = max(1, math.floor(self.max_size * EVICTION_FRACTION))
        oldest = heapq.nsmallest(
            count, self._entries.items(), key=lambda item: item[1].created_at
        )
        for key, _entry in oldest:
            del self._entries[key]
        record_cache_eviction(len(oldest))
        logger.debug(f"Evicted {len(oldest)} oldest cache entries at capacity {self.max_size}")

    # -------------------------------------------------------------------------
    # Background sweep
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic expired-entry sweep."""
        if self._sweeper is not None:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop())
        logger.info(f"Started cache sweeper (interval {self.sweep_interval}s)")

    async def stop(self) -> None:
        """Stop the periodic sweep."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("Stopped cache sweeper")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            removed = self.cleanup()
            if removed:
                logger.debug(f"Cache sweep removed {removed} expired entries")
