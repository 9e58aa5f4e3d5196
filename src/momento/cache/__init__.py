"""Response cache layer for Momento.

Provides an in-process cache for read responses:
- KeyedCache stores serialized responses with per-entry TTL
- Keys are namespaced so related responses are invalidated together
- InvalidationBus lets mutation handlers evict stale entries
- A periodic sweep bounds memory held by expired entries
"""

from momento.cache.invalidation import InvalidationBus
from momento.cache.keys import CacheKeys, Namespace, make_key, query_discriminator
from momento.cache.memory import CacheEntry, CacheStats, KeyedCache

__all__ = [
    # Core cache
    "CacheEntry",
    "CacheStats",
    "KeyedCache",
    # Keys
    "CacheKeys",
    "Namespace",
    "make_key",
    "query_discriminator",
    # Invalidation
    "InvalidationBus",
]
