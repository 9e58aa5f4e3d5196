"""Cache invalidation for mutation handlers.

Mutation handlers call the bus after their store write has committed to
drop cached responses that may now be stale:

    bus.invalidate(Namespace.POST, post_id)  # one key: "post:{post_id}"
    bus.invalidate(Namespace.POSTS)          # every key under "posts:"

There is no dependency tracking between namespaces. Each mutation handler
names every namespace its change can affect, including list namespaces
whose ordering depends on the changed field.

Invalidation is best effort. The mutation already succeeded at the store,
so a failure here is logged and swallowed; the stale entry then lives at
most until its TTL.
"""

from __future__ import annotations

import logging

from momento.cache.keys import Namespace, make_key
from momento.cache.memory import KeyedCache
from momento.observability.metrics import record_invalidation

logger = logging.getLogger(__name__)

InvalidationTarget = tuple[Namespace | str, str | None]


def _namespace_name(namespace: Namespace | str) -> str:
    return namespace.value if isinstance(namespace, Namespace) else namespace


class InvalidationBus:
    """Uniform way for mutation handlers to evict stale cache entries."""

    def __init__(self, cache: KeyedCache):
        self.cache = cache

    def invalidate(self, namespace: Namespace | str, id: str | None = None) -> int:
        """Delete namespace:id, or the whole namespace when id is omitted.

        Returns the number of entries removed (0 on failure).
        """
        ns = _namespace_name(namespace)
        try:
            if id is not None:
                removed = 1 if self.cache.delete(make_key(ns, id)) else 0
            else:
                removed = self.cache.delete_namespace(ns)
        except Exception as e:
            record_invalidation(ns, "error")
            logger.warning(
                f"Cache invalidation failed for {ns}:{id if id is not None else '*'}: {e}"
            )
            return 0

        record_invalidation(ns, "ok")
        logger.debug(f"Invalidated {removed} entries for {ns}:{id if id is not None else '*'}")
        return removed

    def invalidate_many(self, *targets: InvalidationTarget) -> int:
        """Invalidate several (namespace, id) targets, each independently."""
        return sum(self.invalidate(namespace, id) for namespace, id in targets)
