"""Cache key schema for Momento.

Key format: {namespace}:{discriminator}

Where:
- namespace: family of keys invalidated together ("post", "posts", "user", ...)
- discriminator: resource id, or a stable serialization of the query shape
  for list responses (e.g. "latest:{"limit":"20","skip":"0"}")

Two requests with the same discriminator must be interchangeable, so query
parameters are serialized with sorted keys and normalized values.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

import orjson

NAMESPACE_SEPARATOR = ":"


class Namespace(str, Enum):
    """Cache namespaces."""

    POST = "post"  # single post by id
    POSTS = "posts"  # post lists and feeds
    USER = "user"  # user profile by id
    FOLLOWS = "follows"  # follower / following lists
    REVIEWS = "reviews"  # reviews of a post


def make_key(namespace: str | Namespace, discriminator: str) -> str:
    """Build a cache key from a namespace and discriminator."""
    ns = namespace.value if isinstance(namespace, Namespace) else namespace
    return f"{ns}{NAMESPACE_SEPARATOR}{discriminator}"


def _normalize(value: Any) -> Any:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    return str(value)


def query_discriminator(
    params: Mapping[str, Any],
    *,
    include: Iterable[str] | None = None,
    prefix: str | None = None,
) -> str:
    """Serialize query parameters into a stable discriminator.

    Keys are sorted and values normalized to strings so that "?skip=0&limit=20"
    and "?limit=20&skip=0" map to the same key. Parameters whose value is None
    are dropped.

    Args:
        params: Query parameters (e.g. request.query_params or a dict)
        include: Only these parameter names take part in the key
        prefix: Leading component, e.g. a user id for per-user lists
    """
    allowed = set(include) if include is not None else None
    normalized = {
        name: _normalize(value)
        for name, value in params.items()
        if value is not None and (allowed is None or name in allowed)
    }
    shape = orjson.dumps(normalized, option=orjson.OPT_SORT_KEYS).decode("utf-8")
    return f"{prefix}{NAMESPACE_SEPARATOR}{shape}" if prefix else shape


class CacheKeys:
    """Cache key generator following the namespace convention."""

    @classmethod
    def post(cls, post_id: str) -> str:
        """Key for a single post."""
        return make_key(Namespace.POST, post_id)

    @classmethod
    def user(cls, user_id: str) -> str:
        """Key for a user profile."""
        return make_key(Namespace.USER, user_id)

    @classmethod
    def post_list(cls, params: Mapping[str, Any], scope: str = "all") -> str:
        """Key for a page of posts.

        The scope separates the global list from per-user lists and feeds,
        e.g. "all", "user:{id}", "feed:{id}".
        """
        return make_key(Namespace.POSTS, query_discriminator(params, prefix=scope))

    @classmethod
    def parse_key(cls, key: str) -> dict[str, str] | None:
        """Split a key into namespace and discriminator.

        Returns None if the key has no namespace separator.
        """
        namespace, sep, discriminator = key.partition(NAMESPACE_SEPARATOR)
        if not sep or not namespace:
            return None
        return {"namespace": namespace, "discriminator": discriminator}
