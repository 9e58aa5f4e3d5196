"""Shared FastAPI dependencies for Momento routers.

Provides reusable components to reduce boilerplate across API endpoints:
- Access to the per-application cache, invalidator and fan-out
- Acting-user identity from the X-User-Id header
- Pagination query parameters
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Callable

from fastapi import Depends, Header, Query, Request

from momento.api.errors import UnauthorizedError
from momento.cache import InvalidationBus, KeyedCache
from momento.config import Settings
from momento.realtime import ConnectionRegistry, RealtimeFanout


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> KeyedCache:
    return request.app.state.cache


def get_invalidator(request: Request) -> InvalidationBus:
    return request.app.state.invalidator


def get_fanout(request: Request) -> RealtimeFanout:
    return request.app.state.fanout


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


# =============================================================================
# Identity
# =============================================================================


def get_current_user_id(
    x_user_id: Annotated[str | None, Header(description="Acting user id")] = None,
) -> str:
    """Resolve the acting user.

    Authentication happens upstream; the gateway forwards the verified
    identity in X-User-Id.

    Raises:
        UnauthorizedError: If the header is missing or blank
    """
    if x_user_id is None or not x_user_id.strip():
        raise UnauthorizedError()
    return x_user_id.strip()


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


# =============================================================================
# Pagination
# =============================================================================


@dataclass
class Pagination:
    limit: int
    skip: int


def get_pagination(
    request: Request,
    limit: Annotated[int | None, Query(ge=1, description="Maximum items to return")] = None,
    skip: Annotated[int, Query(ge=0, description="Items to skip")] = 0,
) -> Pagination:
    """Pagination parameters clamped to the configured maximum."""
    settings = get_settings(request)
    if limit is None:
        limit = settings.default_page_limit
    return Pagination(limit=min(limit, settings.max_page_limit), skip=skip)


PageParams = Annotated[Pagination, Depends(get_pagination)]


def resolved_pagination(request: Request) -> Pagination:
    """Pagination as get_pagination resolves it, read straight from the request.

    Cache key functions run before the endpoint and only see the request;
    query validation has already passed by then.
    """
    limit = request.query_params.get("limit")
    return get_pagination(
        request,
        limit=int(limit) if limit is not None else None,
        skip=int(request.query_params.get("skip", 0)),
    )


def acting_user_id(request: Request) -> str:
    """The X-User-Id value normalized the way get_current_user_id does, or ""."""
    return (request.headers.get("x-user-id") or "").strip()


def configured_ttl(field: str) -> Callable[[Request], float]:
    """TTL read from the application's Settings at request time."""

    def resolve(request: Request) -> float:
        return getattr(get_settings(request), field)

    return resolve
