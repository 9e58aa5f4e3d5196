"""FastAPI application factory for Momento.

Creates the application with:
- REST routers under /api (users, posts, follows, reviews, notifications,
  conversations, saves, cache administration)
- WebSocket for realtime events at /ws
- Health and Prometheus metrics endpoints
- One response cache, invalidation bus, connection registry and database
  per application instance, kept on app.state
- Uniform JSON error bodies
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ExceptionHandler

from momento import __version__
from momento.api.errors import (
    ApiError,
    api_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from momento.api.middleware import CorrelationMiddleware
from momento.api.routers import (
    cache,
    conversations,
    follows,
    health,
    notifications,
    posts,
    reviews,
    saves,
    users,
    websocket,
)
from momento.cache import InvalidationBus, KeyedCache
from momento.config import Settings, settings as default_settings
from momento.observability import MetricsMiddleware, configure_logging, get_metrics
from momento.persistence.db import Database
from momento.realtime import ConnectionRegistry, RealtimeFanout

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup:
    - Configure structured logging
    - Initialize Prometheus metrics
    - Create database tables
    - Start the cache expiry sweeper

    On shutdown:
    - Stop the sweeper
    - Close database connections
    """
    settings: Settings = app.state.settings
    configure_logging(json_format=settings.use_json_logs, level=settings.log_level)
    get_metrics(enabled=settings.enable_metrics)

    logger.info(f"Starting Momento ({settings.env})")
    await app.state.db.init()
    await app.state.cache.start()
    logger.info("Momento startup complete")

    yield

    logger.info("Shutting down Momento")
    await app.state.cache.stop()
    await app.state.db.close()
    logger.info("Momento shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Each call builds its own cache, registry and database handle, so tests
    can run independent applications side by side.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Momento",
        description="Social network API with cached reads and realtime updates",
        version=__version__,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    response_cache = KeyedCache(
        max_size=settings.cache_max_size,
        default_ttl=settings.cache_default_ttl,
        sweep_interval=settings.cache_sweep_interval,
    )
    registry = ConnectionRegistry()
    app.state.settings = settings
    app.state.cache = response_cache
    app.state.invalidator = InvalidationBus(response_cache)
    app.state.registry = registry
    app.state.fanout = RealtimeFanout(registry)
    app.state.db = Database(settings.database_url, echo=settings.database_echo)

    # CorrelationMiddleware is innermost so every other layer logs with its context
    app.add_middleware(CorrelationMiddleware)
    if settings.enable_metrics:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-User-Id", "X-Request-ID", "X-Correlation-ID"],
        expose_headers=["X-Request-ID", "X-Correlation-ID", "X-Cache"],
    )

    app.add_exception_handler(ApiError, cast(ExceptionHandler, api_exception_handler))
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, validation_exception_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)
    if settings.enable_metrics:
        app.include_router(health.metrics_router)

    for module in (users, posts, follows, reviews, notifications, conversations, saves, cache):
        app.include_router(module.router, prefix=API_PREFIX)

    app.include_router(websocket.router)

    return app
