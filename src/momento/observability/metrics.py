"""Prometheus metrics for Momento.

Provides metrics collection and exposure:
- HTTP request metrics (latency, count)
- Response cache metrics (hits, misses, evictions, invalidations)
- Realtime metrics (deliveries, failures, open connections)

Usage:
    from momento.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.cache_hits_total.labels(namespace="post").inc()
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_client import generate_latest as prometheus_generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from momento.config import settings

if TYPE_CHECKING:
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, **kwargs: Any) -> "NoOpMetric":
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def dec(self, amount: float = 1) -> None:
        pass

    def set(self, value: float) -> None:
        pass

    def observe(self, value: float) -> None:
        pass


_NOOP = NoOpMetric()


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    # HTTP metrics
    http_requests_total: Any = _NOOP
    http_request_duration_seconds: Any = _NOOP

    # Response cache metrics
    cache_hits_total: Any = _NOOP
    cache_misses_total: Any = _NOOP
    cache_evictions_total: Any = _NOOP
    cache_invalidations_total: Any = _NOOP

    # Realtime metrics
    realtime_events_delivered_total: Any = _NOOP
    realtime_delivery_failures_total: Any = _NOOP
    realtime_connections: Any = _NOOP

    _initialized: bool = field(default=False, repr=False)
    _enabled: bool = field(default=False, repr=False)

    def initialize(self, enabled: bool | None = None) -> None:
        """Initialize Prometheus metrics once per process.

        Args:
            enabled: The application's enable_metrics flag; the process
                settings are used when omitted
        """
        if self._initialized:
            return
        self._initialized = True

        if enabled is None:
            enabled = settings.enable_metrics
        if not enabled:
            logger.info("Metrics are disabled")
            return

        self.http_requests_total = Counter(
            "momento_http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
        )
        self.http_request_duration_seconds = Histogram(
            "momento_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "path"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
        )

        self.cache_hits_total = Counter(
            "momento_cache_hits_total",
            "Response cache hits",
            ["namespace"],
        )
        self.cache_misses_total = Counter(
            "momento_cache_misses_total",
            "Response cache misses",
            ["namespace"],
        )
        self.cache_evictions_total = Counter(
            "momento_cache_evictions_total",
            "Entries evicted under capacity pressure",
        )
        self.cache_invalidations_total = Counter(
            "momento_cache_invalidations_total",
            "Cache invalidation calls",
            ["namespace", "outcome"],
        )

        self.realtime_events_delivered_total = Counter(
            "momento_realtime_events_delivered_total",
            "Realtime events delivered to connections",
            ["event"],
        )
        self.realtime_delivery_failures_total = Counter(
            "momento_realtime_delivery_failures_total",
            "Realtime deliveries that failed",
            ["event"],
        )
        self.realtime_connections = Gauge(
            "momento_realtime_connections",
            "Open realtime connections",
        )

        self._enabled = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if not self._enabled:
            return b"# Metrics disabled\n"
        return prometheus_generate_latest(REGISTRY)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics(enabled: bool | None = None) -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access; collectors are registered with the
    process-wide Prometheus registry, so the first caller's flag wins.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize(enabled)
    return metrics_registry


_ID_SEGMENT = re.compile(r"^[0-9a-fA-F-]{8,}$")


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware recording request count and duration."""

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        # Only mounted when the application enables metrics
        self.metrics = get_metrics(enabled=True)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        if request.url.path in ("/health", "/metrics"):
            return await call_next(request)

        method = request.method
        path = self._normalize_path(request.url.path)
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time
            self.metrics.http_requests_total.labels(
                method=method, path=path, status=status_code
            ).inc()
            self.metrics.http_request_duration_seconds.labels(method=method, path=path).observe(
                duration
            )

    def _normalize_path(self, path: str) -> str:
        """Replace identifier segments with a placeholder to bound label cardinality.

        Examples:
            /api/posts/0b8f...e1 -> /api/posts/{id}
            /api/posts/user/0b8f...e1 -> /api/posts/user/{id}
        """
        parts = [
            "{id}" if _ID_SEGMENT.match(part) else part for part in path.strip("/").split("/")
        ]
        return "/" + "/".join(parts) if parts else path


def record_cache_hit(namespace: str) -> None:
    get_metrics().cache_hits_total.labels(namespace=namespace).inc()


def record_cache_miss(namespace: str) -> None:
    get_metrics().cache_misses_total.labels(namespace=namespace).inc()


def record_cache_eviction(count: int) -> None:
    get_metrics().cache_evictions_total.inc(count)


def record_invalidation(namespace: str, outcome: str) -> None:
    """Record an invalidation call.

    Args:
        namespace: Cache namespace that was invalidated
        outcome: "ok" or "error"
    """
    get_metrics().cache_invalidations_total.labels(namespace=namespace, outcome=outcome).inc()


def record_realtime_delivery(event: str, ok: bool) -> None:
    metrics = get_metrics()
    if ok:
        metrics.realtime_events_delivered_total.labels(event=event).inc()
    else:
        metrics.realtime_delivery_failures_total.labels(event=event).inc()


def set_realtime_connections(count: int) -> None:
    get_metrics().realtime_connections.set(count)
