"""Observability module for Momento.

Provides structured logging and Prometheus metrics:
- JSON structured logging with correlation IDs
- Request, cache and realtime metrics
"""

from momento.observability.logging import (
    configure_logging,
    correlation_id_var,
    request_id_var,
    user_id_var,
)
from momento.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "request_id_var",
    "correlation_id_var",
    "user_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
    "MetricsMiddleware",
]
