"""Middleware for the Momento API.

- Correlation context for request tracing
- Read-path response cache (applied per endpoint as a decorator)

Note: For CORS, use FastAPI's built-in CORSMiddleware from starlette.middleware.cors
"""

from momento.api.middleware.correlation import CorrelationMiddleware
from momento.api.middleware.response_cache import ResponseCacheInterceptor

__all__ = [
    "CorrelationMiddleware",
    "ResponseCacheInterceptor",
]
