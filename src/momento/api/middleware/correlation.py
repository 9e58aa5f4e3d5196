"""Request context for log records.

Every request gets a request id (taken from X-Request-ID or generated) and
a correlation id (X-Correlation-ID, falling back to the request id). Both
are echoed on the response. The acting user from X-User-Id is attached to
log records only; identity checks happen in the route dependencies.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from momento.observability.logging import (
    correlation_id_var,
    request_id_var,
    user_id_var,
)

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"
USER_ID_HEADER = "x-user-id"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Bind request, correlation and user ids to the logging context."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or request_id
        request.state.request_id = request_id
        request.state.correlation_id = correlation_id

        bound: list[tuple[ContextVar[str], Token[str]]] = [
            (var, var.set(value))
            for var, value in (
                (request_id_var, request_id),
                (correlation_id_var, correlation_id),
                (user_id_var, request.headers.get(USER_ID_HEADER, "")),
            )
        ]
        try:
            response = await call_next(request)
        finally:
            for var, token in reversed(bound):
                var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
