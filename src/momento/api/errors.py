"""Error responses for the Momento API.

Every error body has the shape {"error": <text>, "code": <code>} with an
optional "details" field.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """Base exception for API errors."""

    def __init__(self, status_code: int, code: str, text: str, details: Any = None):
        self.code = code
        self.text = text
        self.details = details
        super().__init__(status_code=status_code, detail=text)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.text, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequestError(ApiError):
    """Invalid request (400)."""

    def __init__(self, text: str, details: Any = None):
        super().__init__(status_code=400, code="BadRequest", text=text, details=details)


class UnauthorizedError(ApiError):
    """Missing or invalid identity (401)."""

    def __init__(self, text: str = "Authentication required"):
        super().__init__(status_code=401, code="Unauthorized", text=text)


class ForbiddenError(ApiError):
    """Acting user may not modify the resource (403)."""

    def __init__(self, text: str = "Not allowed to modify this resource"):
        super().__init__(status_code=403, code="Forbidden", text=text)


class NotFoundError(ApiError):
    """Resource not found (404)."""

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(
            status_code=404,
            code="NotFound",
            text=f"{resource_type} '{identifier}' not found",
        )


class ConflictError(ApiError):
    """Resource already exists (409)."""

    def __init__(self, text: str):
        super().__init__(status_code=409, code="Conflict", text=text)


async def api_exception_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Exception handler for API errors."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Exception handler for request validation failures."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "Request validation failed",
            "code": "ValidationError",
            "details": jsonable_encoder(exc.errors()),
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for unexpected errors."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "code": "InternalServerError"},
    )
