"""Operational endpoints.

- GET /health  - Database connectivity, cache occupancy and realtime
                 connection counts; 503 when the database is unreachable
- GET /metrics - Prometheus exposition (only mounted when metrics are enabled)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from momento import __version__
from momento.observability.metrics import get_metrics

PROMETHEUS_MEDIA_TYPE = "text/plain; version=0.0.4; charset=utf-8"

router = APIRouter(tags=["operations"])
metrics_router = APIRouter(tags=["operations"])


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    state = request.app.state
    start = time.monotonic()
    try:
        db_ok = await asyncio.wait_for(state.db.health_check(), timeout=5.0)
    except asyncio.TimeoutError:
        db_ok = False
    latency_ms = round((time.monotonic() - start) * 1000, 2)

    body: dict[str, Any] = {
        "status": "healthy" if db_ok else "unhealthy",
        "version": __version__,
        "components": {
            "database": {"status": "healthy" if db_ok else "unhealthy", "latency_ms": latency_ms},
            "cache": state.cache.stats().to_dict(),
            "realtime": {
                "users": state.registry.user_count,
                "connections": state.registry.connection_count,
            },
        },
    }
    return JSONResponse(status_code=200 if db_ok else 503, content=body)


@metrics_router.get("/metrics", response_class=Response, summary="Prometheus metrics")
async def metrics() -> Response:
    return Response(content=get_metrics().generate_latest(), media_type=PROMETHEUS_MEDIA_TYPE)
