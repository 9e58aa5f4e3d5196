"""WebSocket endpoint for realtime events.

Clients connect to /ws identifying themselves with the x-user-id header or
the user_id query parameter. Every open connection of a user receives the
events addressed to that user plus broadcasts.

Event message format:
{
    "event": "new-notification",
    "data": {...}
}

Clients may send "ping" to receive "pong".
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from momento.realtime import ConnectionRegistry, WebSocketConnection

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_events(
    websocket: WebSocket,
    user_id: str | None = Query(default=None, description="Connecting user id"),
) -> None:
    """Register the connection for its user until the client disconnects."""
    identity = (websocket.headers.get("x-user-id") or user_id or "").strip()
    if not identity:
        logger.info("Rejected WebSocket connection without user identity")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    registry: ConnectionRegistry = websocket.app.state.registry
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    registry.register(identity, connection)

    try:
        while True:
            try:
                message = await websocket.receive_text()
                if message == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break
    finally:
        registry.unregister(connection)
