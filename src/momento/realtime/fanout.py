"""Realtime fan-out of events to connected users.

The registry maps a user identity to the set of that user's live
connections (one per open browser tab or device). It lives only in
process memory and is rebuilt as clients reconnect after a restart.

Delivery is best effort:
- a user with no registered connection is offline and the event is dropped
- a connection whose send fails is logged and unregistered
- no delivery failure ever propagates to the caller

Mutation handlers emit only after the store write has committed and the
cache has been invalidated. No ordering is guaranteed across mutations.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import orjson
from fastapi import WebSocket

from momento.observability.metrics import record_realtime_delivery, set_realtime_connections
from momento.realtime.events import RealtimeEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class Connection(Protocol):
    """A live realtime connection handle."""

    async def emit(self, event: str, payload: Any = None) -> None: ...


class WebSocketConnection:
    """Connection handle over a WebSocket.

    Messages are JSON text frames: {"event": "<name>", "data": <payload>}.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def emit(self, event: str, payload: Any = None) -> None:
        message = orjson.dumps({"event": event, "data": payload}, default=str)
        await self.websocket.send_text(message.decode("utf-8"))

    def __hash__(self) -> int:
        return id(self.websocket)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WebSocketConnection):
            return NotImplemented
        return self.websocket is other.websocket


def _event_name(event: RealtimeEvent | str) -> str:
    return event.value if isinstance(event, RealtimeEvent) else event


class ConnectionRegistry:
    """User identity to live connections.

    Mutated only on connect and disconnect. Accessed without locks; all
    operations are synchronous on the event loop.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[Connection]] = {}

    def register(self, user_id: str, connection: Connection) -> None:
        """Add a connection to the user's set."""
        self._connections.setdefault(user_id, set()).add(connection)
        set_realtime_connections(self.connection_count)
        logger.info(
            f"Realtime connection registered for user {user_id} "
            f"(user connections: {len(self._connections[user_id])}, "
            f"total: {self.connection_count})"
        )

    def unregister(self, connection: Connection) -> str | None:
        """Remove a connection from whichever user holds it.

        Returns the user id, or None if the connection was not registered.
        The user's entry is removed with its last connection.
        """
        for user_id, connections in self._connections.items():
            if connection in connections:
                connections.discard(connection)
                if not connections:
                    del self._connections[user_id]
                set_realtime_connections(self.connection_count)
                logger.info(
                    f"Realtime connection closed for user {user_id} "
                    f"(total: {self.connection_count})"
                )
                return user_id
        return None

    def connections_for(self, user_id: str) -> list[Connection]:
        """Snapshot of a user's connections."""
        return list(self._connections.get(user_id, ()))

    def all_connections(self) -> list[Connection]:
        """Snapshot of every registered connection."""
        return [conn for connections in self._connections.values() for conn in connections]

    def is_online(self, user_id: str) -> bool:
        return user_id in self._connections

    @property
    def user_count(self) -> int:
        return len(self._connections)

    @property
    def connection_count(self) -> int:
        return sum(len(connections) for connections in self._connections.values())


class RealtimeFanout:
    """Deliver named events to specific users or to everyone."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    async def emit_to_user(
        self, user_id: str, event: RealtimeEvent | str, payload: Any = None
    ) -> int:
        """Deliver to every connection of user_id.

        Returns the number of successful deliveries; 0 when the user is offline.
        """
        return await self._deliver(self.registry.connections_for(user_id), event, payload)

    async def broadcast(self, event: RealtimeEvent | str, payload: Any = None) -> int:
        """Deliver to every registered connection."""
        return await self._deliver(self.registry.all_connections(), event, payload)

    async def _deliver(
        self, connections: list[Connection], event: RealtimeEvent | str, payload: Any
    ) -> int:
        name = _event_name(event)
        delivered = 0
        for connection in connections:
            try:
                await connection.emit(name, payload)
            except Exception as e:
                record_realtime_delivery(name, ok=False)
                logger.warning(f"Failed to deliver {name} event, dropping connection: {e}")
                self.registry.unregister(connection)
                continue
            record_realtime_delivery(name, ok=True)
            delivered += 1
        return delivered
