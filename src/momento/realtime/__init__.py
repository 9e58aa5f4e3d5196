"""Realtime delivery for Momento.

Connected clients are tracked per user; mutation handlers push named
events to specific users or broadcast to everyone.
"""

from momento.realtime.events import RealtimeEvent
from momento.realtime.fanout import (
    Connection,
    ConnectionRegistry,
    RealtimeFanout,
    WebSocketConnection,
)

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "RealtimeEvent",
    "RealtimeFanout",
    "WebSocketConnection",
]
