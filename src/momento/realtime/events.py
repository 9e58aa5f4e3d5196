"""Realtime event names pushed to connected clients.

Payloads are hints to refresh the affected resource; clients must not
treat them as the authoritative latest state.
"""

from __future__ import annotations

from enum import Enum


class RealtimeEvent(str, Enum):
    """Event names emitted over the realtime channel."""

    NEW_NOTIFICATION = "new-notification"
    NOTIFICATION_COUNT_UPDATED = "notification-count-updated"
    FOLLOW_UPDATED = "follow-updated"
    NEW_MESSAGE = "new-message"
    CONVERSATION_UPDATED = "conversation-updated"
    NEW_REVIEW = "new-review"
    POST_UPDATED = "post-updated"
