"""Notification side effects of likes, follows and reviews.

Creating the notification runs after the primary mutation has committed,
in its own transaction. A failure is logged and rolled back; it never
changes the response of the mutation that triggered it.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from momento.core.models import Notification, NotificationType
from momento.persistence.repositories import NotificationRepository
from momento.realtime import RealtimeEvent, RealtimeFanout

logger = logging.getLogger(__name__)


async def notify(
    session: AsyncSession,
    fanout: RealtimeFanout,
    *,
    recipient_id: str,
    actor_id: str,
    type: NotificationType,
    post_id: str | None = None,
    review_id: str | None = None,
) -> Notification | None:
    """Store a notification for recipient_id and push it if they are online.

    Users are never notified about their own actions. Returns the created
    notification, or None when skipped or failed.
    """
    if recipient_id == actor_id:
        return None

    repo = NotificationRepository(session)
    try:
        row = await repo.create(
            user_id=recipient_id,
            actor_id=actor_id,
            type=type.value,
            post_id=post_id,
            review_id=review_id,
        )
        await session.commit()
        unread = await repo.unread_count(recipient_id)
    except Exception as e:
        await session.rollback()
        logger.warning(
            f"Failed to create {type.value} notification for user {recipient_id}: {e}"
        )
        return None

    notification = Notification.model_validate(row)
    await push_notification_count(fanout, recipient_id, unread, notification)
    return notification


async def push_notification_count(
    fanout: RealtimeFanout,
    user_id: str,
    unread: int,
    notification: Notification | None = None,
) -> None:
    """Emit the new notification (if any) and the user's unread count."""
    if notification is not None:
        await fanout.emit_to_user(
            user_id,
            RealtimeEvent.NEW_NOTIFICATION,
            notification.model_dump(mode="json", by_alias=True),
        )
    await fanout.emit_to_user(
        user_id, RealtimeEvent.NOTIFICATION_COUNT_UPDATED, {"count": unread}
    )
