"""Notifications API router.

Notifications are per user and never cached. Every change pushes the new
unread count to the user's open connections.

- GET    /notifications                    - Acting user's notifications, newest first
- GET    /notifications/unread-count       - Unread count
- PUT    /notifications/{id}/read          - Mark one read
- PUT    /notifications/read-all           - Mark all read
- DELETE /notifications/{id}               - Delete one
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from momento.api.deps import Pagination, get_current_user_id, get_fanout, get_pagination
from momento.api.errors import ForbiddenError, NotFoundError
from momento.api.notify import push_notification_count
from momento.core.models import CountResponse, Notification, NotificationPage, StatusMessage
from momento.persistence.db import get_session
from momento.persistence.repositories import NotificationRepository
from momento.persistence.tables import NotificationTable
from momento.realtime import RealtimeFanout

router = APIRouter(prefix="/notifications", tags=["Notifications"])


async def _get_own_notification(
    repo: NotificationRepository, notification_id: str, user_id: str
) -> NotificationTable:
    row = await repo.get(notification_id)
    if row is None:
        raise NotFoundError("Notification", notification_id)
    if row.user_id != user_id:
        raise ForbiddenError("Notification belongs to another user")
    return row


@router.get("", response_model=NotificationPage)
async def list_notifications(
    page: Pagination = Depends(get_pagination),
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> NotificationPage:
    rows = await NotificationRepository(session).list_for_user(
        current_user_id, page.limit, page.skip
    )
    return NotificationPage(documents=[Notification.model_validate(row) for row in rows])


@router.get("/unread-count", response_model=CountResponse)
async def get_unread_count(
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> CountResponse:
    count = await NotificationRepository(session).unread_count(current_user_id)
    return CountResponse(count=count)


@router.put("/read-all", response_model=StatusMessage)
async def mark_all_read(
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> StatusMessage:
    await NotificationRepository(session).mark_all_read(current_user_id)
    await session.commit()

    await push_notification_count(fanout, current_user_id, 0)
    return StatusMessage(message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: str,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> Notification:
    repo = NotificationRepository(session)
    row = await _get_own_notification(repo, notification_id, current_user_id)
    row.read = True
    await session.commit()

    unread = await repo.unread_count(current_user_id)
    await push_notification_count(fanout, current_user_id, unread)
    return Notification.model_validate(row)


@router.delete("/{notification_id}", response_model=StatusMessage)
async def delete_notification(
    notification_id: str,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> StatusMessage:
    repo = NotificationRepository(session)
    await _get_own_notification(repo, notification_id, current_user_id)
    await repo.delete(notification_id)
    await session.commit()

    unread = await repo.unread_count(current_user_id)
    await push_notification_count(fanout, current_user_id, unread)
    return StatusMessage(message="Notification deleted")
