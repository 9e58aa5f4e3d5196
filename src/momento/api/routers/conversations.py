"""Direct messages API router.

- POST /conversations/send                - Send a message
- GET  /conversations                     - Conversation partners, most recent first
- GET  /conversations/unread-count        - Unread messages for the acting user
- GET  /conversations/{partner_id}        - Messages with one partner, oldest first
- PUT  /conversations/{partner_id}/read   - Mark a partner's messages read

Messages are per user and never cached. A sent message is pushed to both
participants so every open tab of the sender sees it too.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from momento.api.deps import Pagination, get_current_user_id, get_fanout, get_pagination
from momento.api.errors import BadRequestError, NotFoundError
from momento.core.models import (
    ConversationPartners,
    CountResponse,
    Message,
    MessageCreate,
    UserSummary,
)
from momento.persistence.db import get_session
from momento.persistence.repositories import MessageRepository, UserRepository
from momento.realtime import RealtimeEvent, RealtimeFanout

router = APIRouter(prefix="/conversations", tags=["Conversations"])


@router.post("/send", response_model=Message)
async def send_message(
    body: MessageCreate,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> Message:
    if body.receiver_id == current_user_id:
        raise BadRequestError("Cannot send a message to yourself")
    if await UserRepository(session).get(body.receiver_id) is None:
        raise NotFoundError("User", body.receiver_id)

    row = await MessageRepository(session).create(
        sender_id=current_user_id, receiver_id=body.receiver_id, content=body.content
    )
    await session.commit()

    message = Message.model_validate(row)
    payload = message.model_dump(mode="json", by_alias=True)
    await fanout.emit_to_user(body.receiver_id, RealtimeEvent.NEW_MESSAGE, payload)
    await fanout.emit_to_user(current_user_id, RealtimeEvent.NEW_MESSAGE, payload)
    await fanout.emit_to_user(current_user_id, RealtimeEvent.CONVERSATION_UPDATED)
    await fanout.emit_to_user(body.receiver_id, RealtimeEvent.CONVERSATION_UPDATED)
    return message


@router.get("", response_model=ConversationPartners)
async def list_partners(
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> ConversationPartners:
    partner_ids = await MessageRepository(session).partner_ids(current_user_id)
    users = {row.id: row for row in await UserRepository(session).get_many(partner_ids)}
    return ConversationPartners(
        partners=[UserSummary.model_validate(users[pid]) for pid in partner_ids if pid in users]
    )


@router.get("/unread-count", response_model=CountResponse)
async def get_unread_count(
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> CountResponse:
    count = await MessageRepository(session).unread_count(current_user_id)
    return CountResponse(count=count)


@router.get("/{partner_id}", response_model=list[Message])
async def get_conversation(
    partner_id: str,
    page: Pagination = Depends(get_pagination),
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> list[Message]:
    rows = await MessageRepository(session).conversation(
        current_user_id, partner_id, page.limit, page.skip
    )
    return [Message.model_validate(row) for row in rows]


@router.put("/{partner_id}/read", response_model=CountResponse)
async def mark_conversation_read(
    partner_id: str,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> CountResponse:
    """Mark partner_id's messages to the acting user as read.

    Returns the number of messages changed.
    """
    updated = await MessageRepository(session).mark_conversation_read(
        current_user_id, partner_id
    )
    await session.commit()

    if updated:
        await fanout.emit_to_user(current_user_id, RealtimeEvent.CONVERSATION_UPDATED)
    return CountResponse(count=updated)
