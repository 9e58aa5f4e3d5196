"""Follows API router.

- POST   /follows                        - Follow a user
- DELETE /follows/{following_id}         - Unfollow a user
- GET    /follows/followers/{user_id}    - Users following user_id (cached)
- GET    /follows/following/{user_id}    - Users user_id follows (cached)
- GET    /follows/messagable/{user_id}   - Followers and followed users combined (cached)

A follow change moves both users' counts, every follow list and the
follower's feed, so it invalidates both profiles and the "follows" and
"posts" namespaces.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from momento.api.deps import configured_ttl, get_current_user_id, get_fanout, get_invalidator
from momento.api.errors import BadRequestError, NotFoundError
from momento.api.middleware.response_cache import ResponseCacheInterceptor
from momento.api.notify import notify
from momento.cache import InvalidationBus, Namespace
from momento.core.models import (
    Follow,
    FollowRequest,
    NotificationType,
    StatusMessage,
    UserSummary,
)
from momento.persistence.db import get_session
from momento.persistence.repositories import FollowRepository, UserRepository
from momento.realtime import RealtimeEvent, RealtimeFanout

router = APIRouter(prefix="/follows", tags=["Follows"])


def _follow_list_key(kind: str):
    return lambda request: f"{kind}:{request.path_params['user_id']}"


async def _summaries(session: AsyncSession, user_ids: list[str]) -> list[UserSummary]:
    """Load users keeping the order of user_ids; unknown ids are skipped."""
    rows = {row.id: row for row in await UserRepository(session).get_many(user_ids)}
    return [UserSummary.model_validate(rows[uid]) for uid in user_ids if uid in rows]


def _invalidate_follow(invalidator: InvalidationBus, follower_id: str, following_id: str) -> None:
    invalidator.invalidate_many(
        (Namespace.USER, follower_id),
        (Namespace.USER, following_id),
        (Namespace.FOLLOWS, None),
        (Namespace.POSTS, None),
    )


async def _emit_follow_updated(
    fanout: RealtimeFanout, follower_id: str, following_id: str, action: str
) -> None:
    await fanout.emit_to_user(
        following_id,
        RealtimeEvent.FOLLOW_UPDATED,
        {"userId": following_id, "followerId": follower_id, "action": action},
    )
    await fanout.emit_to_user(
        follower_id,
        RealtimeEvent.FOLLOW_UPDATED,
        {"userId": follower_id, "followingId": following_id, "action": action},
    )


@router.post("", response_model=Follow)
async def follow_user(
    body: FollowRequest,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> Follow:
    """Follow a user. Following someone twice returns the existing follow."""
    following_id = body.following_id
    if following_id == current_user_id:
        raise BadRequestError("Cannot follow yourself")
    if await UserRepository(session).get(following_id) is None:
        raise NotFoundError("User", following_id)

    repo = FollowRepository(session)
    existing = await repo.get(current_user_id, following_id)
    if existing is not None:
        return Follow.model_validate(existing)

    row = await repo.create(current_user_id, following_id)
    await session.commit()

    _invalidate_follow(invalidator, current_user_id, following_id)
    await notify(
        session,
        fanout,
        recipient_id=following_id,
        actor_id=current_user_id,
        type=NotificationType.FOLLOW,
    )
    await _emit_follow_updated(fanout, current_user_id, following_id, "follow")
    return Follow.model_validate(row)


@router.delete("/{following_id}", response_model=StatusMessage)
async def unfollow_user(
    following_id: str,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> StatusMessage:
    removed = await FollowRepository(session).delete(current_user_id, following_id)
    await session.commit()

    if removed:
        _invalidate_follow(invalidator, current_user_id, following_id)
        await _emit_follow_updated(fanout, current_user_id, following_id, "unfollow")
    return StatusMessage(message="Unfollowed successfully")


@router.get("/followers/{user_id}", response_model=list[UserSummary])
@ResponseCacheInterceptor(
    Namespace.FOLLOWS,
    key_fn=_follow_list_key("followers"),
    ttl=configured_ttl("cache_ttl_follows"),
)
async def list_followers(
    user_id: str,
    session: AsyncSession = Depends(get_session),
) -> list[UserSummary]:
    ids = await FollowRepository(session).follower_ids(user_id)
    return await _summaries(session, ids)


@router.get("/following/{user_id}", response_model=list[UserSummary])
@ResponseCacheInterceptor(
    Namespace.FOLLOWS,
    key_fn=_follow_list_key("following"),
    ttl=configured_ttl("cache_ttl_follows"),
)
async def list_following(
    user_id: str,
    session: AsyncSession = Depends(get_session),
) -> list[UserSummary]:
    ids = await FollowRepository(session).following_ids(user_id)
    return await _summaries(session, ids)


@router.get("/messagable/{user_id}", response_model=list[UserSummary])
@ResponseCacheInterceptor(
    Namespace.FOLLOWS,
    key_fn=_follow_list_key("messagable"),
    ttl=configured_ttl("cache_ttl_follows"),
)
async def list_messagable(
    user_id: str,
    session: AsyncSession = Depends(get_session),
) -> list[UserSummary]:
    """Everyone user_id follows, then followers not already listed."""
    repo = FollowRepository(session)
    ids = await repo.following_ids(user_id)
    seen = set(ids)
    ids += [uid for uid in await repo.follower_ids(user_id) if uid not in seen]
    return await _summaries(session, ids)
