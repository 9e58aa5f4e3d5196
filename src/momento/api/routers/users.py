"""Users API router.

- POST /users          - Create a user profile
- GET  /users/{id}     - Get a profile with follower counts (cached)
- PUT  /users/{id}     - Update own profile
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from momento.api.deps import configured_ttl, get_current_user_id, get_invalidator
from momento.api.errors import ConflictError, ForbiddenError, NotFoundError
from momento.api.middleware.response_cache import ResponseCacheInterceptor
from momento.api.responses import build_user
from momento.cache import InvalidationBus, Namespace
from momento.core.models import User, UserCreate, UserUpdate
from momento.persistence.db import get_session
from momento.persistence.repositories import UserRepository

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", status_code=201, response_model=User)
async def create_user(
    body: UserCreate,
    session: AsyncSession = Depends(get_session),
) -> User:
    """Create a user profile. Usernames are unique."""
    repo = UserRepository(session)
    if await repo.get_by_username(body.username) is not None:
        raise ConflictError(f"Username '{body.username}' is already taken")

    row = await repo.create(
        username=body.username, full_name=body.full_name, email=body.email, bio=body.bio
    )
    await session.commit()
    return await build_user(session, row)


@router.get("/{user_id}", response_model=User)
@ResponseCacheInterceptor(
    Namespace.USER,
    key_fn=lambda request: request.path_params["user_id"],
    ttl=configured_ttl("cache_ttl_user"),
)
async def get_user(
    user_id: str,
    session: AsyncSession = Depends(get_session),
) -> User:
    row = await UserRepository(session).get(user_id)
    if row is None:
        raise NotFoundError("User", user_id)
    return await build_user(session, row)


@router.put("/{user_id}", response_model=User)
async def update_user(
    user_id: str,
    body: UserUpdate,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
) -> User:
    """Update the acting user's own profile."""
    if user_id != current_user_id:
        raise ForbiddenError("Users may only update their own profile")

    repo = UserRepository(session)
    row = await repo.get(user_id)
    if row is None:
        raise NotFoundError("User", user_id)

    await repo.update(row, body.model_dump(exclude_unset=True, exclude_none=True))
    await session.commit()

    # Follow lists embed the full name
    invalidator.invalidate_many((Namespace.USER, user_id), (Namespace.FOLLOWS, None))
    return await build_user(session, row)
