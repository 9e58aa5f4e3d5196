"""Saved posts API router.

- POST   /saves                 - Save a post for the acting user
- DELETE /saves/{post_id}       - Remove a saved post
- GET    /saves/user/{user_id}  - Own saved posts

Saves are private to their owner and never cached.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from momento.api.deps import get_current_user_id
from momento.api.errors import ForbiddenError, NotFoundError
from momento.api.responses import build_posts
from momento.core.models import Save, SavedPosts, SaveRequest, StatusMessage
from momento.persistence.db import get_session
from momento.persistence.repositories import PostRepository, SaveRepository

router = APIRouter(prefix="/saves", tags=["Saves"])


@router.post("", response_model=Save)
async def save_post(
    body: SaveRequest,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> Save:
    """Save a post. Saving the same post twice is a no-op."""
    if await PostRepository(session).get(body.post_id) is None:
        raise NotFoundError("Post", body.post_id)

    row = await SaveRepository(session).save(current_user_id, body.post_id)
    await session.commit()
    return Save.model_validate(row)


@router.delete("/{post_id}", response_model=StatusMessage)
async def unsave_post(
    post_id: str,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> StatusMessage:
    if not await SaveRepository(session).unsave(current_user_id, post_id):
        raise NotFoundError("Saved post", post_id)
    await session.commit()
    return StatusMessage(message="Post unsaved successfully")


@router.get("/user/{user_id}", response_model=SavedPosts)
async def list_saved_posts(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> SavedPosts:
    if user_id != current_user_id:
        raise ForbiddenError("Saved posts are private")
    rows = await SaveRepository(session).saved_posts(user_id)
    return SavedPosts(documents=await build_posts(session, rows))
