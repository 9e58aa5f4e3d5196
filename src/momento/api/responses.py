"""Builders turning table rows into API models."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from momento.core.models import Post, User
from momento.persistence.repositories import PostRepository, UserRepository
from momento.persistence.tables import PostTable, UserTable


async def build_posts(session: AsyncSession, rows: list[PostTable]) -> list[Post]:
    """Attach likes to a page of posts with a single query."""
    likes = await PostRepository(session).likes_for([row.id for row in rows])
    return [
        Post(
            id=row.id,
            creator_id=row.creator_id,
            caption=row.caption,
            location=row.location,
            tags=list(row.tags or []),
            image_url=row.image_url,
            likes=likes[row.id],
            like_count=len(likes[row.id]),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
        for row in rows
    ]


async def build_post(session: AsyncSession, row: PostTable) -> Post:
    return (await build_posts(session, [row]))[0]


async def build_user(session: AsyncSession, row: UserTable) -> User:
    followers, following = await UserRepository(session).follow_counts(row.id)
    return User(
        id=row.id,
        username=row.username,
        full_name=row.full_name,
        email=row.email,
        bio=row.bio,
        created_at=row.created_at,
        followers_count=followers,
        following_count=following,
    )
