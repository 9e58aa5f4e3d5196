"""Repository pattern for Momento persistence.

Repositories wrap one AsyncSession and never commit; the request handler
owns the transaction boundary so cache invalidation and realtime emission
can be sequenced strictly after the commit.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import String, cast, delete, desc, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from momento.core.models import PostSort
from momento.persistence.tables import (
    FollowTable,
    MessageTable,
    NotificationTable,
    PostLikeTable,
    PostTable,
    ReviewTable,
    SaveTable,
    UserTable,
)


class BaseRepository:
    """Base repository holding the session."""

    def __init__(self, session: AsyncSession):
        self.session = session


class UserRepository(BaseRepository):
    """Repository for user profiles."""

    async def get(self, user_id: str) -> UserTable | None:
        return await self.session.get(UserTable, user_id)

    async def get_by_username(self, username: str) -> UserTable | None:
        stmt = select(UserTable).where(UserTable.username == username)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: list[str]) -> list[UserTable]:
        if not user_ids:
            return []
        stmt = select(UserTable).where(UserTable.id.in_(user_ids))
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def create(
        self, username: str, full_name: str = "", email: str | None = None, bio: str = ""
    ) -> UserTable:
        row = UserTable(username=username, full_name=full_name, email=email, bio=bio)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: UserTable, changes: dict[str, Any]) -> UserTable:
        for field, value in changes.items():
            setattr(row, field, value)
        await self.session.flush()
        return row

    async def follow_counts(self, user_id: str) -> tuple[int, int]:
        """Return (followers, following) counts."""
        followers = await self.session.scalar(
            select(func.count()).select_from(FollowTable).where(FollowTable.following_id == user_id)
        )
        following = await self.session.scalar(
            select(func.count()).select_from(FollowTable).where(FollowTable.follower_id == user_id)
        )
        return int(followers or 0), int(following or 0)


class PostRepository(BaseRepository):
    """Repository for posts and their likes."""

    async def get(self, post_id: str) -> PostTable | None:
        return await self.session.get(PostTable, post_id)

    async def list_page(
        self,
        limit: int,
        skip: int = 0,
        sort_by: PostSort = PostSort.LATEST,
        creator_ids: list[str] | None = None,
    ) -> list[PostTable]:
        """List posts with offset pagination.

        creator_ids restricts the listing to those creators; an empty list
        yields no posts.
        """
        if creator_ids is not None and not creator_ids:
            return []

        stmt = select(PostTable)
        if creator_ids is not None:
            stmt = stmt.where(PostTable.creator_id.in_(creator_ids))

        if sort_by == PostSort.MOST_LIKED:
            like_count = func.count(PostLikeTable.user_id).label("like_count")
            stmt = (
                stmt.outerjoin(PostLikeTable, PostLikeTable.post_id == PostTable.id)
                .group_by(PostTable.id)
                .order_by(desc(like_count), PostTable.created_at.desc())
            )
        elif sort_by == PostSort.OLDEST:
            stmt = stmt.order_by(PostTable.created_at.asc(), PostTable.id.asc())
        else:
            stmt = stmt.order_by(PostTable.created_at.desc(), PostTable.id.desc())

        stmt = stmt.offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def search(self, term: str, limit: int, skip: int = 0) -> list[PostTable]:
        """Case-insensitive substring match on caption, location or tags."""
        pattern = f"%{term}%"
        stmt = (
            select(PostTable)
            .where(
                or_(
                    PostTable.caption.ilike(pattern),
                    PostTable.location.ilike(pattern),
                    cast(PostTable.tags, String).ilike(pattern),
                )
            )
            .order_by(PostTable.created_at.desc(), PostTable.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def liked_by(self, user_id: str, limit: int, skip: int = 0) -> list[PostTable]:
        """Posts liked by user_id, newest post first."""
        stmt = (
            select(PostTable)
            .join(PostLikeTable, PostLikeTable.post_id == PostTable.id)
            .where(PostLikeTable.user_id == user_id)
            .order_by(PostTable.created_at.desc(), PostTable.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def create(self, creator_id: str, **fields: Any) -> PostTable:
        row = PostTable(creator_id=creator_id, **fields)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: PostTable, changes: dict[str, Any]) -> PostTable:
        for field, value in changes.items():
            setattr(row, field, value)
        await self.session.flush()
        return row

    async def delete(self, post_id: str) -> bool:
        """Delete a post with its likes, reviews and saves."""
        await self.session.execute(delete(PostLikeTable).where(PostLikeTable.post_id == post_id))
        await self.session.execute(delete(ReviewTable).where(ReviewTable.post_id == post_id))
        await self.session.execute(delete(SaveTable).where(SaveTable.post_id == post_id))
        result = await self.session.execute(delete(PostTable).where(PostTable.id == post_id))
        return result.rowcount > 0

    # -------------------------------------------------------------------------
    # Likes
    # -------------------------------------------------------------------------

    async def add_like(self, post_id: str, user_id: str) -> bool:
        """Add user_id's like. Returns False if it already existed."""
        if await self.session.get(PostLikeTable, (post_id, user_id)) is not None:
            return False
        self.session.add(PostLikeTable(post_id=post_id, user_id=user_id))
        try:
            await self.session.flush()
        except IntegrityError:
            # Concurrent like from another request
            await self.session.rollback()
            return False
        return True

    async def remove_like(self, post_id: str, user_id: str) -> bool:
        """Remove user_id's like. Returns False if there was none."""
        result = await self.session.execute(
            delete(PostLikeTable).where(
                PostLikeTable.post_id == post_id, PostLikeTable.user_id == user_id
            )
        )
        return result.rowcount > 0

    async def likes_for(self, post_ids: list[str]) -> dict[str, list[str]]:
        """Map post id to liking user ids, oldest like first."""
        likes: dict[str, list[str]] = {post_id: [] for post_id in post_ids}
        if not post_ids:
            return likes
        stmt = (
            select(PostLikeTable.post_id, PostLikeTable.user_id)
            .where(PostLikeTable.post_id.in_(post_ids))
            .order_by(PostLikeTable.created_at.asc())
        )
        result = await self.session.execute(stmt)
        for row in result:
            likes[row.post_id].append(row.user_id)
        return likes


class FollowRepository(BaseRepository):
    """Repository for the follow graph."""

    async def get(self, follower_id: str, following_id: str) -> FollowTable | None:
        return await self.session.get(FollowTable, (follower_id, following_id))

    async def create(self, follower_id: str, following_id: str) -> FollowTable:
        row = FollowTable(follower_id=follower_id, following_id=following_id)
        self.session.add(row)
        await self.session.flush()
        return row

    async def delete(self, follower_id: str, following_id: str) -> bool:
        result = await self.session.execute(
            delete(FollowTable).where(
                FollowTable.follower_id == follower_id,
                FollowTable.following_id == following_id,
            )
        )
        return result.rowcount > 0

    async def follower_ids(self, user_id: str) -> list[str]:
        stmt = (
            select(FollowTable.follower_id)
            .where(FollowTable.following_id == user_id)
            .order_by(FollowTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def following_ids(self, user_id: str) -> list[str]:
        stmt = (
            select(FollowTable.following_id)
            .where(FollowTable.follower_id == user_id)
            .order_by(FollowTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())


class ReviewRepository(BaseRepository):
    """Repository for post reviews."""

    async def get(self, review_id: str) -> ReviewTable | None:
        return await self.session.get(ReviewTable, review_id)

    async def list_for_post(self, post_id: str, limit: int, skip: int = 0) -> list[ReviewTable]:
        stmt = (
            select(ReviewTable)
            .where(ReviewTable.post_id == post_id)
            .order_by(ReviewTable.created_at.desc(), ReviewTable.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def create(
        self, user_id: str, post_id: str, review: str, rating: int | None = None
    ) -> ReviewTable:
        row = ReviewTable(user_id=user_id, post_id=post_id, review=review, rating=rating)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: ReviewTable, changes: dict[str, Any]) -> ReviewTable:
        for field, value in changes.items():
            setattr(row, field, value)
        await self.session.flush()
        return row

    async def delete(self, review_id: str) -> bool:
        result = await self.session.execute(delete(ReviewTable).where(ReviewTable.id == review_id))
        return result.rowcount > 0


class NotificationRepository(BaseRepository):
    """Repository for per-user notifications."""

    async def get(self, notification_id: str) -> NotificationTable | None:
        return await self.session.get(NotificationTable, notification_id)

    async def create(
        self,
        user_id: str,
        actor_id: str,
        type: str,
        post_id: str | None = None,
        review_id: str | None = None,
    ) -> NotificationTable:
        row = NotificationTable(
            user_id=user_id,
            actor_id=actor_id,
            type=type,
            post_id=post_id,
            review_id=review_id,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_for_user(
        self, user_id: str, limit: int, skip: int = 0
    ) -> list[NotificationTable]:
        stmt = (
            select(NotificationTable)
            .where(NotificationTable.user_id == user_id)
            .order_by(NotificationTable.created_at.desc(), NotificationTable.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def unread_count(self, user_id: str) -> int:
        count = await self.session.scalar(
            select(func.count())
            .select_from(NotificationTable)
            .where(NotificationTable.user_id == user_id, NotificationTable.read.is_(False))
        )
        return int(count or 0)

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.session.execute(
            update(NotificationTable)
            .where(NotificationTable.user_id == user_id, NotificationTable.read.is_(False))
            .values(read=True)
        )
        return result.rowcount

    async def delete(self, notification_id: str) -> bool:
        result = await self.session.execute(
            delete(NotificationTable).where(NotificationTable.id == notification_id)
        )
        return result.rowcount > 0


class MessageRepository(BaseRepository):
    """Repository for direct messages."""

    async def create(self, sender_id: str, receiver_id: str, content: str) -> MessageTable:
        row = MessageTable(sender_id=sender_id, receiver_id=receiver_id, content=content)
        self.session.add(row)
        await self.session.flush()
        return row

    async def conversation(
        self, user_id: str, partner_id: str, limit: int, skip: int = 0
    ) -> list[MessageTable]:
        """Messages between two users, oldest first."""
        stmt = (
            select(MessageTable)
            .where(
                or_(
                    (MessageTable.sender_id == user_id) & (MessageTable.receiver_id == partner_id),
                    (MessageTable.sender_id == partner_id) & (MessageTable.receiver_id == user_id),
                )
            )
            .order_by(MessageTable.created_at.asc(), MessageTable.id.asc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def partner_ids(self, user_id: str) -> list[str]:
        """Users user_id has exchanged messages with, most recent first."""
        sent = select(
            MessageTable.receiver_id.label("partner_id"), MessageTable.created_at
        ).where(MessageTable.sender_id == user_id)
        received = select(
            MessageTable.sender_id.label("partner_id"), MessageTable.created_at
        ).where(MessageTable.receiver_id == user_id)
        exchanged = sent.union_all(received).subquery()
        stmt = (
            select(exchanged.c.partner_id)
            .group_by(exchanged.c.partner_id)
            .order_by(func.max(exchanged.c.created_at).desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def unread_count(self, user_id: str) -> int:
        count = await self.session.scalar(
            select(func.count())
            .select_from(MessageTable)
            .where(MessageTable.receiver_id == user_id, MessageTable.read.is_(False))
        )
        return int(count or 0)

    async def mark_conversation_read(self, user_id: str, partner_id: str) -> int:
        """Mark messages from partner_id to user_id as read."""
        result = await self.session.execute(
            update(MessageTable)
            .where(
                MessageTable.sender_id == partner_id,
                MessageTable.receiver_id == user_id,
                MessageTable.read.is_(False),
            )
            .values(read=True)
        )
        return result.rowcount


class SaveRepository(BaseRepository):
    """Repository for posts bookmarked by users."""

    async def save(self, user_id: str, post_id: str) -> SaveTable:
        """Save a post; saving twice returns the existing row."""
        row = await self.session.get(SaveTable, (user_id, post_id))
        if row is not None:
            return row
        row = SaveTable(user_id=user_id, post_id=post_id)
        self.session.add(row)
        await self.session.flush()
        return row

    async def unsave(self, user_id: str, post_id: str) -> bool:
        result = await self.session.execute(
            delete(SaveTable).where(SaveTable.user_id == user_id, SaveTable.post_id == post_id)
        )
        return result.rowcount > 0

    async def saved_posts(self, user_id: str) -> list[PostTable]:
        """Posts saved by user_id, most recently saved first."""
        stmt = (
            select(PostTable)
            .join(SaveTable, SaveTable.post_id == PostTable.id)
            .where(SaveTable.user_id == user_id)
            .order_by(SaveTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())
