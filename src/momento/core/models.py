"""Pydantic models for Momento resources.

Field names are snake_case in Python and camelCase on the wire; request
bodies accept either form.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class NotificationType(str, Enum):
    LIKE = "LIKE"
    FOLLOW = "FOLLOW"
    REVIEW = "REVIEW"


class PostSort(str, Enum):
    LATEST = "latest"
    OLDEST = "oldest"
    MOST_LIKED = "mostLiked"


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


class UserCreate(ApiModel):
    username: str = Field(min_length=1, max_length=64)
    full_name: str = ""
    email: str | None = None
    bio: str = ""


class UserUpdate(ApiModel):
    full_name: str | None = None
    email: str | None = None
    bio: str | None = None


class UserSummary(ApiModel):
    id: str
    username: str
    full_name: str


class User(UserSummary):
    email: str | None = None
    bio: str = ""
    created_at: datetime
    followers_count: int = 0
    following_count: int = 0


# -----------------------------------------------------------------------------
# Posts
# -----------------------------------------------------------------------------


def _split_tags(value: object) -> object:
    # Tags may arrive as "a, b,c"
    if isinstance(value, str):
        return [tag for tag in value.replace(" ", "").split(",") if tag]
    return value


class PostCreate(ApiModel):
    caption: str = ""
    location: str = ""
    tags: list[str] = Field(default_factory=list)
    image_url: str | None = None

    _normalize_tags = field_validator("tags", mode="before")(_split_tags)


class PostUpdate(ApiModel):
    caption: str | None = None
    location: str | None = None
    tags: list[str] | None = None
    image_url: str | None = None

    _normalize_tags = field_validator("tags", mode="before")(_split_tags)


class Post(ApiModel):
    id: str
    creator_id: str
    caption: str
    location: str
    tags: list[str]
    image_url: str | None = None
    likes: list[str] = Field(default_factory=list)
    like_count: int = 0
    created_at: datetime
    updated_at: datetime


class PostPage(ApiModel):
    documents: list[Post]


class LikeRequest(ApiModel):
    """Like (true) or unlike (false) a post as the acting user."""

    liked: bool = True


# -----------------------------------------------------------------------------
# Follows
# -----------------------------------------------------------------------------


class FollowRequest(ApiModel):
    following_id: str


class Follow(ApiModel):
    follower_id: str
    following_id: str
    created_at: datetime


# -----------------------------------------------------------------------------
# Reviews
# -----------------------------------------------------------------------------


class ReviewCreate(ApiModel):
    post_id: str
    review: str = Field(min_length=1)
    rating: int | None = Field(default=None, ge=1, le=5)

    @field_validator("review")
    @classmethod
    def _strip_review(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Review text is required")
        return value


class ReviewUpdate(ApiModel):
    review: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)

    @field_validator("review")
    @classmethod
    def _strip_review(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("Review text cannot be empty")
        return value


class Review(ApiModel):
    id: str
    user_id: str
    post_id: str
    review: str
    rating: int | None = None
    created_at: datetime
    updated_at: datetime


class ReviewPage(ApiModel):
    documents: list[Review]


# -----------------------------------------------------------------------------
# Saves
# -----------------------------------------------------------------------------


class SaveRequest(ApiModel):
    post_id: str


class Save(ApiModel):
    user_id: str
    post_id: str
    created_at: datetime


class SavedPosts(ApiModel):
    documents: list[Post]


# -----------------------------------------------------------------------------
# Notifications and messages
# -----------------------------------------------------------------------------


class Notification(ApiModel):
    id: str
    user_id: str
    actor_id: str
    type: NotificationType
    post_id: str | None = None
    review_id: str | None = None
    read: bool
    created_at: datetime


class NotificationPage(ApiModel):
    documents: list[Notification]


class MessageCreate(ApiModel):
    receiver_id: str
    content: str = Field(min_length=1)

    @field_validator("content")
    @classmethod
    def _strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message content is required")
        return value


class Message(ApiModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    read: bool
    created_at: datetime


class ConversationPartners(ApiModel):
    partners: list[UserSummary]


class CountResponse(ApiModel):
    count: int


class StatusMessage(ApiModel):
    message: str
