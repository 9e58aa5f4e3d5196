"""Persistence layer: async SQLAlchemy engine, tables and repositories."""

from momento.persistence.db import Database, get_session
from momento.persistence.repositories import (
    FollowRepository,
    MessageRepository,
    NotificationRepository,
    PostRepository,
    ReviewRepository,
    SaveRepository,
    UserRepository,
)

__all__ = [
    "Database",
    "get_session",
    "FollowRepository",
    "MessageRepository",
    "NotificationRepository",
    "PostRepository",
    "ReviewRepository",
    "SaveRepository",
    "UserRepository",
]
