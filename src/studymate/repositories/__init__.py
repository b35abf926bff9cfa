"""Data access helpers backing the lifecycle services."""

from .conversation_repo import ConversationRepository
from .notification_repo import NotificationRepository
from .post_repo import PostRepository
from .session_repo import SessionRepository
from .user_repo import UserRepository

__all__ = [
    "ConversationRepository",
    "NotificationRepository",
    "PostRepository",
    "SessionRepository",
    "UserRepository",
]
