# src/studymate/models/__init__.py
"""SQLAlchemy models for the Studymate application."""

from .conversation import Conversation, ConversationFlag
from .message import Message
from .notification import Notification
from .post import JoinRequest, Post
from .study_session import StudySession, StudySessionMark, StudySessionRating
from .user import User

__all__ = [
    "Conversation", "ConversationFlag",
    "Message",
    "Notification",
    "JoinRequest", "Post",
    "StudySession", "StudySessionMark", "StudySessionRating",
    "User",
]
