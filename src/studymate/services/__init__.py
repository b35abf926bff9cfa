"""Domain services for posts, conversations and study sessions."""

from studymate.services.conversation_service import ConversationService
from studymate.services.errors import (
    ForbiddenError,
    InvalidStateError,
    LifecycleError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)
from studymate.services.post_availability import PostAvailabilityService
from studymate.services.session_lifecycle import SessionLifecycleService
from studymate.services.sweeper import LifecycleSweeper

__all__ = [
    "ConversationService",
    "ForbiddenError",
    "InvalidStateError",
    "LifecycleError",
    "LifecycleSweeper",
    "NotFoundError",
    "PostAvailabilityService",
    "SessionLifecycleService",
    "TransactionConflictError",
    "ValidationError",
]
