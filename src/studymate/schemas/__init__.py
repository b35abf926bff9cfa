# src/studymate/schemas/__init__.py
"""Pydantic schemas for API request/response validation."""

from .conversation import (
    ConversationCreate,
    ConversationResponse,
    ConversationSummaryResponse,
    MessageCreate,
    MessagePageResponse,
    MessageResponse,
    ReadReceiptResponse,
)
from .session import RatingResponse, RatingSubmit, SessionActionResponse, SessionResponse

__all__ = [
    "ConversationCreate",
    "ConversationResponse",
    "ConversationSummaryResponse",
    "MessageCreate",
    "MessagePageResponse",
    "MessageResponse",
    "RatingResponse",
    "RatingSubmit",
    "ReadReceiptResponse",
    "SessionActionResponse",
    "SessionResponse",
]
