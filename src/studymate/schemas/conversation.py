# src/studymate/schemas/conversation.py
"""Conversation and message Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from studymate.db.time import as_utc


class ConversationCreate(BaseModel):
    """Schema for opening (or fetching) a conversation with another user."""

    other_user_id: int = Field(..., description="The other participant")
    type: Literal["post", "direct"] = Field("direct", description="Conversation type")
    post_id: int | None = Field(None, description="Post the conversation is about")


class ConversationResponse(BaseModel):
    """Schema for conversation information returned by the API."""

    id: int
    type: str
    participant_a_id: int
    participant_b_id: int
    post_id: int | None
    first_opened_at: datetime | None
    expires_at: datetime | None
    max_expires_at: datetime | None
    last_message_at: datetime | None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("first_opened_at", "expires_at", "max_expires_at", "last_message_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class MessageCreate(BaseModel):
    """Schema for sending a message."""

    text: str = Field(..., description="Message body")


class MessageResponse(BaseModel):
    """Schema for a message returned by the API."""

    id: int
    conversation_id: int
    sender_id: int
    text: str
    created_at: datetime
    delivered_at: datetime | None
    read_at: datetime | None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "delivered_at", "read_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class MessagePageResponse(BaseModel):
    """A page of messages and the cursor to request the next one."""

    messages: list[MessageResponse]
    next_cursor: datetime | None


class ConversationSummaryResponse(BaseModel):
    """A conversation as it appears in the user's list."""

    conversation: ConversationResponse
    other_participant_id: int
    last_message: MessageResponse | None
    unread_count: int
    pinned: bool

    model_config = ConfigDict(from_attributes=True)


class ReadReceiptResponse(BaseModel):
    """Number of messages newly marked as read."""

    updated: int
