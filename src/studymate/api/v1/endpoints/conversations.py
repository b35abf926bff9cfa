# src/studymate/api/v1/endpoints/conversations.py
"""Conversation and message endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from studymate.schemas import (
    ConversationCreate,
    ConversationResponse,
    ConversationSummaryResponse,
    MessageCreate,
    MessagePageResponse,
    MessageResponse,
    ReadReceiptResponse,
)

from ..dependencies import ConversationServiceDep, CurrentUserIdDep, NowDep

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.post("/", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
def create_or_get_conversation(
    payload: ConversationCreate,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    conversations: ConversationServiceDep,
) -> ConversationResponse:
    """Open a conversation with another user, or return the existing one."""
    conversation = conversations.create_or_get_conversation(
        current_user_id,
        payload.other_user_id,
        payload.type,
        now,
        post_id=payload.post_id,
    )
    return ConversationResponse.model_validate(conversation)


@router.get("/", response_model=list[ConversationSummaryResponse])
def list_conversations(
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    conversations: ConversationServiceDep,
    status_filter: str = Query("active", alias="status"),
) -> list[ConversationSummaryResponse]:
    """List the user's active or archived conversations."""
    summaries = conversations.list_conversations(current_user_id, now, status_filter)
    return [ConversationSummaryResponse.model_validate(item) for item in summaries]


@router.get("/{conversation_id}", response_model=ConversationResponse)
def get_conversation(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    conversations: ConversationServiceDep,
) -> ConversationResponse:
    """Return a conversation, back-filling its lifetime on first access."""
    conversation = conversations.ensure_conversation_lifetime(
        conversation_id, current_user_id, now
    )
    return ConversationResponse.model_validate(conversation)


@router.post("/{conversation_id}/extend", response_model=ConversationResponse)
def extend_conversation(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    conversations: ConversationServiceDep,
) -> ConversationResponse:
    """Extend a conversation during its last days."""
    conversation = conversations.extend_conversation(conversation_id, current_user_id, now)
    return ConversationResponse.model_validate(conversation)


@router.post("/{conversation_id}/archive", status_code=status.HTTP_204_NO_CONTENT)
def archive(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    conversations: ConversationServiceDep,
) -> None:
    conversations.archive(conversation_id, current_user_id)


@router.post("/{conversation_id}/unarchive", status_code=status.HTTP_204_NO_CONTENT)
def unarchive(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    conversations: ConversationServiceDep,
) -> None:
    conversations.unarchive(conversation_id, current_user_id)


@router.post("/{conversation_id}/pin", status_code=status.HTTP_204_NO_CONTENT)
def pin(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    conversations: ConversationServiceDep,
) -> None:
    conversations.pin(conversation_id, current_user_id)


@router.post("/{conversation_id}/unpin", status_code=status.HTTP_204_NO_CONTENT)
def unpin(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    conversations: ConversationServiceDep,
) -> None:
    conversations.unpin(conversation_id, current_user_id)


@router.post("/{conversation_id}/delete-for-me", status_code=status.HTTP_204_NO_CONTENT)
def delete_for_me(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    conversations: ConversationServiceDep,
) -> None:
    conversations.delete_for_me(conversation_id, current_user_id)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    conversation_id: int,
    payload: MessageCreate,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    conversations: ConversationServiceDep,
) -> MessageResponse:
    """Send a message to the other participant."""
    message = conversations.send_message(conversation_id, current_user_id, payload.text, now)
    return MessageResponse.model_validate(message)


@router.get("/{conversation_id}/messages", response_model=MessagePageResponse)
def get_messages(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    conversations: ConversationServiceDep,
    after: str | None = Query(None, description="ISO timestamp cursor"),
    limit: int | None = Query(None),
) -> MessagePageResponse:
    """Return a page of messages, marking incoming ones delivered."""
    page = conversations.get_messages(
        conversation_id, current_user_id, now, after=after, limit=limit
    )
    return MessagePageResponse(
        messages=[MessageResponse.model_validate(message) for message in page.messages],
        next_cursor=page.next_cursor,
    )


@router.post("/{conversation_id}/read", response_model=ReadReceiptResponse)
def mark_read(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    conversations: ConversationServiceDep,
) -> ReadReceiptResponse:
    """Mark the other participant's messages as read."""
    updated = conversations.mark_read(conversation_id, current_user_id, now)
    return ReadReceiptResponse(updated=updated)
