"""Data access helpers for conversations and their messages."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from studymate.models.conversation import (
    CONVERSATION_TYPE_POST,
    FLAG_ARCHIVED,
    FLAG_DELETED,
    Conversation,
    ConversationFlag,
)
from studymate.models.message import Message
from studymate.repositories.base import insert_ignore

__all__ = ["ConversationRepository"]


class ConversationRepository:
    """Thin wrapper around database access for conversations and messages."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    # --- Conversations ------------------------------------------------------

    def get(self, conversation_id: int) -> Conversation | None:
        """Return a conversation by identifier."""
        return self.session.get(Conversation, conversation_id)

    def find_pair(
        self, type_: str, participants_key: str, post_id: int | None
    ) -> Conversation | None:
        """Return the conversation for a participant pair, scoped by post if needed."""
        stmt = select(Conversation).where(
            Conversation.type == type_,
            Conversation.participants_key == participants_key,
        )
        if type_ == CONVERSATION_TYPE_POST:
            stmt = stmt.where(Conversation.post_id == post_id)
        return self.session.execute(stmt).scalars().first()

    def list_for_user(self, user_id: int, *, archived: bool) -> list[Conversation]:
        """Return a user's conversations, newest activity first.

        Conversations the user deleted for themselves are never returned.
        """
        deleted = select(ConversationFlag.conversation_id).where(
            ConversationFlag.user_id == user_id,
            ConversationFlag.flag == FLAG_DELETED,
        )
        archived_ids = select(ConversationFlag.conversation_id).where(
            ConversationFlag.user_id == user_id,
            ConversationFlag.flag == FLAG_ARCHIVED,
        )
        stmt = select(Conversation).where(
            (Conversation.participant_a_id == user_id)
            | (Conversation.participant_b_id == user_id),
            Conversation.id.not_in(deleted),
        )
        if archived:
            stmt = stmt.where(Conversation.id.in_(archived_ids))
        else:
            stmt = stmt.where(Conversation.id.not_in(archived_ids))
        stmt = stmt.order_by(
            Conversation.last_message_at.is_(None),
            Conversation.last_message_at.desc(),
            Conversation.updated_at.desc(),
        )
        return list(self.session.execute(stmt).scalars())

    def list_expired_ids(self, now: datetime) -> list[int]:
        """Return ids of conversations whose lifetime has ended."""
        stmt = (
            select(Conversation.id)
            .where(Conversation.expires_at.is_not(None), Conversation.expires_at <= now)
            .order_by(Conversation.id)
        )
        return list(self.session.execute(stmt).scalars())

    def add_flag(self, conversation_id: int, user_id: int, flag: str) -> bool:
        """Atomically add ``user_id`` to a per-user flag set."""
        return insert_ignore(
            self.session,
            ConversationFlag,
            {"conversation_id": conversation_id, "user_id": user_id, "flag": flag},
        )

    def remove_flag(self, conversation_id: int, user_id: int, flag: str) -> None:
        """Remove ``user_id`` from a per-user flag set."""
        self.session.execute(
            delete(ConversationFlag).where(
                ConversationFlag.conversation_id == conversation_id,
                ConversationFlag.user_id == user_id,
                ConversationFlag.flag == flag,
            )
        )

    def delete(self, conversation_id: int) -> bool:
        """Delete a conversation row and its flags; False if it was already gone."""
        self.session.execute(
            delete(ConversationFlag).where(ConversationFlag.conversation_id == conversation_id)
        )
        result = self.session.execute(
            delete(Conversation).where(Conversation.id == conversation_id)
        )
        return bool(result.rowcount)

    # --- Messages -------------------------------------------------------------

    def latest_messages(self, conversation_id: int, limit: int) -> list[Message]:
        """Return the newest ``limit`` messages in ascending order."""
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return list(reversed(self.session.execute(stmt).scalars().all()))

    def messages_after(
        self, conversation_id: int, after: datetime, limit: int
    ) -> list[Message]:
        """Return up to ``limit`` messages created strictly after ``after``."""
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id, Message.created_at > after)
            .order_by(Message.created_at, Message.id)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def last_message(self, conversation_id: int) -> Message | None:
        """Return the newest message of a conversation."""
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def unread_count(self, conversation_id: int, reader_id: int) -> int:
        """Count messages from the other participant that ``reader_id`` has not read."""
        stmt = select(func.count()).where(
            Message.conversation_id == conversation_id,
            Message.sender_id != reader_id,
            Message.read_at.is_(None),
        )
        return int(self.session.execute(stmt).scalar() or 0)

    def mark_delivered(self, conversation_id: int, recipient_id: int, now: datetime) -> int:
        """Set ``delivered_at`` on the recipient's undelivered messages."""
        return self._mark(conversation_id, recipient_id, Message.delivered_at, now)

    def mark_read(self, conversation_id: int, recipient_id: int, now: datetime) -> int:
        """Set ``read_at`` on the recipient's unread messages."""
        return self._mark(conversation_id, recipient_id, Message.read_at, now)

    def _mark(self, conversation_id: int, recipient_id: int, column, now: datetime) -> int:  # type: ignore[no-untyped-def]
        # Only null markers are touched, so a set marker never moves.
        result = self.session.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_id != recipient_id,
                column.is_(None),
            )
            .values({column.key: now})
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    def delete_messages(self, conversation_id: int) -> int:
        """Delete every message of a conversation."""
        result = self.session.execute(
            delete(Message)
            .where(Message.conversation_id == conversation_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
