"""SQLAlchemy models for conversations between two participants."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studymate.db.session import Base
from studymate.db.time import UTCDateTime, utcnow

CONVERSATION_TYPE_POST = "post"
CONVERSATION_TYPE_DIRECT = "direct"
CONVERSATION_TYPES = (CONVERSATION_TYPE_POST, CONVERSATION_TYPE_DIRECT)

FLAG_ARCHIVED = "archived"
FLAG_PINNED = "pinned"
FLAG_DELETED = "deleted"


def build_participants_key(user_id: int, other_user_id: int) -> str:
    """Return the canonical, order-independent key for a participant pair."""
    return ":".join(sorted((str(user_id), str(other_user_id))))


class Conversation(Base):
    """Two-party conversation that expires on its own schedule.

    At most one conversation exists per (type, participant pair), and for
    post conversations per (type, post, participant pair).
    """

    __tablename__ = "conversation"
    __table_args__ = (
        CheckConstraint("type IN ('post', 'direct')", name="ck_conversation_type"),
        CheckConstraint(
            "participant_a_id <> participant_b_id",
            name="ck_conversation_distinct_participants",
        ),
        Index(
            "uq_conversation_direct_pair",
            "type",
            "participants_key",
            unique=True,
            sqlite_where=text("type = 'direct'"),
            postgresql_where=text("type = 'direct'"),
        ),
        Index(
            "uq_conversation_post_pair",
            "type",
            "post_id",
            "participants_key",
            unique=True,
            sqlite_where=text("type = 'post'"),
            postgresql_where=text("type = 'post'"),
        ),
        Index("ix_conversation_expires_at", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)

    # Stored in participants_key order.
    participant_a_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    participant_b_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    participants_key: Mapped[str] = mapped_column(String(64), nullable=False)
    post_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("post.id", ondelete="SET NULL"), nullable=True
    )

    # Unset until the first read/write back-fills them.
    first_opened_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    max_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    last_message_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    flags: Mapped[list[ConversationFlag]] = relationship(
        "ConversationFlag",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def participants(self) -> tuple[int, int]:
        """Return both participant ids in canonical order."""
        return (self.participant_a_id, self.participant_b_id)

    def has_participant(self, user_id: int) -> bool:
        """Return True if ``user_id`` is one of the two participants."""
        return user_id in self.participants

    def other_participant(self, user_id: int) -> int:
        """Return the participant that is not ``user_id``."""
        if user_id == self.participant_a_id:
            return self.participant_b_id
        return self.participant_a_id

    def flagged_by(self, flag: str) -> set[int]:
        """Return the users that set ``flag`` on this conversation."""
        return {entry.user_id for entry in self.flags if entry.flag == flag}


class ConversationFlag(Base):
    """Per-user membership in the archived, pinned or deleted sets."""

    __tablename__ = "conversation_flag"
    __table_args__ = (
        CheckConstraint(
            "flag IN ('archived', 'pinned', 'deleted')",
            name="ck_conversation_flag_kind",
        ),
    )

    conversation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("conversation.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), primary_key=True
    )
    flag: Mapped[str] = mapped_column(String(16), primary_key=True)
