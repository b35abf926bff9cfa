"""Models tracking a study session's end-of-engagement workflow."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studymate.db.session import Base
from studymate.db.time import UTCDateTime, utcnow

SESSION_STATUS_IN_PROGRESS = "in_progress"
SESSION_STATUS_PENDING_CONFIRMATION = "pending_confirmation"
SESSION_STATUS_COMPLETED = "completed"
SESSION_STATUSES = (
    SESSION_STATUS_IN_PROGRESS,
    SESSION_STATUS_PENDING_CONFIRMATION,
    SESSION_STATUS_COMPLETED,
)

# Kinds of per-participant marks.
MARK_CONFIRMED = "confirmed"
MARK_COMPLETED = "completed"

RATING_MIN_SCORE = 1
RATING_MAX_SCORE = 5


class StudySession(Base):
    """State machine for one tutoring or study engagement.

    Sessions move in_progress -> pending_confirmation -> completed and are
    hard-deleted by the lifecycle cleanup. The conversation and post ids are
    loose references: cleanup removes those rows before the session itself.
    """

    __tablename__ = "study_session"
    __table_args__ = (
        CheckConstraint(
            "status IN ('in_progress', 'pending_confirmation', 'completed')",
            name="ck_study_session_status",
        ),
        CheckConstraint(
            "participant_a_id <> participant_b_id",
            name="ck_study_session_distinct_participants",
        ),
        Index("ix_study_session_status_auto_close", "status", "auto_close_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    post_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    participant_a_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    participant_b_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    post_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=SESSION_STATUS_IN_PROGRESS
    )

    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    ending_requested_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=True
    )
    ending_requested_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    # Next instant at which the sweeper must force a transition.
    auto_close_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    # Deadline of the current phase (confirmation or rating).
    completion_deadline_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    marks: Mapped[list[StudySessionMark]] = relationship(
        "StudySessionMark",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    ratings: Mapped[list[StudySessionRating]] = relationship(
        "StudySessionRating",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def participants(self) -> tuple[int, int]:
        """Return both participant ids."""
        return (self.participant_a_id, self.participant_b_id)

    def has_participant(self, user_id: int | None) -> bool:
        """Return True if ``user_id`` is one of the two participants."""
        return user_id is not None and user_id in self.participants

    @property
    def confirmed_by(self) -> set[int]:
        """Participants who acknowledged the end request."""
        return self._marked(MARK_CONFIRMED)

    @property
    def completed_by(self) -> set[int]:
        """Participants who finished the post-completion step."""
        return self._marked(MARK_COMPLETED)

    @property
    def rating(self) -> dict[int, StudySessionRating]:
        """Ratings keyed by the participant being rated."""
        return {entry.target_user_id: entry for entry in self.ratings}

    def _marked(self, kind: str) -> set[int]:
        return {mark.user_id for mark in self.marks if mark.kind == kind}

    def reset_marks(self, kind: str, user_ids: Iterable[int]) -> None:
        """Replace the ``kind`` set in memory; unchanged members keep their rows."""
        wanted = set(user_ids)
        kept = [
            mark
            for mark in self.marks
            if mark.kind != kind or mark.user_id in wanted
        ]
        present = {mark.user_id for mark in kept if mark.kind == kind}
        kept.extend(
            StudySessionMark(user_id=user_id, kind=kind)
            for user_id in sorted(wanted - present)
        )
        self.marks = kept


class StudySessionMark(Base):
    """Set membership row: one participant in the confirmed or completed set."""

    __tablename__ = "study_session_mark"
    __table_args__ = (
        CheckConstraint("kind IN ('confirmed', 'completed')", name="ck_study_session_mark_kind"),
    )

    session_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("study_session.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)


class StudySessionRating(Base):
    """One participant's rating of the other; at most one per direction."""

    __tablename__ = "study_session_rating"
    __table_args__ = (
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_study_session_rating_score"),
    )

    session_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("study_session.id", ondelete="CASCADE"),
        primary_key=True,
    )
    target_user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rater_id: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    review: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
