"""SQLAlchemy models for posts and the join requests made against them."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from studymate.db.session import Base
from studymate.db.time import UTCDateTime, utcnow

POST_STATUS_ACTIVE = "active"
POST_STATUS_MATCHED = "matched"
POST_STATUS_EXPIRED = "expired"
POST_STATUS_CLOSED = "closed"

POST_CATEGORY_STUDY_PARTNER = "study_partner"
POST_CATEGORY_PROJECT_TEAM = "project_team"
POST_CATEGORY_TUTOR_OFFER = "tutor_offer"

JOIN_REQUEST_PENDING = "pending"
JOIN_REQUEST_ACCEPTED = "accepted"
JOIN_REQUEST_REJECTED = "rejected"

DEFAULT_CLOSE_REASON = "availability_date_reached"


class Post(Base):
    """Request for a study partner, project team or tutor.

    Post management lives outside this service; the lifecycle only closes
    or deletes posts once their availability date passes or their session
    has been cleaned up.
    """

    __tablename__ = "post"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'matched', 'expired', 'closed')",
            name="ck_post_status",
        ),
        Index("ix_post_status_availability", "status", "availability_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    subject_codes: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    subject_names: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=POST_STATUS_ACTIVE)
    availability_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    closed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    close_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    def snapshot(self) -> dict[str, Any]:
        """Return the immutable metadata copied onto a session at start."""
        return {
            "title": self.title or "",
            "subject_codes": list(self.subject_codes or []),
            "subject_names": list(self.subject_names or []),
            "role": self.role or "",
        }


class JoinRequest(Base):
    """A user's request to join a post; at most one per (post, requester)."""

    __tablename__ = "join_request"
    __table_args__ = (
        UniqueConstraint("post_id", "requester_id", name="uq_join_request_post_requester"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')",
            name="ck_join_request_status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("post.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requester_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=JOIN_REQUEST_PENDING)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
