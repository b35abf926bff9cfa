"""Notification side-store rows referencing conversations, posts and join requests."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from studymate.db.session import Base
from studymate.db.time import UTCDateTime, utcnow

NOTIFICATION_TYPES = (
    "new_message",
    "chat_initiated",
    "join_request_received",
    "join_request_accepted",
    "join_request_rejected",
)


def _ref(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class Notification(Base):
    """Notification delivered to a single user.

    The payload is free-form JSON, so the ids it mentions are copied into
    canonical string columns at write time and every lookup goes through
    those columns.
    """

    __tablename__ = "notification"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    conversation_ref: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    post_ref: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    join_request_ref: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    @classmethod
    def build(cls, user_id: int, type_: str, payload: dict[str, Any] | None = None) -> Notification:
        """Create a notification with its references normalised from ``payload``."""
        if type_ not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {type_}")
        data = dict(payload or {})
        return cls(
            user_id=user_id,
            type=type_,
            payload=data,
            conversation_ref=_ref(data.get("conversation_id")),
            post_ref=_ref(data.get("post_id")),
            join_request_ref=_ref(data.get("request_id")),
        )
