"""Deletes against the notification side-store."""
from __future__ import annotations

from sqlalchemy import delete
from sqlalchemy.orm import Session

from studymate.models.notification import Notification

__all__ = ["NotificationRepository"]


class NotificationRepository:
    """Removes notifications that reference deleted entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def delete_by_conversation(self, conversation_id: int) -> int:
        """Delete notifications about a conversation; returns the row count."""
        return self._delete(Notification.conversation_ref == str(conversation_id))

    def delete_by_post(self, post_id: int) -> int:
        """Delete notifications about a post; returns the row count."""
        return self._delete(Notification.post_ref == str(post_id))

    def delete_by_join_request(self, request_id: int) -> int:
        """Delete notifications about a join request; returns the row count."""
        return self._delete(Notification.join_request_ref == str(request_id))

    def _delete(self, clause) -> int:  # type: ignore[no-untyped-def]
        result = self.session.execute(
            delete(Notification).where(clause).execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
