"""Data access helpers for study sessions."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from studymate.models.study_session import (
    SESSION_STATUS_COMPLETED,
    StudySession,
    StudySessionMark,
    StudySessionRating,
)
from studymate.repositories.base import insert_ignore, upsert

__all__ = ["SessionRepository"]


class SessionRepository:
    """Thin wrapper around database access for study sessions."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, session_id: int) -> StudySession | None:
        """Return a study session by identifier."""
        return self.session.get(StudySession, session_id)

    def get_for_update(self, session_id: int) -> StudySession | None:
        """Re-read a study session inside the current transaction, locking its row."""
        stmt = (
            select(StudySession)
            .where(StudySession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalars().first()

    def get_by_conversation(self, conversation_id: int) -> StudySession | None:
        """Return the session attached to a conversation, if any."""
        stmt = select(StudySession).where(StudySession.conversation_id == conversation_id)
        return self.session.execute(stmt).scalars().first()

    def list_ids_by_status(self, status: str) -> list[int]:
        """Return ids of every session currently in ``status``."""
        stmt = select(StudySession.id).where(StudySession.status == status).order_by(
            StudySession.id
        )
        return list(self.session.execute(stmt).scalars())

    def list_ids_due_for_cleanup(self, now: datetime) -> list[int]:
        """Return ids of completed sessions whose rating window has closed."""
        stmt = (
            select(StudySession.id)
            .where(
                StudySession.status == SESSION_STATUS_COMPLETED,
                StudySession.completion_deadline_at.is_not(None),
                StudySession.completion_deadline_at <= now,
            )
            .order_by(StudySession.id)
        )
        return list(self.session.execute(stmt).scalars())

    def lock_in_status(self, session_id: int, statuses: Iterable[str]) -> bool:
        """Claim the session row for writing only while it is in one of ``statuses``.

        The UPDATE rewrites ``status`` to itself so it takes the row lock;
        a concurrent state change is either seen here (False) or waits for
        this transaction to finish.
        """
        result = self.session.execute(
            update(StudySession)
            .where(StudySession.id == session_id, StudySession.status.in_(tuple(statuses)))
            .values(status=StudySession.status)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    def add_mark(self, session_id: int, user_id: int, kind: str) -> bool:
        """Atomically add ``user_id`` to the ``kind`` set; True if newly added."""
        return insert_ignore(
            self.session,
            StudySessionMark,
            {"session_id": session_id, "user_id": user_id, "kind": kind},
        )

    def put_rating(
        self,
        session_id: int,
        *,
        rater_id: int,
        target_user_id: int,
        score: int,
        review: str,
        created_at: datetime,
    ) -> None:
        """Record ``rater_id``'s rating of ``target_user_id``, replacing any earlier one."""
        upsert(
            self.session,
            StudySessionRating,
            {
                "session_id": session_id,
                "target_user_id": target_user_id,
                "rater_id": rater_id,
                "score": score,
                "review": review,
                "created_at": created_at,
            },
            key=("session_id", "target_user_id"),
        )

    def delete_completed(self, session_id: int) -> bool:
        """Delete a session and its child rows, only while it is completed.

        Returns False if the session was no longer completed (or already
        gone); the caller is expected to roll back in that case.
        """
        self.session.execute(
            delete(StudySessionMark).where(StudySessionMark.session_id == session_id)
        )
        self.session.execute(
            delete(StudySessionRating).where(StudySessionRating.session_id == session_id)
        )
        result = self.session.execute(
            delete(StudySession).where(
                StudySession.id == session_id,
                StudySession.status == SESSION_STATUS_COMPLETED,
            )
        )
        return bool(result.rowcount)

    def list_ratings(self, session_id: int) -> list[StudySessionRating]:
        """Return the ratings recorded on a session."""
        stmt = select(StudySessionRating).where(StudySessionRating.session_id == session_id)
        return list(self.session.execute(stmt).scalars())
