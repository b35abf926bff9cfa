"""Atomic counter updates on user accounts."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import update
from sqlalchemy.orm import Session

from studymate.models.user import User

__all__ = ["UserRepository"]


class UserRepository:
    """Server-side updates of the aggregate counters owned by user accounts."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, user_id: int) -> User | None:
        """Return a user by identifier."""
        return self.session.get(User, user_id)

    def apply_rating(self, user_id: int, score: int) -> None:
        """Fold one rating into the user's running mean.

        Both columns are computed in the UPDATE from their stored values, so
        concurrent cleanups rating the same user do not lose updates.
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                average_rating=(
                    (User.average_rating * User.total_reviews + float(score))
                    / (User.total_reviews + 1)
                ),
                total_reviews=User.total_reviews + 1,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)

    def increment_sessions_count(self, user_ids: Iterable[int]) -> None:
        """Add one completed session to each user in ``user_ids``."""
        ids = list(user_ids)
        if not ids:
            return
        stmt = (
            update(User)
            .where(User.id.in_(ids))
            .values(sessions_count=User.sessions_count + 1)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)
