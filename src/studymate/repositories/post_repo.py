"""Data access helpers for posts and their join requests."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, exists, select
from sqlalchemy.orm import Session

from studymate.models.post import (
    JOIN_REQUEST_ACCEPTED,
    POST_STATUS_ACTIVE,
    POST_STATUS_MATCHED,
    JoinRequest,
    Post,
)

__all__ = ["PostRepository"]


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, post_id: int) -> Post | None:
        """Return a post by identifier."""
        return self.session.get(Post, post_id)

    def list_due_for_availability(self, now: datetime) -> list[Post]:
        """Return open posts whose availability date has passed."""
        stmt = (
            select(Post)
            .where(
                Post.status.in_((POST_STATUS_ACTIVE, POST_STATUS_MATCHED)),
                Post.availability_date.is_not(None),
                Post.availability_date <= now,
            )
            .order_by(Post.id)
        )
        return list(self.session.execute(stmt).scalars())

    def has_accepted_request(self, post_id: int) -> bool:
        """Return True if anyone's join request on the post was accepted."""
        stmt = select(
            exists().where(
                JoinRequest.post_id == post_id,
                JoinRequest.status == JOIN_REQUEST_ACCEPTED,
            )
        )
        return bool(self.session.execute(stmt).scalar())

    def list_join_request_ids(self, post_id: int) -> list[int]:
        """Return ids of the join requests made against a post."""
        stmt = select(JoinRequest.id).where(JoinRequest.post_id == post_id)
        return list(self.session.execute(stmt).scalars())

    def delete_join_requests(self, post_id: int) -> int:
        """Delete every join request made against a post."""
        result = self.session.execute(
            delete(JoinRequest)
            .where(JoinRequest.post_id == post_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    def delete(self, post_id: int) -> bool:
        """Delete a post row; returns False if it was already gone."""
        result = self.session.execute(
            delete(Post).where(Post.id == post_id).execution_options(synchronize_session="fetch")
        )
        return bool(result.rowcount)
