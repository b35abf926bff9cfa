"""Retire posts whose availability date has passed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from studymate.models.post import (
    DEFAULT_CLOSE_REASON,
    POST_CATEGORY_PROJECT_TEAM,
    POST_STATUS_CLOSED,
    POST_STATUS_MATCHED,
    Post,
)
from studymate.repositories import NotificationRepository, PostRepository

logger = logging.getLogger(__name__)


@dataclass
class PostSweepReport:
    """Counts of what one availability pass did to posts."""

    deleted: int = 0
    closed: int = 0
    failed: int = 0


class PostAvailabilityService:
    """Closes matched posts and deletes unmatched ones once they are due."""

    def __init__(self, db: Session) -> None:
        """Initialize the service on a database session.

        Args:
            db: Session used for every read and write of this service.
        """
        self.db = db
        self.posts = PostRepository(db)
        self.notifications = NotificationRepository(db)

    def process_due(self, now: datetime) -> PostSweepReport:
        """Handle every open post whose availability date is at or before ``now``.

        Project team posts and posts nobody was matched to are deleted with
        their join requests and notifications. Matched study posts are kept
        as closed. Each post commits on its own.
        """
        report = PostSweepReport()
        for post in self.posts.list_due_for_availability(now):
            post_id = post.id
            try:
                if self._should_delete(post):
                    self._delete(post_id)
                    report.deleted += 1
                else:
                    post.status = POST_STATUS_CLOSED
                    post.closed_at = now
                    post.close_reason = post.close_reason or DEFAULT_CLOSE_REASON
                    report.closed += 1
                self.db.commit()
            except Exception:
                self.db.rollback()
                report.failed += 1
                logger.exception("Failed to retire post %s", post_id)
        if report.deleted or report.closed:
            logger.info(
                "Post availability sweep: %d deleted, %d closed",
                report.deleted,
                report.closed,
            )
        return report

    def _should_delete(self, post: Post) -> bool:
        if post.category == POST_CATEGORY_PROJECT_TEAM:
            return True
        matched = post.status == POST_STATUS_MATCHED or self.posts.has_accepted_request(post.id)
        return not matched

    def _delete(self, post_id: int) -> None:
        for request_id in self.posts.list_join_request_ids(post_id):
            self.notifications.delete_by_join_request(request_id)
        self.notifications.delete_by_post(post_id)
        self.posts.delete_join_requests(post_id)
        self.posts.delete(post_id)
