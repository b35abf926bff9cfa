"""Study session lifecycle orchestration.

This module applies the rules in :mod:`studymate.services.lifecycle_policy`
against the database: participants ending, confirming and rating a session,
the sweeper's forced transitions, and the transactional cleanup that tears
a finished session down and folds its ratings into the users' statistics.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studymate.models.message import Message
from studymate.models.study_session import (
    MARK_COMPLETED,
    MARK_CONFIRMED,
    RATING_MAX_SCORE,
    RATING_MIN_SCORE,
    SESSION_STATUS_COMPLETED,
    SESSION_STATUS_IN_PROGRESS,
    SESSION_STATUS_PENDING_CONFIRMATION,
    StudySession,
)
from studymate.repositories import (
    ConversationRepository,
    NotificationRepository,
    PostRepository,
    SessionRepository,
    UserRepository,
)
from studymate.services import lifecycle_policy as policy
from studymate.services.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)

SESSION_CLOSED_TEXT = "Session closed."
OPEN_STATUSES = (SESSION_STATUS_IN_PROGRESS, SESSION_STATUS_PENDING_CONFIRMATION)

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counts of what one sweep pass did to sessions."""

    end_requested: int = 0
    completed: int = 0
    cleaned: int = 0
    failed: int = 0


def normalize_score(score: Any) -> int | None:
    """Return a recordable score, or None when no rating should be written.

    A missing score or 0 means the participant skipped rating. Anything
    else must be a whole number between 1 and 5.

    Raises:
        ValidationError: If the score is malformed or out of range.
    """
    if score is None:
        return None
    if isinstance(score, bool):
        raise ValidationError("Invalid score")
    try:
        value = float(score)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid score") from exc
    if not math.isfinite(value) or not value.is_integer():
        raise ValidationError("Invalid score")
    if value == 0:
        return None
    if value < RATING_MIN_SCORE or value > RATING_MAX_SCORE:
        raise ValidationError("Invalid score")
    return int(value)


class SessionLifecycleService:
    """Moves study sessions through end request, confirmation, rating and cleanup."""

    def __init__(self, db: Session) -> None:
        """Initialize the service on a database session.

        Args:
            db: Session used for every read and write of this service.
        """
        self.db = db
        self.sessions = SessionRepository(db)
        self.users = UserRepository(db)
        self.conversations = ConversationRepository(db)
        self.notifications = NotificationRepository(db)
        self.posts = PostRepository(db)

    # --- Lookups ----------------------------------------------------------------

    def _load(self, session_id: int) -> StudySession:
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def _load_for_participant(self, session_id: int, user_id: int) -> StudySession:
        session = self._load(session_id)
        if not session.has_participant(user_id):
            raise ForbiddenError("Not authorized")
        return session

    def get_for_participant(self, session_id: int, user_id: int) -> StudySession:
        """Return a session the user takes part in."""
        return self._load_for_participant(session_id, user_id)

    def get_by_conversation_id(self, conversation_id: int, user_id: int) -> StudySession | None:
        """Return the session of a conversation, or None if it has none.

        Raises:
            ForbiddenError: If ``user_id`` is not a participant.
        """
        session = self.sessions.get_by_conversation(conversation_id)
        if session is None:
            return None
        if not session.has_participant(user_id):
            raise ForbiddenError("Not authorized to access this session")
        return session

    # --- Request-driven operations ----------------------------------------------

    def start_session(
        self,
        conversation_id: int,
        now: datetime,
        *,
        post_id: int | None = None,
    ) -> StudySession:
        """Open a session for a conversation, snapshotting the linked post.

        Cleanup deletes the session's post, so only the conversation's own
        post may be attached. ``post_id`` defaults to it.

        Raises:
            NotFoundError: If the conversation or post does not exist.
            ForbiddenError: If ``post_id`` is not the conversation's post.
            InvalidStateError: If the conversation already has a session.
        """
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if post_id is None:
            post_id = conversation.post_id
        elif post_id != conversation.post_id:
            raise ForbiddenError("Post is not linked to this conversation")
        if self.sessions.get_by_conversation(conversation_id) is not None:
            raise InvalidStateError("Conversation already has a session")

        snapshot: dict[str, Any] = {"title": "", "subject_codes": [], "subject_names": [], "role": ""}
        if post_id is not None:
            post = self.posts.get(post_id)
            if post is None:
                raise NotFoundError("Post not found")
            snapshot = post.snapshot()

        session = StudySession(
            conversation_id=conversation.id,
            post_id=post_id,
            participant_a_id=conversation.participant_a_id,
            participant_b_id=conversation.participant_b_id,
            post_snapshot=snapshot,
            status=SESSION_STATUS_IN_PROGRESS,
        )
        policy.initialize(session, now)
        self.db.add(session)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise InvalidStateError("Conversation already has a session") from exc
        logger.info("Started session %s for conversation %s", session.id, conversation_id)
        return session

    def request_end(self, session_id: int, requester_id: int, now: datetime) -> StudySession:
        """Ask to end a session, opening (or reopening) the confirmation window.

        Raises:
            NotFoundError: If the session does not exist.
            ForbiddenError: If ``requester_id`` is not a participant.
            InvalidStateError: If the session is already completed.
        """
        session = self._load_for_participant(session_id, requester_id)
        if session.status not in OPEN_STATUSES:
            raise InvalidStateError("Session is not available")
        # The loaded status may be stale; re-check it while holding the row.
        if not self.sessions.lock_in_status(session.id, OPEN_STATUSES):
            self.db.rollback()
            logger.warning("Session %s left the open states before end request", session_id)
            raise InvalidStateError("Session is not available")

        policy.request_end(session, requester_id, now)
        self.db.commit()
        logger.info("Session %s end requested by user %s", session_id, requester_id)
        return session

    def confirm_end(self, session_id: int, user_id: int, now: datetime) -> StudySession | None:
        """Record that ``user_id`` is done with the session.

        The user joins the completed set (and, while the session is pending,
        the confirmed set). The session completes once both participants are
        in either set or the confirmation deadline has passed.

        Returns:
            The updated session, or None if it was cleaned up by this call.

        Raises:
            NotFoundError: If the session does not exist.
            ForbiddenError: If ``user_id`` is not a participant.
            InvalidStateError: If no end has been requested yet.
        """
        session = self._load_for_participant(session_id, user_id)
        if session.status == SESSION_STATUS_IN_PROGRESS:
            raise InvalidStateError("Session is not awaiting confirmation")

        if session.status == SESSION_STATUS_PENDING_CONFIRMATION:
            self.sessions.add_mark(session.id, user_id, MARK_CONFIRMED)
        self.sessions.add_mark(session.id, user_id, MARK_COMPLETED)
        self.db.commit()
        return self._settle(session, user_id, now)

    def submit_rating(
        self,
        session_id: int,
        rater_id: int,
        target_id: int,
        score: Any,
        review: Any,
        now: datetime,
    ) -> StudySession | None:
        """Rate the other participant and finish the rater's completion step.

        A missing or zero score records no rating but still completes the
        step. Re-submitting replaces the earlier rating.

        Returns:
            The updated session, or None if it was cleaned up by this call.

        Raises:
            NotFoundError: If the session does not exist.
            ForbiddenError: If rater or target are not distinct participants.
            InvalidStateError: If no end has been requested yet.
            ValidationError: If the score is malformed.
        """
        session = self._load_for_participant(session_id, rater_id)
        if session.status == SESSION_STATUS_IN_PROGRESS:
            raise InvalidStateError("Session is not ready for rating")
        if target_id == rater_id or not session.has_participant(target_id):
            raise ForbiddenError("Not authorized")

        normalized = normalize_score(score)
        if normalized is not None:
            self.sessions.put_rating(
                session.id,
                rater_id=rater_id,
                target_user_id=target_id,
                score=normalized,
                review=review.strip() if isinstance(review, str) else "",
                created_at=now,
            )
        self.sessions.add_mark(session.id, rater_id, MARK_COMPLETED)
        self.db.commit()
        return self._settle(session, rater_id, now)

    def _settle(self, session: StudySession, actor_id: int, now: datetime) -> StudySession | None:
        # Reload marks so writes by the other participant are visible.
        self.db.expire(session)
        if policy.should_complete(session, now):
            mutual = policy.everyone(session, session.confirmed_by)
            policy.mark_completed(session, now)
            if mutual:
                self._post_closing_message(session, actor_id, now)
            self.db.commit()
            logger.info("Session %s completed", session.id)

        if policy.cleanup_due(session, now):
            self.cleanup_session_lifecycle(session.id)
            return None
        return session

    def _post_closing_message(self, session: StudySession, sender_id: int, now: datetime) -> None:
        conversation = self.conversations.get(session.conversation_id)
        if conversation is None:
            return
        self.db.add(
            Message(
                conversation_id=conversation.id,
                sender_id=sender_id,
                text=SESSION_CLOSED_TEXT,
                created_at=now,
            )
        )
        conversation.last_message_at = now

    def run_cleanup_if_due(
        self,
        session_id: int,
        now: datetime,
        *,
        actor_id: int | None = None,
    ) -> bool:
        """Clean a session up on demand once its current deadline has passed.

        Args:
            session_id: Session to clean up.
            now: Current instant.
            actor_id: Requesting participant; None for trusted callers such as jobs.

        Raises:
            NotFoundError: If the session does not exist.
            ForbiddenError: If ``actor_id`` is given and not a participant.
            InvalidStateError: If the session is not completed or its window is still open.
            TransactionConflictError: If the cleanup transaction was aborted.
        """
        session = self._load(session_id)
        if actor_id is not None and not session.has_participant(actor_id):
            raise ForbiddenError("Not authorized")
        if not policy.is_due(session.completion_deadline_at, now):
            raise InvalidStateError("Session cleanup window has not ended yet")
        if session.status != SESSION_STATUS_COMPLETED:
            raise InvalidStateError("Session is not completed")
        return self.cleanup_session_lifecycle(session.id)

    # --- Cleanup -----------------------------------------------------------------

    def cleanup_session_lifecycle(self, session_id: int) -> bool:
        """Tear down a completed session in one transaction.

        Applies the session's ratings to the rated users, counts the session
        for both participants, then deletes the conversation with its
        messages and notifications, the linked post with its join requests
        and notifications, and finally the session. Calling this again for
        the same session is a no-op.

        Returns:
            True if this call removed the session, False if there was nothing to do.

        Raises:
            TransactionConflictError: If any step failed; nothing was applied.
        """
        try:
            session = self.sessions.get_for_update(session_id)
            if session is None:
                self.db.rollback()
                logger.debug("Session %s already cleaned up", session_id)
                return False
            if session.status != SESSION_STATUS_COMPLETED:
                self.db.rollback()
                logger.warning(
                    "Skipping cleanup of session %s in status %s", session_id, session.status
                )
                return False

            conversation_id = session.conversation_id
            post_id = session.post_id
            participants = list(session.participants)

            for rating in self.sessions.list_ratings(session_id):
                if RATING_MIN_SCORE <= rating.score <= RATING_MAX_SCORE:
                    self.users.apply_rating(rating.target_user_id, rating.score)

            self.users.increment_sessions_count(participants)

            self.conversations.delete_messages(conversation_id)
            self.notifications.delete_by_conversation(conversation_id)
            self.conversations.delete(conversation_id)

            if post_id is not None:
                for request_id in self.posts.list_join_request_ids(post_id):
                    self.notifications.delete_by_join_request(request_id)
                self.posts.delete_join_requests(post_id)
                self.notifications.delete_by_post(post_id)
                self.posts.delete(post_id)

            if not self.sessions.delete_completed(session_id):
                self.db.rollback()
                logger.warning("Session %s changed state during cleanup; rolled back", session_id)
                return False

            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Cleanup of session %s aborted: %s", session_id, exc)
            raise TransactionConflictError(
                f"Cleanup of session {session_id} was aborted; retry later"
            ) from exc

        logger.info(
            "Cleaned up session %s (conversation %s, post %s)", session_id, conversation_id, post_id
        )
        return True

    # --- Sweep -------------------------------------------------------------------

    def sweep_once(self, now: datetime) -> SweepReport:
        """Apply every due time-driven transition and cleanup.

        Each session is handled and committed on its own; a failure is
        logged and the pass moves on to the next session.
        """
        report = SweepReport()

        for session_id in self.sessions.list_ids_by_status(SESSION_STATUS_IN_PROGRESS):
            self._sweep_session(session_id, now, report)

        for session_id in self.sessions.list_ids_by_status(SESSION_STATUS_PENDING_CONFIRMATION):
            self._sweep_session(session_id, now, report)

        for session_id in self.sessions.list_ids_due_for_cleanup(now):
            try:
                if self.cleanup_session_lifecycle(session_id):
                    report.cleaned += 1
            except Exception:
                self.db.rollback()
                report.failed += 1
                logger.exception("Failed to clean up session %s", session_id)

        self.db.commit()
        return report

    def _sweep_session(self, session_id: int, now: datetime, report: SweepReport) -> None:
        try:
            session = self.sessions.get(session_id)
            if session is None:
                return
            transition = policy.apply_due_transition(session, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            report.failed += 1
            logger.exception("Failed to sweep session %s", session_id)
            return

        if transition is policy.SweepTransition.END_REQUESTED:
            report.end_requested += 1
            logger.info("Session %s auto-closed; awaiting confirmation", session_id)
        elif transition is policy.SweepTransition.COMPLETED:
            report.completed += 1
            logger.info("Session %s confirmation window expired; completed", session_id)
