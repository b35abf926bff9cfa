"""Pure lifecycle rules for study sessions and conversations.

Nothing in this module touches the database. Functions read the current
state of a session or conversation, mutate it in place and report what
happened; they never raise for expected business conditions. The service
layer decides which outcomes are errors for the caller.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta

from studymate.db.time import as_utc
from studymate.models.conversation import Conversation
from studymate.models.study_session import (
    MARK_CONFIRMED,
    SESSION_STATUS_COMPLETED,
    SESSION_STATUS_IN_PROGRESS,
    SESSION_STATUS_PENDING_CONFIRMATION,
    StudySession,
)

SESSION_ACTIVE = timedelta(days=7)
SESSION_END_CONFIRM = timedelta(hours=48)
SESSION_RATING = timedelta(hours=48)

CONVERSATION_INITIAL_TTL = timedelta(days=7)
CONVERSATION_EXTENSION = timedelta(days=7)
CONVERSATION_MAX_TTL = timedelta(days=30)
CONVERSATION_EXTENSION_WINDOW = timedelta(days=2)


class SweepTransition(enum.StrEnum):
    """Forced transition applied to a session by the sweeper."""

    END_REQUESTED = "end_requested"
    COMPLETED = "completed"


class ExtensionOutcome(enum.StrEnum):
    """Result of asking to extend a conversation's lifetime."""

    EXTENDED = "extended"
    OUTSIDE_WINDOW = "outside_window"
    AT_MAXIMUM = "at_maximum"


def is_due(deadline: datetime | None, now: datetime) -> bool:
    """Return True when ``deadline`` is set and has been reached."""
    deadline = as_utc(deadline)
    return deadline is not None and deadline <= as_utc(now)


# --- Sessions -------------------------------------------------------------------


def initialize(session: StudySession, now: datetime) -> bool:
    """Fill in the start time and first auto-close deadline if missing.

    Safe to call on every sweep pass. Returns True if anything changed.
    """
    changed = False
    if session.auto_close_at is None:
        session.auto_close_at = now + SESSION_ACTIVE
        changed = True
    if session.started_at is None:
        session.started_at = now
        changed = True
    return changed


def request_end(session: StudySession, requester_id: int | None, now: datetime) -> StudySession:
    """Move a session into the confirmation window.

    ``requester_id`` is None for the sweeper's forced end request, in which
    case the previous requester is kept. The first request fixes the
    request timestamp; every call recomputes the deadline from ``now``.
    """
    session.status = SESSION_STATUS_PENDING_CONFIRMATION
    if requester_id is not None:
        session.ending_requested_by = requester_id
    if session.ending_requested_at is None:
        session.ending_requested_at = now
    session.ended_at = None
    session.reset_marks(MARK_CONFIRMED, [requester_id] if requester_id is not None else [])

    deadline = now + SESSION_END_CONFIRM
    session.completion_deadline_at = deadline
    session.auto_close_at = deadline
    return session


def mark_completed(session: StudySession, now: datetime) -> StudySession:
    """Close a session and open its rating window."""
    session.status = SESSION_STATUS_COMPLETED
    if session.ended_at is None:
        session.ended_at = now
    deadline = now + SESSION_RATING
    session.completion_deadline_at = deadline
    session.auto_close_at = deadline
    return session


def everyone(session: StudySession, members: set[int]) -> bool:
    """Return True when ``members`` contains both participants."""
    return set(session.participants) <= members


def should_complete(session: StudySession, now: datetime) -> bool:
    """Return True if a pending session may be completed right now.

    Mutual confirmation, both participants finishing their rating step, or
    an expired confirmation window are each sufficient.
    """
    if session.status != SESSION_STATUS_PENDING_CONFIRMATION:
        return False
    return (
        everyone(session, session.confirmed_by)
        or everyone(session, session.completed_by)
        or is_due(session.completion_deadline_at, now)
    )


def auto_close_due(session: StudySession, now: datetime) -> bool:
    """Return True when an in-progress session has outlived its active window."""
    return session.status == SESSION_STATUS_IN_PROGRESS and is_due(session.auto_close_at, now)


def confirmation_expired(session: StudySession, now: datetime) -> bool:
    """Return True when a pending session's confirmation window has closed."""
    return (
        session.status == SESSION_STATUS_PENDING_CONFIRMATION
        and is_due(session.completion_deadline_at, now)
    )


def cleanup_due(session: StudySession, now: datetime) -> bool:
    """Return True when a completed session's rating window has closed."""
    return session.status == SESSION_STATUS_COMPLETED and is_due(
        session.completion_deadline_at, now
    )


def apply_due_transition(session: StudySession, now: datetime) -> SweepTransition | None:
    """Apply at most one time-driven transition to ``session``.

    A session whose active window lapsed is moved to pending_confirmation
    first; it only becomes completed on a later pass, once the new
    confirmation deadline has also lapsed.
    """
    if session.status == SESSION_STATUS_IN_PROGRESS:
        initialize(session, now)
        if auto_close_due(session, now):
            request_end(session, None, now)
            return SweepTransition.END_REQUESTED
        return None
    if confirmation_expired(session, now):
        mark_completed(session, now)
        return SweepTransition.COMPLETED
    return None


# --- Conversations --------------------------------------------------------------


def ensure_lifetime(conversation: Conversation, now: datetime) -> bool:
    """Back-fill the lifetime fields of a conversation that predates them.

    ``max_expires_at`` is fixed here and never moves afterwards. Returns
    True if anything changed.
    """
    if (
        conversation.first_opened_at is not None
        and conversation.expires_at is not None
        and conversation.max_expires_at is not None
    ):
        return False

    first_opened_at = as_utc(conversation.first_opened_at) or now
    max_expires_at = as_utc(conversation.max_expires_at) or first_opened_at + CONVERSATION_MAX_TTL
    expires_at = as_utc(conversation.expires_at) or first_opened_at + CONVERSATION_INITIAL_TTL

    conversation.first_opened_at = first_opened_at
    conversation.max_expires_at = max_expires_at
    conversation.expires_at = min(expires_at, max_expires_at)
    return True


def extend(conversation: Conversation, now: datetime) -> ExtensionOutcome:
    """Push ``expires_at`` out by one extension, capped at ``max_expires_at``.

    Only allowed during the last days before expiry.
    """
    ensure_lifetime(conversation, now)
    expires_at = as_utc(conversation.expires_at)
    max_expires_at = as_utc(conversation.max_expires_at)
    if expires_at is None or max_expires_at is None:
        return ExtensionOutcome.OUTSIDE_WINDOW

    if expires_at - as_utc(now) > CONVERSATION_EXTENSION_WINDOW:
        return ExtensionOutcome.OUTSIDE_WINDOW

    next_expires_at = min(expires_at + CONVERSATION_EXTENSION, max_expires_at)
    if next_expires_at == expires_at:
        return ExtensionOutcome.AT_MAXIMUM

    conversation.expires_at = next_expires_at
    return ExtensionOutcome.EXTENDED


def conversation_expired(conversation: Conversation, now: datetime) -> bool:
    """Return True when the conversation is due for deletion."""
    return is_due(conversation.expires_at, now)
