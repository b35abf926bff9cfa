from datetime import UTC, datetime, timedelta

import pytest

from studymate.models import Conversation, StudySession
from studymate.models.study_session import (
    MARK_COMPLETED,
    MARK_CONFIRMED,
    SESSION_STATUS_COMPLETED,
    SESSION_STATUS_IN_PROGRESS,
    SESSION_STATUS_PENDING_CONFIRMATION,
    StudySessionMark,
)
from studymate.services import lifecycle_policy as policy

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _session(**fields) -> StudySession:
    values = {
        "conversation_id": 1,
        "participant_a_id": 1,
        "participant_b_id": 2,
        "status": SESSION_STATUS_IN_PROGRESS,
    }
    values.update(fields)
    return StudySession(**values)


def _mark(session: StudySession, user_id: int, kind: str) -> None:
    session.marks.append(StudySessionMark(user_id=user_id, kind=kind))


def test_initialize_sets_start_and_auto_close_once():
    session = _session()

    assert policy.initialize(session, T0) is True
    assert session.started_at == T0
    assert session.auto_close_at == T0 + timedelta(days=7)

    assert policy.initialize(session, T0 + timedelta(days=1)) is False
    assert session.started_at == T0


def test_request_end_opens_confirmation_window():
    session = _session()
    policy.initialize(session, T0)

    policy.request_end(session, 1, T0 + timedelta(hours=1))

    assert session.status == SESSION_STATUS_PENDING_CONFIRMATION
    assert session.ending_requested_by == 1
    assert session.ending_requested_at == T0 + timedelta(hours=1)
    assert session.completion_deadline_at == T0 + timedelta(hours=49)
    assert session.auto_close_at == session.completion_deadline_at
    assert session.confirmed_by == {1}


def test_repeated_request_end_keeps_first_timestamp_and_resets_confirmations():
    session = _session()
    policy.request_end(session, 1, T0)
    _mark(session, 2, MARK_CONFIRMED)

    policy.request_end(session, 2, T0 + timedelta(hours=10))

    assert session.ending_requested_at == T0
    assert session.ending_requested_by == 2
    assert session.confirmed_by == {2}
    assert session.completion_deadline_at == T0 + timedelta(hours=58)


def test_forced_end_request_keeps_requester_and_clears_confirmations():
    session = _session()
    policy.request_end(session, 1, T0)

    policy.request_end(session, None, T0 + timedelta(hours=1))

    assert session.ending_requested_by == 1
    assert session.confirmed_by == set()


def test_should_complete_on_mutual_confirmation():
    session = _session()
    policy.request_end(session, 1, T0)
    assert policy.should_complete(session, T0) is False

    _mark(session, 2, MARK_CONFIRMED)

    assert policy.should_complete(session, T0) is True


def test_should_complete_when_both_finished_their_step():
    session = _session()
    policy.request_end(session, 1, T0)
    session.reset_marks(MARK_CONFIRMED, [])
    _mark(session, 1, MARK_COMPLETED)
    _mark(session, 2, MARK_COMPLETED)

    assert policy.should_complete(session, T0) is True


def test_should_complete_after_deadline():
    session = _session()
    policy.request_end(session, 1, T0)

    assert policy.should_complete(session, T0 + timedelta(hours=47)) is False
    assert policy.should_complete(session, T0 + timedelta(hours=48)) is True


def test_should_complete_only_for_pending_sessions():
    session = _session(status=SESSION_STATUS_COMPLETED)
    _mark(session, 1, MARK_CONFIRMED)
    _mark(session, 2, MARK_CONFIRMED)

    assert policy.should_complete(session, T0) is False


def test_mark_completed_opens_rating_window_and_keeps_end_time():
    session = _session(status=SESSION_STATUS_PENDING_CONFIRMATION, ended_at=T0)

    policy.mark_completed(session, T0 + timedelta(hours=2))

    assert session.status == SESSION_STATUS_COMPLETED
    assert session.ended_at == T0
    assert session.completion_deadline_at == T0 + timedelta(hours=50)
    assert session.auto_close_at == session.completion_deadline_at


def test_apply_due_transition_never_skips_pending_confirmation():
    session = _session()
    policy.initialize(session, T0)
    late = T0 + timedelta(days=30)

    assert policy.apply_due_transition(session, late) is policy.SweepTransition.END_REQUESTED
    assert session.status == SESSION_STATUS_PENDING_CONFIRMATION

    # The fresh confirmation deadline has not passed yet on the same pass.
    assert policy.apply_due_transition(session, late) is None

    later = late + timedelta(hours=48)
    assert policy.apply_due_transition(session, later) is policy.SweepTransition.COMPLETED
    assert session.status == SESSION_STATUS_COMPLETED


def test_apply_due_transition_initializes_sessions_missing_deadlines():
    session = _session()

    assert policy.apply_due_transition(session, T0) is None
    assert session.auto_close_at == T0 + timedelta(days=7)


def test_cleanup_due_only_after_rating_window():
    session = _session(status=SESSION_STATUS_PENDING_CONFIRMATION)
    policy.mark_completed(session, T0)

    assert policy.cleanup_due(session, T0 + timedelta(hours=47)) is False
    assert policy.cleanup_due(session, T0 + timedelta(hours=48)) is True


def test_is_due_handles_naive_database_values():
    naive = T0.replace(tzinfo=None)

    assert policy.is_due(naive, T0) is True
    assert policy.is_due(None, T0) is False


def _conversation() -> Conversation:
    return Conversation(type="direct", participant_a_id=1, participant_b_id=2, participants_key="1:2")


def test_ensure_lifetime_backfills_missing_fields():
    conversation = _conversation()

    assert policy.ensure_lifetime(conversation, T0) is True
    assert conversation.first_opened_at == T0
    assert conversation.expires_at == T0 + timedelta(days=7)
    assert conversation.max_expires_at == T0 + timedelta(days=30)

    assert policy.ensure_lifetime(conversation, T0 + timedelta(days=1)) is False


def test_ensure_lifetime_keeps_existing_expiry_within_maximum():
    conversation = _conversation()
    conversation.first_opened_at = T0
    conversation.expires_at = T0 + timedelta(days=40)

    policy.ensure_lifetime(conversation, T0 + timedelta(days=3))

    assert conversation.max_expires_at == T0 + timedelta(days=30)
    assert conversation.expires_at == T0 + timedelta(days=30)


@pytest.mark.parametrize(
    ("elapsed", "expected"),
    [
        (timedelta(days=4), policy.ExtensionOutcome.OUTSIDE_WINDOW),
        (timedelta(days=6), policy.ExtensionOutcome.EXTENDED),
    ],
)
def test_extend_window(elapsed, expected):
    conversation = _conversation()
    policy.ensure_lifetime(conversation, T0)

    assert policy.extend(conversation, T0 + elapsed) is expected


def test_extend_converges_to_maximum():
    conversation = _conversation()
    policy.ensure_lifetime(conversation, T0)

    outcomes = []
    for _ in range(5):
        expires_at = conversation.expires_at
        outcomes.append(policy.extend(conversation, expires_at - timedelta(days=1)))

    assert outcomes[:4] == [policy.ExtensionOutcome.EXTENDED] * 4
    assert outcomes[4] is policy.ExtensionOutcome.AT_MAXIMUM
    assert conversation.expires_at == T0 + timedelta(days=30)
