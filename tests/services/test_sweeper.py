import asyncio
from datetime import timedelta

import pytest

from studymate.core.settings import settings
from studymate.models import Conversation, Post, StudySession
from studymate.models.post import POST_STATUS_ACTIVE
from studymate.models.study_session import SESSION_STATUS_PENDING_CONFIRMATION
from studymate.services.sweeper import SWEEP_LOCK_NAME, LifecycleSweeper, TickReport


@pytest.fixture()
def lock_client(mocker):
    client = mocker.MagicMock()
    client.lock.return_value.acquire.return_value = True
    return client


def test_run_tick_sweeps_posts_conversations_and_sessions(
    db_session, session_factory, alice, conversation, study_session, now
):
    due_post = Post(
        author_id=alice.id,
        title="Chemistry",
        category="study_partner",
        status=POST_STATUS_ACTIVE,
        availability_date=now,
    )
    db_session.add(due_post)
    db_session.commit()
    post_id = due_post.id
    conversation_id = conversation.id
    session_id = study_session.id

    sweeper = LifecycleSweeper(
        session_factory=session_factory, clock=lambda: now + timedelta(days=7)
    )
    report = sweeper.run_tick()

    assert report.skipped is False
    assert report.failed_steps == []
    assert report.posts.deleted == 1
    assert report.conversations_deleted == 2
    assert report.sessions.end_requested == 1

    db_session.expire_all()
    assert db_session.get(Post, post_id) is None
    assert db_session.get(Conversation, conversation_id) is None
    assert db_session.get(StudySession, session_id).status == SESSION_STATUS_PENDING_CONFIRMATION


def test_run_tick_isolates_failing_steps(session_factory, now, mocker):
    mocker.patch(
        "studymate.services.sweeper.PostAvailabilityService.process_due",
        side_effect=RuntimeError("boom"),
    )
    sweep_sessions = mocker.patch(
        "studymate.services.sweeper.SessionLifecycleService.sweep_once",
        return_value=mocker.MagicMock(),
    )

    report = LifecycleSweeper(session_factory=session_factory, clock=lambda: now).run_tick()

    assert report.failed_steps == ["posts"]
    sweep_sessions.assert_called_once_with(now)


def test_run_tick_skips_when_lock_is_held_elsewhere(monkeypatch, lock_client, mocker):
    monkeypatch.setattr(settings, "lifecycle_sweep_lock_enabled", True)
    lock_client.lock.return_value.acquire.return_value = False
    factory = mocker.MagicMock()

    report = LifecycleSweeper(session_factory=factory, lock_client=lock_client).run_tick()

    assert report.skipped is True
    factory.assert_not_called()
    lock_client.lock.assert_called_once_with(
        SWEEP_LOCK_NAME,
        timeout=settings.lifecycle_sweep_lock_ttl_seconds,
        blocking=False,
    )


def test_run_tick_releases_lock(monkeypatch, lock_client, session_factory, now):
    monkeypatch.setattr(settings, "lifecycle_sweep_lock_enabled", True)

    report = LifecycleSweeper(
        session_factory=session_factory, clock=lambda: now, lock_client=lock_client
    ).run_tick()

    assert report.skipped is False
    lock_client.lock.return_value.release.assert_called_once()


@pytest.mark.asyncio
async def test_start_and_stop_run_ticks_in_background(mocker):
    sweeper = LifecycleSweeper(interval_seconds=0.1)
    run_tick = mocker.patch.object(sweeper, "run_tick", return_value=TickReport())

    await sweeper.start()
    assert sweeper.running is True
    await asyncio.sleep(0.25)
    await sweeper.stop()

    assert sweeper.running is False
    assert run_tick.call_count >= 2


@pytest.mark.asyncio
async def test_failing_tick_does_not_stop_the_loop(mocker):
    sweeper = LifecycleSweeper(interval_seconds=0.1)
    run_tick = mocker.patch.object(
        sweeper, "run_tick", side_effect=[RuntimeError("boom"), TickReport(), TickReport()]
    )

    await sweeper.start()
    await asyncio.sleep(0.25)
    await sweeper.stop()

    assert run_tick.call_count >= 2


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    sweeper = LifecycleSweeper()

    await sweeper.stop()

    assert sweeper.running is False
