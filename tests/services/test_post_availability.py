from datetime import timedelta

import pytest
from sqlalchemy import select

from studymate.models import JoinRequest, Notification, Post
from studymate.models.post import (
    DEFAULT_CLOSE_REASON,
    JOIN_REQUEST_ACCEPTED,
    JOIN_REQUEST_PENDING,
    POST_CATEGORY_PROJECT_TEAM,
    POST_CATEGORY_STUDY_PARTNER,
    POST_STATUS_ACTIVE,
    POST_STATUS_CLOSED,
    POST_STATUS_MATCHED,
)
from studymate.services import PostAvailabilityService


@pytest.fixture()
def make_post(db_session, alice, now):
    def _make(**fields):
        values = {
            "author_id": alice.id,
            "title": "Physics lab partner",
            "category": POST_CATEGORY_STUDY_PARTNER,
            "status": POST_STATUS_ACTIVE,
            "availability_date": now - timedelta(hours=1),
        }
        values.update(fields)
        post = Post(**values)
        db_session.add(post)
        db_session.commit()
        return post

    return _make


def _request(db_session, post, requester, receiver, status):
    request = JoinRequest(
        post_id=post.id, requester_id=requester.id, receiver_id=receiver.id, status=status
    )
    db_session.add(request)
    db_session.commit()
    return request


def test_unmatched_post_is_deleted_with_requests_and_notifications(
    db_session, make_post, alice, bob, now
):
    post = make_post()
    post_id = post.id
    request = _request(db_session, post, bob, alice, JOIN_REQUEST_PENDING)
    db_session.add_all(
        [
            Notification.build(alice.id, "join_request_received", {"request_id": request.id}),
            Notification.build(alice.id, "join_request_received", {"post_id": post_id}),
        ]
    )
    db_session.commit()

    report = PostAvailabilityService(db_session).process_due(now)

    assert (report.deleted, report.closed) == (1, 0)
    db_session.expire_all()
    assert db_session.get(Post, post_id) is None
    assert db_session.execute(select(JoinRequest)).scalars().all() == []
    assert db_session.execute(select(Notification)).scalars().all() == []


def test_matched_post_is_closed(db_session, make_post, now):
    post = make_post(status=POST_STATUS_MATCHED)

    report = PostAvailabilityService(db_session).process_due(now)

    assert report.closed == 1
    assert post.status == POST_STATUS_CLOSED
    assert post.closed_at == now
    assert post.close_reason == DEFAULT_CLOSE_REASON


def test_post_with_accepted_request_is_closed_keeping_reason(
    db_session, make_post, alice, bob, now
):
    post = make_post(close_reason="partner found")
    _request(db_session, post, bob, alice, JOIN_REQUEST_ACCEPTED)

    PostAvailabilityService(db_session).process_due(now)

    assert post.status == POST_STATUS_CLOSED
    assert post.close_reason == "partner found"


def test_project_team_posts_are_always_deleted(db_session, make_post, now):
    post = make_post(category=POST_CATEGORY_PROJECT_TEAM, status=POST_STATUS_MATCHED)
    post_id = post.id

    report = PostAvailabilityService(db_session).process_due(now)

    assert report.deleted == 1
    db_session.expire_all()
    assert db_session.get(Post, post_id) is None


def test_posts_not_yet_due_or_already_closed_are_left_alone(db_session, make_post, now):
    future = make_post(availability_date=now + timedelta(days=1))
    closed = make_post(status=POST_STATUS_CLOSED)
    undated = make_post(availability_date=None)

    report = PostAvailabilityService(db_session).process_due(now)

    assert (report.deleted, report.closed, report.failed) == (0, 0, 0)
    assert future.status == POST_STATUS_ACTIVE
    assert closed.status == POST_STATUS_CLOSED
    assert undated.status == POST_STATUS_ACTIVE
