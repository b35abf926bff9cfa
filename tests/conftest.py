# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ["LIFECYCLE_SWEEP_ENABLED"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite://")

from studymate.api.v1.dependencies import get_now
from studymate.core.security import create_access_token
from studymate.db.session import Base
from studymate.db.session import get_db as app_get_session
from studymate.main import app as fastapi_app
from studymate.models import Conversation, Post, StudySession, User
from studymate.models.post import POST_CATEGORY_STUDY_PARTNER
from studymate.services import ConversationService, SessionLifecycleService

TEST_DB_URL = "sqlite://"
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

_USERNAME_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Callable[[], Session]:
    """Return a factory for independent sessions on the test engine."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(engine: Engine, session_factory: Callable[[], Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so every test starts from empty tables.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def now() -> datetime:
    """A fixed instant that tests advance explicitly."""
    return T0


@pytest.fixture()
def freeze_api_clock(app: FastAPI) -> Iterator[Callable[[datetime], None]]:
    """Pin the instant endpoints see; call the returned setter to move it."""
    current = {"now": T0}
    app.dependency_overrides[get_now] = lambda: current["now"]

    def _set(value: datetime) -> None:
        current["now"] = value

    try:
        yield _set
    finally:
        app.dependency_overrides.pop(get_now, None)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory creating persisted users."""

    def _make(username: str | None = None, **fields: object) -> User:
        user = User(username=username or f"user{next(_USERNAME_COUNTER)}", **fields)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("carol")


@pytest.fixture()
def study_post(db_session: Session, alice: User) -> Post:
    """A study partner post authored by alice."""
    post = Post(
        author_id=alice.id,
        title="Linear algebra revision",
        category=POST_CATEGORY_STUDY_PARTNER,
        role="partner",
        subject_codes=["MATH201"],
        subject_names=["Linear Algebra"],
    )
    db_session.add(post)
    db_session.commit()
    return post


@pytest.fixture()
def conversation(db_session: Session, alice: User, bob: User, now: datetime) -> Conversation:
    """A direct conversation between alice and bob opened at ``now``."""
    return ConversationService(db_session).create_or_get_conversation(
        alice.id, bob.id, "direct", now
    )


@pytest.fixture()
def post_conversation(
    db_session: Session, alice: User, bob: User, study_post: Post, now: datetime
) -> Conversation:
    """A post conversation between alice and bob about ``study_post``."""
    return ConversationService(db_session).create_or_get_conversation(
        bob.id, alice.id, "post", now, post_id=study_post.id
    )


@pytest.fixture()
def study_session(
    db_session: Session, post_conversation: Conversation, study_post: Post, now: datetime
) -> StudySession:
    """An in-progress session on ``post_conversation`` started at ``now``."""
    return SessionLifecycleService(db_session).start_session(
        post_conversation.id, now, post_id=study_post.id
    )


def auth_headers_for(user: User) -> dict[str, str]:
    token = create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def alice_headers(alice: User) -> dict[str, str]:
    """Return authorization headers for alice."""
    return auth_headers_for(alice)


@pytest.fixture()
def bob_headers(bob: User) -> dict[str, str]:
    """Return authorization headers for bob."""
    return auth_headers_for(bob)


@pytest.fixture()
def carol_headers(carol: User) -> dict[str, str]:
    """Return authorization headers for carol."""
    return auth_headers_for(carol)
