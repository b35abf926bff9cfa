# src/studymate/api/v1/endpoints/sessions.py
"""Study session lifecycle endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Body, status

from studymate.models.study_session import StudySession
from studymate.schemas import RatingSubmit, SessionActionResponse, SessionResponse
from studymate.services import NotFoundError

from ..dependencies import (
    ConversationServiceDep,
    CurrentUserIdDep,
    NowDep,
    SessionServiceDep,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _action_result(session: StudySession | None) -> SessionActionResponse:
    if session is None:
        return SessionActionResponse(session=None, cleaned_up=True)
    return SessionActionResponse(session=SessionResponse.model_validate(session))


@router.post(
    "/by-conversation/{conversation_id}",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_session(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    conversations: ConversationServiceDep,
    sessions: SessionServiceDep,
    post_id: int | None = Body(None, embed=True),
) -> SessionResponse:
    """Open a study session for a conversation the user takes part in."""
    conversation = conversations.ensure_conversation_lifetime(
        conversation_id, current_user_id, now
    )
    session = sessions.start_session(conversation.id, now, post_id=post_id)
    return SessionResponse.model_validate(session)


@router.get("/by-conversation/{conversation_id}", response_model=SessionResponse)
def get_session_by_conversation(
    conversation_id: int,
    current_user_id: CurrentUserIdDep,
    sessions: SessionServiceDep,
) -> SessionResponse:
    """Return the session attached to a conversation."""
    session = sessions.get_by_conversation_id(conversation_id, current_user_id)
    if session is None:
        raise NotFoundError("Session not found")
    return SessionResponse.model_validate(session)


@router.post("/{session_id}/end-request", response_model=SessionResponse)
def request_end(
    session_id: int,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    sessions: SessionServiceDep,
) -> SessionResponse:
    """Ask to end a session."""
    session = sessions.request_end(session_id, current_user_id, now)
    return SessionResponse.model_validate(session)


@router.post("/{session_id}/confirm-end", response_model=SessionActionResponse)
def confirm_end(
    session_id: int,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    sessions: SessionServiceDep,
) -> SessionActionResponse:
    """Confirm the end of a session."""
    return _action_result(sessions.confirm_end(session_id, current_user_id, now))


@router.post("/{session_id}/rate", response_model=SessionActionResponse)
def rate(
    session_id: int,
    payload: RatingSubmit,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    sessions: SessionServiceDep,
) -> SessionActionResponse:
    """Rate the other participant of a session."""
    session = sessions.get_for_participant(session_id, current_user_id)
    target_id = (
        session.participant_b_id
        if session.participant_a_id == current_user_id
        else session.participant_a_id
    )
    result = sessions.submit_rating(
        session_id,
        current_user_id,
        target_id,
        payload.score,
        payload.review,
        now,
    )
    return _action_result(result)


@router.post("/{session_id}/cleanup", response_model=SessionActionResponse)
def cleanup(
    session_id: int,
    current_user_id: CurrentUserIdDep,
    now: NowDep,
    sessions: SessionServiceDep,
) -> SessionActionResponse:
    """Tear down a completed session whose rating window has ended."""
    cleaned = sessions.run_cleanup_if_due(session_id, now, actor_id=current_user_id)
    if cleaned:
        return SessionActionResponse(session=None, cleaned_up=True)
    return _action_result(sessions.sessions.get(session_id))
