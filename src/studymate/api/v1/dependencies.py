"""Shared API dependencies for authentication and common functionality."""

from datetime import datetime
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from studymate.core.security import decode_subject
from studymate.db.session import get_db
from studymate.db.time import utcnow
from studymate.models import User
from studymate.services import ConversationService, SessionLifecycleService

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> int:
    """Get the authenticated user's id from the JWT bearer token.

    Raises:
        HTTPException: If the token is invalid or the user does not exist.
    """
    user_id = decode_subject(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    if db.get(User, user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user_id


def get_now() -> datetime:
    """Return the request's notion of the current instant."""
    return utcnow()


def get_session_service(db: SessionDep) -> SessionLifecycleService:
    return SessionLifecycleService(db)


def get_conversation_service(db: SessionDep) -> ConversationService:
    return ConversationService(db)


# Type aliases for common dependencies
CurrentUserIdDep = Annotated[int, Depends(get_current_user_id)]
NowDep = Annotated[datetime, Depends(get_now)]
SessionServiceDep = Annotated[SessionLifecycleService, Depends(get_session_service)]
ConversationServiceDep = Annotated[ConversationService, Depends(get_conversation_service)]
