# src/studymate/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .conversations import router as conversations_router
from .sessions import router as sessions_router

__all__ = [
    "conversations_router",
    "sessions_router",
]
