# src/studymate/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import conversations_router, sessions_router

__all__ = [
    "conversations_router",
    "sessions_router",
]
