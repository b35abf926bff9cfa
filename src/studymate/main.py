# src/studymate/main.py
"""Main entry point for the Studymate application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studymate import __version__
from studymate.api.v1 import conversations_router, sessions_router
from studymate.core.settings import settings
from studymate.services import (
    ForbiddenError,
    InvalidStateError,
    LifecycleError,
    LifecycleSweeper,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LifecycleError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    TransactionConflictError: status.HTTP_409_CONFLICT,
}

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Study partner matching: conversations and study session lifecycle",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(sessions_router, prefix="/api/v1")
app.include_router(conversations_router, prefix="/api/v1")


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """Translate service errors into HTTP responses."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, TransactionConflictError):
        logger.warning("%s %s aborted: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.detail, "retryable": exc.retryable},
    )


@app.on_event("startup")
async def on_startup() -> None:
    if settings.lifecycle_sweep_enabled:
        sweeper = LifecycleSweeper()
        await sweeper.start()
        app.state.lifecycle_sweeper = sweeper
    else:
        app.state.lifecycle_sweeper = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    sweeper: LifecycleSweeper | None = getattr(app.state, "lifecycle_sweeper", None)
    if sweeper:
        await sweeper.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("studymate.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
