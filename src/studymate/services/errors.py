"""Error taxonomy shared by the lifecycle services.

Callers only need to tell the kinds apart; the HTTP layer maps them to
status codes.
"""

from __future__ import annotations


class LifecycleError(Exception):
    """Base class for expected failures raised by the services."""

    retryable = False

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(LifecycleError):
    """The requested entity id does not resolve."""


class ForbiddenError(LifecycleError):
    """The acting user is not a participant."""


class InvalidStateError(LifecycleError):
    """The operation is not valid for the entity's current state."""


class ValidationError(LifecycleError):
    """The input is malformed (bad score, empty message text, bad cursor)."""


class TransactionConflictError(LifecycleError):
    """The cleanup transaction was aborted; nothing was applied."""

    retryable = True
