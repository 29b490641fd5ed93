"""Error types shared by the client, services and routes."""

from __future__ import annotations


class ConsoleError(Exception):
    """Base class for all console errors."""


class ValidationError(ConsoleError, ValueError):
    """Input rejected before any request reached the backend."""


class BackendError(ConsoleError):
    """The reconciliation backend answered with a non-success status.

    ``status_code`` is ``None`` when the request never got a response
    (connection refused, timeout, DNS failure).
    """

    def __init__(self, message: str, status_code: int | None = None, detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class AuthenticationError(BackendError):
    """Credentials were rejected and could not be refreshed."""


def invalid_id(kind: str, value: object) -> str:
    """Return message for an id that is not an integer."""
    return f"Invalid {kind} ID: {value!r}"


def comment_required(resolving: bool) -> str:
    """Return message for a blank resolution or comment text."""
    if resolving:
        return "Please provide a resolution comment."
    return "Please provide a comment."
