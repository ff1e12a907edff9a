"""Error taxonomy shared by the read and write paths."""

from __future__ import annotations

from typing import Optional

from .enums import ErrorKind


class SyncError(RuntimeError):
    """Base class for errors raised by the sync core."""

    kind: Optional[ErrorKind] = None

    def __init__(self, message: str, *, status: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class ValidationError(SyncError):
    """Raised before any network call when required input is missing or malformed."""

    kind = ErrorKind.VALIDATION


class RemoteCallError(SyncError):
    """Raised when the remote client reports ``success: false`` for a call."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, status=status, code=code)
        self.operation = operation

    def __repr__(self) -> str:
        return f"RemoteCallError(operation={self.operation!r}, status={self.status!r}, message={self.message!r})"


class SessionMissingError(SyncError):
    """Raised when a session-specific action is attempted without a session."""


_STATUS_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication failed. Please log in again.",
    403: "Access denied. You don't have permission to perform this action.",
    404: "Content not found. It may have been deleted or moved.",
    408: "Request timeout. Please check your connection and try again.",
    429: "Too many requests. Please wait a moment and try again.",
    500: "Server error. The service is temporarily unavailable.",
    502: "Service temporarily unavailable. Please try again in a few moments.",
    503: "Service temporarily unavailable. Please try again in a few moments.",
    504: "Service temporarily unavailable. Please try again in a few moments.",
}

_MESSAGE_HINTS = (
    ("upstreamfailure", "Service temporarily unavailable. Please try again in a few moments."),
    ("network", "Network error. Please check your internet connection."),
    ("timeout", "Request timed out. Please try again."),
    ("authentication", "Authentication error. Please log in again."),
    ("profile not found", "Profile not found. The user may not exist or may have changed their handle."),
    ("actor not found", "Profile not found. The user may not exist or may have changed their handle."),
    ("invalid request", "Invalid request. Please check your input and try again."),
)


def describe_error(error: BaseException) -> str:
    """Return a message suitable for a generic failure notice."""

    status = getattr(error, "status", None)
    if isinstance(status, int):
        if status in _STATUS_MESSAGES:
            return _STATUS_MESSAGES[status]
        if status >= 500:
            return "Server error. Please try again later."

    message = str(error)
    lowered = message.lower()
    for needle, friendly in _MESSAGE_HINTS:
        if needle in lowered:
            return friendly
    return message or "An unexpected error occurred. Please try again."
