from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    AUTH_EXPIRED = "auth_expired"
    UNKNOWN = "unknown"

    @property
    def is_retryable(self) -> bool:
        return self in (ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED)


class FetchStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FETCHING_MORE = "fetching-more"
    ERROR = "error"


class GuardianState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    LOGGING_OUT = "logging-out"


class AuthRecovery(str, Enum):
    """Outcome of reporting an error to the session guardian."""

    NOT_AUTH = "not_auth"
    IGNORED = "ignored"
    RETRY_NOW = "retry_now"
    LOGGED_OUT = "logged_out"


class SessionEndReason(str, Enum):
    EXPIRED = "expired"
    SIGNED_OUT = "signed_out"
