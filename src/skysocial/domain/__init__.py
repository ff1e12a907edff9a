"""Domain models for the social graph as seen by one account."""

from __future__ import annotations

from .enums import AuthRecovery, ErrorKind, FetchStatus, GuardianState, SessionEndReason
from .errors import RemoteCallError, SessionMissingError, SyncError, ValidationError, describe_error
from .models import (
    Author,
    FeedGenerator,
    FeedItem,
    PostView,
    ProfileView,
    ProfileViewer,
    Session,
    ViewerState,
)

__all__ = [
    "AuthRecovery",
    "Author",
    "ErrorKind",
    "FeedGenerator",
    "FeedItem",
    "FetchStatus",
    "GuardianState",
    "PostView",
    "ProfileView",
    "ProfileViewer",
    "RemoteCallError",
    "Session",
    "SessionEndReason",
    "SessionMissingError",
    "SyncError",
    "ValidationError",
    "ViewerState",
    "describe_error",
]
