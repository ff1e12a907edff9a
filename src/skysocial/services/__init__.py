"""Application services orchestrating data access and domain logic."""

from __future__ import annotations

from .actions import (
    PENDING_REF,
    CreatePost,
    CreateReply,
    DeleteRepost,
    FollowProfile,
    LikePost,
    Repost,
    UnfollowProfile,
    UnlikePost,
)
from .auth import AuthService
from .context import ServiceContext
from .feeds import FeedService
from .guardian import SessionEnded, SessionGuardian
from .mutations import Mutation, MutationExecutor

__all__ = [
    "PENDING_REF",
    "AuthService",
    "CreatePost",
    "CreateReply",
    "DeleteRepost",
    "FeedService",
    "FollowProfile",
    "LikePost",
    "Mutation",
    "MutationExecutor",
    "Repost",
    "ServiceContext",
    "SessionEnded",
    "SessionGuardian",
    "UnfollowProfile",
    "UnlikePost",
]
