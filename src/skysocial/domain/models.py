from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise ValueError(f"Unsupported datetime value: {value!r}")


def _count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True, slots=True)
class Session:
    access_jwt: str
    refresh_jwt: str
    handle: str
    did: str
    email: Optional[str] = None
    email_confirmed: Optional[bool] = None
    active: Optional[bool] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Session":
        return cls(
            access_jwt=str(record["accessJwt"]),
            refresh_jwt=str(record["refreshJwt"]),
            handle=str(record["handle"]),
            did=str(record["did"]),
            email=record.get("email"),
            email_confirmed=record.get("emailConfirmed"),
            active=record.get("active"),
            expires_at=_parse_datetime(record.get("expiresAt")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "accessJwt": self.access_jwt,
            "refreshJwt": self.refresh_jwt,
            "handle": self.handle,
            "did": self.did,
            "email": self.email,
            "emailConfirmed": self.email_confirmed,
            "active": self.active,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True, slots=True)
class Author:
    did: str
    handle: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Author":
        return cls(
            did=str(record["did"]),
            handle=str(record["handle"]),
            display_name=record.get("displayName"),
            avatar=record.get("avatar"),
        )


@dataclass(frozen=True, slots=True)
class ViewerState:
    """This account's relationship to a post.

    ``like``/``repost`` hold the account's record reference; ``None`` means the
    post is not liked/reposted by the account. The ``*_pending_delete`` markers
    remember a reference removed optimistically until the server confirms.
    ``pending_replies`` holds one token per optimistic reply counted in
    ``reply_count`` but not yet confirmed.
    """

    like: Optional[str] = None
    repost: Optional[str] = None
    like_pending_delete: Optional[str] = None
    repost_pending_delete: Optional[str] = None
    pending_replies: Tuple[str, ...] = ()

    @classmethod
    def from_record(cls, record: Optional[Mapping[str, Any]]) -> "ViewerState":
        record = record or {}
        return cls(like=record.get("like"), repost=record.get("repost"))


@dataclass(frozen=True, slots=True)
class PostView:
    uri: str
    cid: str
    author: Author
    text: str = ""
    created_at: Optional[datetime] = None
    like_count: int = 0
    repost_count: int = 0
    reply_count: int = 0
    viewer: ViewerState = ViewerState()

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PostView":
        body = record.get("record") or {}
        return cls(
            uri=str(record["uri"]),
            cid=str(record["cid"]),
            author=Author.from_record(record["author"]),
            text=str(body.get("text") or ""),
            created_at=_parse_datetime(body.get("createdAt") or record.get("indexedAt")),
            like_count=_count(record.get("likeCount")),
            repost_count=_count(record.get("repostCount")),
            reply_count=_count(record.get("replyCount")),
            viewer=ViewerState.from_record(record.get("viewer")),
        )


@dataclass(frozen=True, slots=True)
class FeedItem:
    post: PostView
    reply_parent: Optional[PostView] = None
    reposted_by: Optional[Author] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "FeedItem":
        reply = record.get("reply") or {}
        parent = reply.get("parent")
        reason = record.get("reason") or {}
        reposted_by = reason.get("by") if "repost" in str(reason.get("$type", "")) else None
        return cls(
            post=PostView.from_record(record["post"]),
            reply_parent=PostView.from_record(parent) if parent and "uri" in parent else None,
            reposted_by=Author.from_record(reposted_by) if reposted_by else None,
        )


@dataclass(frozen=True, slots=True)
class ProfileViewer:
    following: Optional[str] = None
    followed_by: Optional[str] = None
    following_pending_delete: Optional[str] = None

    @classmethod
    def from_record(cls, record: Optional[Mapping[str, Any]]) -> "ProfileViewer":
        record = record or {}
        return cls(following=record.get("following"), followed_by=record.get("followedBy"))


@dataclass(frozen=True, slots=True)
class ProfileView:
    did: str
    handle: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    avatar: Optional[str] = None
    banner: Optional[str] = None
    followers_count: int = 0
    follows_count: int = 0
    posts_count: int = 0
    viewer: ProfileViewer = ProfileViewer()

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ProfileView":
        return cls(
            did=str(record["did"]),
            handle=str(record["handle"]),
            display_name=record.get("displayName"),
            description=record.get("description"),
            avatar=record.get("avatar"),
            banner=record.get("banner"),
            followers_count=_count(record.get("followersCount")),
            follows_count=_count(record.get("followsCount")),
            posts_count=_count(record.get("postsCount")),
            viewer=ProfileViewer.from_record(record.get("viewer")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "did": self.did,
            "handle": self.handle,
            "displayName": self.display_name,
            "description": self.description,
            "avatar": self.avatar,
            "banner": self.banner,
            "followersCount": self.followers_count,
            "followsCount": self.follows_count,
            "postsCount": self.posts_count,
            "viewer": {"following": self.viewer.following, "followedBy": self.viewer.followed_by},
        }


@dataclass(frozen=True, slots=True)
class FeedGenerator:
    uri: str
    cid: str
    did: str
    display_name: str
    description: Optional[str] = None
    avatar: Optional[str] = None
    like_count: int = 0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "FeedGenerator":
        return cls(
            uri=str(record["uri"]),
            cid=str(record["cid"]),
            did=str(record["did"]),
            display_name=str(record.get("displayName") or ""),
            description=record.get("description"),
            avatar=record.get("avatar"),
            like_count=_count(record.get("likeCount")),
        )
