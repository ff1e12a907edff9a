"""Concrete write commands.

Optimistic references use the ``PENDING_REF`` placeholder until the server
returns the authoritative record uri. Removals park the removed reference in
a ``*_pending_delete`` marker so the inverse patch can restore it exactly.
A reply parks a per-command token in ``pending_replies`` next to its count
bump, and only a post still holding the token is rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from uuid import uuid4
from typing import Any, ClassVar, Mapping, Optional, Sequence, Tuple

from ..data.cache import ItemPatch, keys
from ..data.cache.keys import QueryKey
from ..data.remote import RemoteGateway
from ..domain import PostView, ProfileView, ValidationError, ViewerState
from .mutations import Mutation

PENDING_REF = "temp"


def reference_from(result: Any) -> Optional[str]:
    """Extract the record uri from a server result, if it carries one."""

    if isinstance(result, Mapping):
        uri = result.get("uri")
    else:
        uri = getattr(result, "uri", None)
    return uri if isinstance(uri, str) and uri else None


def _require(message: str, *values: Any) -> None:
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(message)


def _follow_keys() -> Tuple[QueryKey, ...]:
    return (("profile",), ("followers",), ("following",), keys.SUGGESTED_FOLLOWS)


@dataclass(frozen=True)
class LikePost(Mutation):
    uri: str
    cid: str

    name: ClassVar[str] = "like_post"

    def __post_init__(self) -> None:
        _require("Invalid post URI or CID", self.uri, self.cid)

    def targets(self, key: QueryKey) -> bool:
        return keys.carries_posts(key)

    @property
    def forward(self) -> ItemPatch:
        def like(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.like is not None:
                return post
            return replace(post, like_count=post.like_count + 1, viewer=replace(post.viewer, like=PENDING_REF))

        return ItemPatch(post=like)

    @property
    def inverse(self) -> ItemPatch:
        def unlike(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.like != PENDING_REF:
                return post
            return replace(post, like_count=post.like_count - 1, viewer=replace(post.viewer, like=None))

        return ItemPatch(post=unlike)

    def reconcile(self, result: Any) -> Optional[ItemPatch]:
        reference = reference_from(result)
        if reference is None:
            return None

        def settle(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.like != PENDING_REF:
                return post
            return replace(post, viewer=replace(post.viewer, like=reference))

        return ItemPatch(post=settle)

    async def call(self, gateway: RemoteGateway) -> Any:
        return await gateway.call("like_post", self.uri, self.cid)


@dataclass(frozen=True)
class UnlikePost(Mutation):
    uri: str
    like_uri: str

    name: ClassVar[str] = "unlike_post"

    def __post_init__(self) -> None:
        _require("Invalid like URI", self.uri, self.like_uri)

    def targets(self, key: QueryKey) -> bool:
        return keys.carries_posts(key)

    @property
    def forward(self) -> ItemPatch:
        def unlike(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.like != self.like_uri:
                return post
            viewer = replace(post.viewer, like=None, like_pending_delete=self.like_uri)
            return replace(post, like_count=post.like_count - 1, viewer=viewer)

        return ItemPatch(post=unlike)

    @property
    def inverse(self) -> ItemPatch:
        def restore(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.like_pending_delete != self.like_uri:
                return post
            viewer = replace(post.viewer, like=self.like_uri, like_pending_delete=None)
            return replace(post, like_count=post.like_count + 1, viewer=viewer)

        return ItemPatch(post=restore)

    def reconcile(self, result: Any) -> Optional[ItemPatch]:
        def settle(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.like_pending_delete != self.like_uri:
                return post
            return replace(post, viewer=replace(post.viewer, like_pending_delete=None))

        return ItemPatch(post=settle)

    async def call(self, gateway: RemoteGateway) -> Any:
        return await gateway.call("unlike_post", self.like_uri)


@dataclass(frozen=True)
class Repost(Mutation):
    uri: str
    cid: str

    name: ClassVar[str] = "repost"

    def __post_init__(self) -> None:
        _require("Invalid post URI or CID", self.uri, self.cid)

    def targets(self, key: QueryKey) -> bool:
        return keys.carries_posts(key)

    @property
    def forward(self) -> ItemPatch:
        def repost(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.repost is not None:
                return post
            viewer = replace(post.viewer, repost=PENDING_REF)
            return replace(post, repost_count=post.repost_count + 1, viewer=viewer)

        return ItemPatch(post=repost)

    @property
    def inverse(self) -> ItemPatch:
        def undo(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.repost != PENDING_REF:
                return post
            return replace(post, repost_count=post.repost_count - 1, viewer=replace(post.viewer, repost=None))

        return ItemPatch(post=undo)

    def reconcile(self, result: Any) -> Optional[ItemPatch]:
        reference = reference_from(result)
        if reference is None:
            return None

        def settle(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.repost != PENDING_REF:
                return post
            return replace(post, viewer=replace(post.viewer, repost=reference))

        return ItemPatch(post=settle)

    async def call(self, gateway: RemoteGateway) -> Any:
        return await gateway.call("repost", self.uri, self.cid)


@dataclass(frozen=True)
class DeleteRepost(Mutation):
    uri: str
    repost_uri: str

    name: ClassVar[str] = "delete_repost"

    def __post_init__(self) -> None:
        _require("Invalid repost URI", self.uri, self.repost_uri)

    def targets(self, key: QueryKey) -> bool:
        return keys.carries_posts(key)

    @property
    def forward(self) -> ItemPatch:
        def undo(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.repost != self.repost_uri:
                return post
            viewer = replace(post.viewer, repost=None, repost_pending_delete=self.repost_uri)
            return replace(post, repost_count=post.repost_count - 1, viewer=viewer)

        return ItemPatch(post=undo)

    @property
    def inverse(self) -> ItemPatch:
        def restore(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.repost_pending_delete != self.repost_uri:
                return post
            viewer = replace(post.viewer, repost=self.repost_uri, repost_pending_delete=None)
            return replace(post, repost_count=post.repost_count + 1, viewer=viewer)

        return ItemPatch(post=restore)

    def reconcile(self, result: Any) -> Optional[ItemPatch]:
        def settle(post: PostView) -> PostView:
            if post.uri != self.uri or post.viewer.repost_pending_delete != self.repost_uri:
                return post
            return replace(post, viewer=replace(post.viewer, repost_pending_delete=None))

        return ItemPatch(post=settle)

    async def call(self, gateway: RemoteGateway) -> Any:
        return await gateway.call("delete_repost", self.repost_uri)


@dataclass(frozen=True)
class FollowProfile(Mutation):
    did: str

    name: ClassVar[str] = "follow_profile"

    def __post_init__(self) -> None:
        _require("Invalid DID parameter", self.did)

    def targets(self, key: QueryKey) -> bool:
        return keys.carries_profiles(key)

    @property
    def forward(self) -> ItemPatch:
        def follow(profile: ProfileView) -> ProfileView:
            if profile.did != self.did or profile.viewer.following is not None:
                return profile
            viewer = replace(profile.viewer, following=PENDING_REF)
            return replace(profile, followers_count=profile.followers_count + 1, viewer=viewer)

        return ItemPatch(profile=follow)

    @property
    def inverse(self) -> ItemPatch:
        def undo(profile: ProfileView) -> ProfileView:
            if profile.did != self.did or profile.viewer.following != PENDING_REF:
                return profile
            viewer = replace(profile.viewer, following=None)
            return replace(profile, followers_count=profile.followers_count - 1, viewer=viewer)

        return ItemPatch(profile=undo)

    def reconcile(self, result: Any) -> Optional[ItemPatch]:
        reference = reference_from(result)
        if reference is None:
            return None

        def settle(profile: ProfileView) -> ProfileView:
            if profile.did != self.did or profile.viewer.following != PENDING_REF:
                return profile
            return replace(profile, viewer=replace(profile.viewer, following=reference))

        return ItemPatch(profile=settle)

    async def call(self, gateway: RemoteGateway) -> Any:
        return await gateway.call("follow_profile", self.did.strip())

    def invalidate_on_success(self) -> Tuple[QueryKey, ...]:
        return _follow_keys()


@dataclass(frozen=True)
class UnfollowProfile(Mutation):
    did: str
    follow_uri: str

    name: ClassVar[str] = "unfollow_profile"

    def __post_init__(self) -> None:
        _require("Invalid follow URI", self.did, self.follow_uri)

    def targets(self, key: QueryKey) -> bool:
        return keys.carries_profiles(key)

    @property
    def forward(self) -> ItemPatch:
        def unfollow(profile: ProfileView) -> ProfileView:
            if profile.did != self.did or profile.viewer.following != self.follow_uri:
                return profile
            viewer = replace(profile.viewer, following=None, following_pending_delete=self.follow_uri)
            return replace(profile, followers_count=profile.followers_count - 1, viewer=viewer)

        return ItemPatch(profile=unfollow)

    @property
    def inverse(self) -> ItemPatch:
        def restore(profile: ProfileView) -> ProfileView:
            if profile.did != self.did or profile.viewer.following_pending_delete != self.follow_uri:
                return profile
            viewer = replace(profile.viewer, following=self.follow_uri, following_pending_delete=None)
            return replace(profile, followers_count=profile.followers_count + 1, viewer=viewer)

        return ItemPatch(profile=restore)

    def reconcile(self, result: Any) -> Optional[ItemPatch]:
        def settle(profile: ProfileView) -> ProfileView:
            if profile.did != self.did or profile.viewer.following_pending_delete != self.follow_uri:
                return profile
            return replace(profile, viewer=replace(profile.viewer, following_pending_delete=None))

        return ItemPatch(profile=settle)

    async def call(self, gateway: RemoteGateway) -> Any:
        return await gateway.call("unfollow_profile", self.follow_uri)

    def invalidate_on_success(self) -> Tuple[QueryKey, ...]:
        return _follow_keys()


@dataclass(frozen=True)
class CreatePost(Mutation):
    text: str
    images: Sequence[Mapping[str, Any]] = field(default_factory=tuple)
    author_handle: Optional[str] = None

    name: ClassVar[str] = "create_post"

    def __post_init__(self) -> None:
        _require("Post text cannot be empty", self.text)

    async def call(self, gateway: RemoteGateway) -> Any:
        return await gateway.call("create_post", self.text, tuple(self.images))

    def invalidate_on_success(self) -> Tuple[QueryKey, ...]:
        if self.author_handle:
            return (keys.TIMELINE, keys.author_feed(self.author_handle))
        return (keys.TIMELINE,)


@dataclass(frozen=True)
class CreateReply(Mutation):
    text: str
    parent_uri: str
    parent_cid: str
    root_uri: str
    root_cid: str
    token: str = field(default_factory=lambda: uuid4().hex, compare=False)

    name: ClassVar[str] = "create_reply"

    def __post_init__(self) -> None:
        _require("Reply text cannot be empty", self.text)
        _require("Invalid reply target", self.parent_uri, self.parent_cid, self.root_uri, self.root_cid)

    def targets(self, key: QueryKey) -> bool:
        return keys.carries_posts(key)

    @property
    def forward(self) -> ItemPatch:
        def bump(post: PostView) -> PostView:
            if post.uri != self.parent_uri or self.token in post.viewer.pending_replies:
                return post
            viewer = replace(post.viewer, pending_replies=(*post.viewer.pending_replies, self.token))
            return replace(post, reply_count=post.reply_count + 1, viewer=viewer)

        return ItemPatch(post=bump)

    @property
    def inverse(self) -> ItemPatch:
        def undo(post: PostView) -> PostView:
            if post.uri != self.parent_uri or self.token not in post.viewer.pending_replies:
                return post
            return replace(post, reply_count=post.reply_count - 1, viewer=self._without_token(post))

        return ItemPatch(post=undo)

    def reconcile(self, result: Any) -> Optional[ItemPatch]:
        def settle(post: PostView) -> PostView:
            if post.uri != self.parent_uri or self.token not in post.viewer.pending_replies:
                return post
            return replace(post, viewer=self._without_token(post))

        return ItemPatch(post=settle)

    def _without_token(self, post: PostView) -> ViewerState:
        pending = tuple(token for token in post.viewer.pending_replies if token != self.token)
        return replace(post.viewer, pending_replies=pending)

    async def call(self, gateway: RemoteGateway) -> Any:
        return await gateway.call(
            "create_reply", self.text, self.parent_uri, self.parent_cid, self.root_uri, self.root_cid
        )

    def invalidate_on_success(self) -> Tuple[QueryKey, ...]:
        return (keys.post_thread(self.root_uri), keys.TIMELINE)
