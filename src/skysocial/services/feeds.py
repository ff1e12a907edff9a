from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Mapping, Optional

from ..data.cache import FeedGeneratorPage, Page, ProfilePage, QuerySnapshot, SearchPage, TimelinePage, keys
from ..data.cache.keys import QueryKey
from ..domain import FeedItem, PostView, ProfileView, ValidationError

if TYPE_CHECKING:
    from .context import ServiceContext

_HANDLE = re.compile(r"^[a-zA-Z0-9.-]+$")
_DID = re.compile(r"^did:[a-z]+:[a-zA-Z0-9._:%-]+$")


def is_valid_actor(actor: str) -> bool:
    """Accept a handle (``alice.example.com``) or a DID (``did:plc:...``)."""

    if not actor or not isinstance(actor, str) or not actor.strip():
        return False
    return bool(_HANDLE.match(actor) or _DID.match(actor))


def is_valid_search_query(query: str) -> bool:
    return isinstance(query, str) and len(query.strip()) >= 1


def _flatten_thread(node: Optional[Mapping[str, Any]]) -> List[FeedItem]:
    """Order a thread as parents (oldest first), the anchor post, then replies depth-first."""

    if not node or "post" not in node:
        return []
    parents: List[FeedItem] = []
    parent = node.get("parent")
    while parent and "post" in parent:
        parents.insert(0, FeedItem(post=PostView.from_record(parent["post"])))
        parent = parent.get("parent")

    anchor = PostView.from_record(node["post"])
    replies: List[FeedItem] = []

    def walk(children: List[Mapping[str, Any]], parent_post: PostView) -> None:
        for child in children or []:
            if "post" not in child:
                continue
            post = PostView.from_record(child["post"])
            replies.append(FeedItem(post=post, reply_parent=parent_post))
            walk(child.get("replies") or [], post)

    walk(node.get("replies") or [], anchor)
    return [*parents, FeedItem(post=anchor), *replies]


@dataclass(slots=True)
class FeedService:
    """Query definitions for the collections the client renders."""

    context: "ServiceContext"

    def _loader(
        self, operation: str, parse: Callable[[Any], Page], *args: Any
    ) -> Callable[[Optional[str]], Awaitable[Page]]:
        gateway = self.context.gateway

        async def load(cursor: Optional[str]) -> Page:
            paging = {"cursor": cursor} if cursor else {}
            return parse(await gateway.call(operation, *args, **paging) or {})

        return load

    async def _query(
        self, key: QueryKey, operation: str, parse: Callable[[Any], Page], *args: Any, stale_time: timedelta
    ) -> QuerySnapshot:
        return await self.context.cache.fetch(key, self._loader(operation, parse, *args), stale_time=stale_time)

    async def timeline(self) -> QuerySnapshot:
        limit = self.context.settings.remote.page_size
        return await self._query(
            keys.TIMELINE,
            "get_timeline",
            TimelinePage.from_record,
            limit,
            stale_time=self.context.settings.cache.timeline_stale,
        )

    async def feed(self, descriptor: str) -> QuerySnapshot:
        """Load a custom feed, e.g. a feed generator uri or ``"following"``."""

        if not descriptor or not descriptor.strip():
            raise ValidationError("Invalid feed descriptor")
        limit = self.context.settings.remote.page_size
        return await self._query(
            keys.feed(descriptor),
            "get_feed_by_descriptor",
            TimelinePage.from_record,
            descriptor,
            limit,
            stale_time=self.context.settings.cache.timeline_stale,
        )

    async def profile(self, actor: str) -> QuerySnapshot:
        if not is_valid_actor(actor):
            raise ValidationError("Invalid handle format")
        gateway = self.context.gateway

        async def load(cursor: Optional[str]) -> Page:
            return ProfilePage(profile=ProfileView.from_record(await gateway.call("get_profile", actor)))

        stale_time = self.context.settings.cache.profile_stale
        return await self.context.cache.fetch(keys.profile(actor), load, stale_time=stale_time)

    async def author_feed(self, actor: str) -> QuerySnapshot:
        if not is_valid_actor(actor):
            raise ValidationError("Invalid handle format")
        limit = self.context.settings.remote.page_size
        return await self._query(
            keys.author_feed(actor),
            "get_author_feed",
            TimelinePage.from_record,
            actor,
            limit,
            stale_time=self.context.settings.cache.timeline_stale,
        )

    async def actor_likes(self, actor: str) -> QuerySnapshot:
        if not is_valid_actor(actor):
            raise ValidationError("Invalid handle format")
        limit = self.context.settings.remote.page_size
        return await self._query(
            keys.actor_likes(actor),
            "get_actor_likes",
            TimelinePage.from_record,
            actor,
            limit,
            stale_time=self.context.settings.cache.timeline_stale,
        )

    async def post_thread(self, uri: str) -> QuerySnapshot:
        if not uri or not uri.strip():
            raise ValidationError("Invalid post URI")
        gateway = self.context.gateway

        async def load(cursor: Optional[str]) -> Page:
            data = await gateway.call("get_post_thread", uri)
            return TimelinePage(items=tuple(_flatten_thread((data or {}).get("thread"))))

        stale_time = self.context.settings.cache.timeline_stale
        return await self.context.cache.fetch(keys.post_thread(uri), load, stale_time=stale_time)

    async def search_posts(self, query: str) -> QuerySnapshot:
        if not is_valid_search_query(query):
            raise ValidationError("Search query cannot be empty")
        limit = self.context.settings.remote.search_page_size
        return await self._query(
            keys.search_posts(query),
            "search_posts",
            SearchPage.from_posts_record,
            query,
            limit,
            stale_time=self.context.settings.cache.search_stale,
        )

    async def search_actors(self, query: str) -> QuerySnapshot:
        if not is_valid_search_query(query):
            raise ValidationError("Search query cannot be empty")
        limit = self.context.settings.remote.search_page_size
        return await self._query(
            keys.search_actors(query),
            "search_actors",
            SearchPage.from_actors_record,
            query,
            limit,
            stale_time=self.context.settings.cache.search_stale,
        )

    async def popular_feeds(self) -> QuerySnapshot:
        limit = self.context.settings.remote.feeds_page_size
        return await self._query(
            keys.POPULAR_FEEDS,
            "get_popular_feed_generators",
            FeedGeneratorPage.from_record,
            limit,
            stale_time=self.context.settings.cache.profile_stale,
        )

    async def suggested_follows(self) -> QuerySnapshot:
        limit = self.context.settings.remote.feeds_page_size
        return await self._query(
            keys.SUGGESTED_FOLLOWS,
            "get_suggested_follows",
            SearchPage.from_actors_record,
            limit,
            stale_time=self.context.settings.cache.profile_stale,
        )

    async def followers(self, actor: str) -> QuerySnapshot:
        if not is_valid_actor(actor):
            raise ValidationError("Invalid handle format")
        limit = self.context.settings.remote.page_size
        return await self._query(
            keys.followers(actor),
            "get_followers",
            SearchPage.from_actors_record,
            actor,
            limit,
            stale_time=self.context.settings.cache.profile_stale,
        )

    async def following(self, actor: str) -> QuerySnapshot:
        if not is_valid_actor(actor):
            raise ValidationError("Invalid handle format")
        limit = self.context.settings.remote.page_size
        return await self._query(
            keys.following(actor),
            "get_follows",
            SearchPage.from_actors_record,
            actor,
            limit,
            stale_time=self.context.settings.cache.profile_stale,
        )

    async def next_page(self, key: QueryKey) -> Optional[QuerySnapshot]:
        return await self.context.cache.fetch_next_page(key)
