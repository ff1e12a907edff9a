"""Page shapes stored by the resource cache.

Each cached collection holds pages of exactly one kind. Every operation over
pages matches the kind exhaustively so a new kind cannot be patched silently
with the wrong shape.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple, TypeVar, Union

from ...domain import FeedGenerator, FeedItem, PostView, ProfileView

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ItemPatch:
    """Transform applied to the posts and profiles held by cached pages.

    Transforms return their argument unchanged when it is not a target, which
    lets the cache skip notifying subscribers of untouched entries.
    """

    post: Optional[Callable[[PostView], PostView]] = None
    profile: Optional[Callable[[ProfileView], ProfileView]] = None

    def patch_post(self, post: PostView) -> PostView:
        return post if self.post is None else self.post(post)

    def patch_profile(self, profile: ProfileView) -> ProfileView:
        return profile if self.profile is None else self.profile(profile)

    def patch_item(self, item: FeedItem) -> FeedItem:
        post = self.patch_post(item.post)
        parent = self.patch_post(item.reply_parent) if item.reply_parent is not None else None
        if post is item.post and parent is item.reply_parent:
            return item
        return replace(item, post=post, reply_parent=parent)


IDENTITY = ItemPatch()


def _map_same(values: Tuple[T, ...], transform: Callable[[T], T]) -> Tuple[T, ...]:
    mapped = tuple(transform(value) for value in values)
    if all(new is old for new, old in zip(mapped, values)):
        return values
    return mapped


def _records(data: Mapping[str, Any], *names: str) -> Iterable[Mapping[str, Any]]:
    for name in names:
        records = data.get(name)
        if records is not None:
            return records
    return ()


@dataclass(frozen=True, slots=True)
class TimelinePage:
    items: Tuple[FeedItem, ...] = ()
    cursor: Optional[str] = None

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> "TimelinePage":
        items = tuple(FeedItem.from_record(record) for record in _records(data, "items", "feed"))
        return cls(items=items, cursor=data.get("cursor") or None)


@dataclass(frozen=True, slots=True)
class ProfilePage:
    profile: ProfileView


@dataclass(frozen=True, slots=True)
class SearchPage:
    posts: Tuple[PostView, ...] = ()
    actors: Tuple[ProfileView, ...] = ()
    cursor: Optional[str] = None

    @classmethod
    def from_posts_record(cls, data: Mapping[str, Any]) -> "SearchPage":
        posts = tuple(PostView.from_record(record) for record in _records(data, "items", "posts"))
        return cls(posts=posts, cursor=data.get("cursor") or None)

    @classmethod
    def from_actors_record(cls, data: Mapping[str, Any]) -> "SearchPage":
        actors = tuple(
            ProfileView.from_record(record)
            for record in _records(data, "items", "actors", "followers", "follows")
        )
        return cls(actors=actors, cursor=data.get("cursor") or None)


@dataclass(frozen=True, slots=True)
class FeedGeneratorPage:
    generators: Tuple[FeedGenerator, ...] = ()
    cursor: Optional[str] = None

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> "FeedGeneratorPage":
        generators = tuple(FeedGenerator.from_record(record) for record in _records(data, "items", "feeds"))
        return cls(generators=generators, cursor=data.get("cursor") or None)


Page = Union[TimelinePage, ProfilePage, SearchPage, FeedGeneratorPage]


def apply_patch(page: Page, patch: ItemPatch) -> Page:
    """Return ``page`` with ``patch`` applied, or ``page`` itself if nothing changed."""

    match page:
        case TimelinePage(items=items):
            patched = _map_same(items, patch.patch_item)
            return page if patched is items else replace(page, items=patched)
        case ProfilePage(profile=profile):
            patched_profile = patch.patch_profile(profile)
            return page if patched_profile is profile else replace(page, profile=patched_profile)
        case SearchPage(posts=posts, actors=actors):
            patched_posts = _map_same(posts, patch.patch_post)
            patched_actors = _map_same(actors, patch.patch_profile)
            if patched_posts is posts and patched_actors is actors:
                return page
            return replace(page, posts=patched_posts, actors=patched_actors)
        case FeedGeneratorPage():
            return page
        case _:
            raise TypeError(f"Unsupported page shape: {type(page).__name__}")


def item_ids(page: Page) -> Tuple[str, ...]:
    match page:
        case TimelinePage(items=items):
            return tuple(item.post.uri for item in items)
        case ProfilePage(profile=profile):
            return (profile.did,)
        case SearchPage(posts=posts, actors=actors):
            return tuple(post.uri for post in posts) + tuple(actor.did for actor in actors)
        case FeedGeneratorPage(generators=generators):
            return tuple(generator.uri for generator in generators)
        case _:
            raise TypeError(f"Unsupported page shape: {type(page).__name__}")


def without_ids(page: Page, ids: frozenset[str]) -> Page:
    """Drop the items whose identifier is in ``ids``, keeping order."""

    match page:
        case TimelinePage(items=items):
            return replace(page, items=tuple(item for item in items if item.post.uri not in ids))
        case ProfilePage():
            return page
        case SearchPage(posts=posts, actors=actors):
            return replace(
                page,
                posts=tuple(post for post in posts if post.uri not in ids),
                actors=tuple(actor for actor in actors if actor.did not in ids),
            )
        case FeedGeneratorPage(generators=generators):
            return replace(page, generators=tuple(gen for gen in generators if gen.uri not in ids))
        case _:
            raise TypeError(f"Unsupported page shape: {type(page).__name__}")


def next_cursor(page: Page) -> Optional[str]:
    match page:
        case TimelinePage(cursor=cursor) | SearchPage(cursor=cursor) | FeedGeneratorPage(cursor=cursor):
            return cursor
        case ProfilePage():
            return None
        case _:
            raise TypeError(f"Unsupported page shape: {type(page).__name__}")


def page_items(page: Page) -> Tuple[Any, ...]:
    match page:
        case TimelinePage(items=items):
            return items
        case ProfilePage(profile=profile):
            return (profile,)
        case SearchPage(posts=posts, actors=actors):
            return posts + actors
        case FeedGeneratorPage(generators=generators):
            return generators
        case _:
            raise TypeError(f"Unsupported page shape: {type(page).__name__}")
