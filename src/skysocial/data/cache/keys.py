"""Query keys identifying cached server collections.

A key is a tuple whose first element names the resource kind, followed by its
parameters, e.g. ``("timeline",)`` or ``("profile", "alice.example.com")``.
A shorter tuple acts as a prefix matching every key that starts with it.
"""

from __future__ import annotations

from typing import Callable, Tuple

QueryKey = Tuple[str, ...]
KeyPredicate = Callable[[QueryKey], bool]

TIMELINE: QueryKey = ("timeline",)
SUGGESTED_FOLLOWS: QueryKey = ("suggestedFollows",)
POPULAR_FEEDS: QueryKey = ("popularFeeds",)


def profile(handle: str) -> QueryKey:
    return ("profile", handle)


def author_feed(handle: str) -> QueryKey:
    return ("authorFeed", handle)


def actor_likes(handle: str) -> QueryKey:
    return ("actorLikes", handle)


def post_thread(uri: str) -> QueryKey:
    return ("postThread", uri)


def feed(descriptor: str) -> QueryKey:
    return ("feed", descriptor)


def search_posts(query: str) -> QueryKey:
    return ("searchPosts", query)


def search_actors(query: str) -> QueryKey:
    return ("searchActors", query)


def followers(handle: str) -> QueryKey:
    return ("followers", handle)


def following(handle: str) -> QueryKey:
    return ("following", handle)


POST_KINDS = frozenset({"timeline", "feed", "authorFeed", "actorLikes", "postThread", "searchPosts"})
PROFILE_KINDS = frozenset({"profile", "searchActors", "suggestedFollows", "followers", "following"})


def matches_prefix(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


def any_of(*prefixes: QueryKey) -> KeyPredicate:
    return lambda key: any(matches_prefix(key, prefix) for prefix in prefixes)


def carries_posts(key: QueryKey) -> bool:
    return bool(key) and key[0] in POST_KINDS


def carries_profiles(key: QueryKey) -> bool:
    return bool(key) and key[0] in PROFILE_KINDS


def nothing(key: QueryKey) -> bool:
    return False


def format_key(key: QueryKey) -> str:
    return ":".join(key)
