"""Read-side cache of paginated server collections."""

from __future__ import annotations

from . import keys
from .pages import FeedGeneratorPage, IDENTITY, ItemPatch, Page, ProfilePage, SearchPage, TimelinePage
from .resource_cache import CachedQuery, QuerySnapshot, ResourceCache

__all__ = [
    "CachedQuery",
    "FeedGeneratorPage",
    "IDENTITY",
    "ItemPatch",
    "Page",
    "ProfilePage",
    "QuerySnapshot",
    "ResourceCache",
    "SearchPage",
    "TimelinePage",
    "keys",
]
