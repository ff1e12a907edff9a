"""Data access layer."""

from __future__ import annotations

from .cache import ResourceCache
from .remote import RemoteClient, RemoteGateway, RemoteResult
from .session_store import SessionStore, StoredSession
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "RemoteClient",
    "RemoteGateway",
    "RemoteResult",
    "ResourceCache",
    "SessionStore",
    "StoredSession",
]
