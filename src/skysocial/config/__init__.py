"""Configuration models and helpers."""

from __future__ import annotations

from .settings import (
    AppSettings,
    CacheSettings,
    RemoteSettings,
    RetrySettings,
    SessionSettings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "RemoteSettings",
    "RetrySettings",
    "SessionSettings",
    "StorageSettings",
    "get_settings",
]
