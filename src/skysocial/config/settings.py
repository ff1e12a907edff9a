from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class RemoteSettings:
    page_size: int
    search_page_size: int
    feeds_page_size: int


@dataclass(frozen=True)
class RetrySettings:
    query_max_attempts: int
    mutation_max_attempts: int
    base_delay_ms: int
    max_delay_ms: int


@dataclass(frozen=True)
class CacheSettings:
    timeline_stale: timedelta
    profile_stale: timedelta
    search_stale: timedelta
    gc_time: timedelta


@dataclass(frozen=True)
class SessionSettings:
    validate_interval: timedelta
    replay_after_refresh: bool


@dataclass(frozen=True)
class StorageSettings:
    state_file: str
    session_key: str
    profile_key: str


@dataclass(frozen=True)
class AppSettings:
    remote: RemoteSettings
    retry: RetrySettings
    cache: CacheSettings
    session: SessionSettings
    storage: StorageSettings


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _timedelta_from_env(name: str, default_seconds: int) -> timedelta:
    raw = os.getenv(name)
    if not raw:
        return timedelta(seconds=default_seconds)
    try:
        seconds = float(raw)
    except ValueError:
        return timedelta(seconds=default_seconds)
    return timedelta(seconds=seconds)


def _bool_from_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    remote = RemoteSettings(
        page_size=_int_from_env("SKYSOCIAL_PAGE_SIZE", 30),
        search_page_size=_int_from_env("SKYSOCIAL_SEARCH_PAGE_SIZE", 25),
        feeds_page_size=_int_from_env("SKYSOCIAL_FEEDS_PAGE_SIZE", 50),
    )

    retry = RetrySettings(
        query_max_attempts=_int_from_env("SKYSOCIAL_QUERY_MAX_ATTEMPTS", 3),
        mutation_max_attempts=_int_from_env("SKYSOCIAL_MUTATION_MAX_ATTEMPTS", 2),
        base_delay_ms=_int_from_env("SKYSOCIAL_RETRY_BASE_MS", 1000),
        max_delay_ms=_int_from_env("SKYSOCIAL_RETRY_MAX_MS", 10000),
    )

    cache = CacheSettings(
        timeline_stale=_timedelta_from_env("SKYSOCIAL_TIMELINE_STALE_SECONDS", 120),
        profile_stale=_timedelta_from_env("SKYSOCIAL_PROFILE_STALE_SECONDS", 300),
        search_stale=_timedelta_from_env("SKYSOCIAL_SEARCH_STALE_SECONDS", 180),
        gc_time=_timedelta_from_env("SKYSOCIAL_CACHE_GC_SECONDS", 600),
    )

    session = SessionSettings(
        validate_interval=_timedelta_from_env("SKYSOCIAL_VALIDATE_INTERVAL_SECONDS", 600),
        replay_after_refresh=_bool_from_env("SKYSOCIAL_REPLAY_AFTER_REFRESH", True),
    )

    storage = StorageSettings(
        state_file=os.getenv("SKYSOCIAL_STATE_FILE", "session.json"),
        session_key=os.getenv("SKYSOCIAL_SESSION_KEY", "@skysocial/auth_session"),
        profile_key=os.getenv("SKYSOCIAL_PROFILE_KEY", "@skysocial/user_profile"),
    )

    return AppSettings(remote=remote, retry=retry, cache=cache, session=session, storage=storage)
