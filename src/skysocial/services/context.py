from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from ..config import AppSettings, get_settings
from ..core.retry import RetryPolicy, Sleep
from ..data import JsonFileStorage, KeyValueStorage, RemoteClient, RemoteGateway, ResourceCache, SessionStore
from .auth import AuthService
from .guardian import SessionGuardian
from .mutations import MutationExecutor


@dataclass(slots=True)
class ServiceContext:
    """Aggregate root for services to share settings, gateway, store, and caches."""

    client: RemoteClient
    settings: AppSettings = field(default_factory=get_settings)
    storage: Optional[KeyValueStorage] = None
    sleep: Sleep = asyncio.sleep
    gateway: RemoteGateway = field(init=False)
    store: SessionStore = field(init=False)
    cache: ResourceCache = field(init=False)
    auth: AuthService = field(init=False)
    guardian: SessionGuardian = field(init=False)
    executor: MutationExecutor = field(init=False)
    query_policy: RetryPolicy = field(init=False)
    mutation_policy: RetryPolicy = field(init=False)

    def __post_init__(self) -> None:
        retry = self.settings.retry
        self.query_policy = RetryPolicy(
            max_attempts=retry.query_max_attempts,
            base_delay_ms=retry.base_delay_ms,
            max_delay_ms=retry.max_delay_ms,
        )
        self.mutation_policy = RetryPolicy(
            max_attempts=retry.mutation_max_attempts,
            base_delay_ms=retry.base_delay_ms,
            max_delay_ms=retry.max_delay_ms,
        )

        self.gateway = RemoteGateway(self.client)
        self.store = SessionStore(
            storage=self.storage or JsonFileStorage(file_name=self.settings.storage.state_file),
            session_key=self.settings.storage.session_key,
            profile_key=self.settings.storage.profile_key,
        )
        self.auth = AuthService(self)
        self.guardian = SessionGuardian(
            refresh=self.auth.refresh_session,
            end_session=self.auth.end_session,
            validate=self.auth.validate_session,
            is_authenticated=self.gateway.is_authenticated,
            validate_interval=self.settings.session.validate_interval,
        )
        self.cache = ResourceCache(
            retry=self.query_policy,
            default_stale_time=self.settings.cache.timeline_stale,
            gc_time=self.settings.cache.gc_time,
            sleep=self.sleep,
            auth_reporter=self.guardian,
        )
        self.executor = MutationExecutor(
            self.cache,
            self.gateway,
            retry=self.mutation_policy,
            auth_reporter=self.guardian,
            replay_after_refresh=self.settings.session.replay_after_refresh,
            sleep=self.sleep,
        )
