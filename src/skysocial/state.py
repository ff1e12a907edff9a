from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .data.cache import QuerySnapshot
from .data.cache.keys import QueryKey
from .services import AuthService, FeedService, Mutation, MutationExecutor, ServiceContext, SessionEnded

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppState:
    """Single entry point the presentation layer holds on to."""

    context: ServiceContext
    auth: AuthService = field(init=False)
    feeds: FeedService = field(init=False)
    executor: MutationExecutor = field(init=False)

    def __post_init__(self) -> None:
        self.auth = self.context.auth
        self.feeds = FeedService(self.context)
        self.executor = self.context.executor

    async def bootstrap(self) -> bool:
        restored = await self.auth.restore()
        self.context.guardian.start()
        logger.info("Client started (%s)", "session restored" if restored else "signed out")
        return restored

    async def shutdown(self) -> None:
        await self.context.guardian.stop()
        self.context.cache.prune()

    async def execute(self, mutation: Mutation) -> Any:
        return await self.executor.execute(mutation)

    def subscribe(self, key: QueryKey, listener: Callable[[QuerySnapshot], None]) -> Callable[[], None]:
        return self.context.cache.subscribe(key, listener)

    def read(self, key: QueryKey) -> Optional[QuerySnapshot]:
        return self.context.cache.read(key)

    async def on_app_active(self) -> Optional[bool]:
        return await self.context.guardian.on_app_active()

    def on_session_ended(self, listener: Callable[[SessionEnded], None]) -> Callable[[], None]:
        return self.context.guardian.subscribe(listener)
