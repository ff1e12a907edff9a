from __future__ import annotations

import asyncio
import logging
from typing import Any, ClassVar, List, Optional, Tuple

from ..core.retry import MUTATION_POLICY, AuthErrorReporter, RetryPolicy, Sleep, classify_error, run_with_retry
from ..data.cache import IDENTITY, ItemPatch, ResourceCache
from ..data.cache.keys import QueryKey, format_key
from ..data.remote import RemoteGateway
from ..domain import AuthRecovery, ErrorKind

logger = logging.getLogger(__name__)


class Mutation:
    """Command describing one write against the remote service.

    Subclasses are parameterized by the call arguments and supply the
    optimistic ``forward`` patch, its exact ``inverse``, and an optional
    ``reconcile`` patch built from the server result.
    """

    name: ClassVar[str] = "mutation"

    def targets(self, key: QueryKey) -> bool:
        return False

    @property
    def forward(self) -> ItemPatch:
        return IDENTITY

    @property
    def inverse(self) -> ItemPatch:
        return IDENTITY

    def reconcile(self, result: Any) -> Optional[ItemPatch]:
        return None

    async def call(self, gateway: RemoteGateway) -> Any:
        raise NotImplementedError

    def invalidate_on_success(self) -> Tuple[QueryKey, ...]:
        return ()

    def invalidate_on_failure(self) -> Tuple[QueryKey, ...]:
        return ()


class MutationExecutor:
    """Applies optimistic patches, calls the server, then reconciles or rolls back."""

    def __init__(
        self,
        cache: ResourceCache,
        gateway: RemoteGateway,
        *,
        retry: RetryPolicy = MUTATION_POLICY,
        auth_reporter: Optional[AuthErrorReporter] = None,
        replay_after_refresh: bool = True,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._cache = cache
        self._gateway = gateway
        self._retry = retry
        self._auth_reporter = auth_reporter
        self._replay_after_refresh = replay_after_refresh
        self._sleep = sleep

    async def execute(self, mutation: Mutation) -> Any:
        touched: List[QueryKey] = []
        try:
            touched = self._cache.patch(mutation.targets, mutation.forward)
            result = await self._perform(mutation)
        except Exception as exc:
            logger.warning("%s failed, rolling back %d cache entries: %s", mutation.name, len(touched), exc)
            self._cache.patch(mutation.targets, mutation.inverse)
            self._invalidate([*touched, *mutation.invalidate_on_failure()])
            raise

        reconcile = mutation.reconcile(result)
        if reconcile is not None:
            self._cache.patch(mutation.targets, reconcile)
        self._invalidate(mutation.invalidate_on_success())
        return result

    async def _perform(self, mutation: Mutation) -> Any:
        async def attempt() -> Any:
            return await mutation.call(self._gateway)

        try:
            return await run_with_retry(attempt, self._retry, context=mutation.name, sleep=self._sleep)
        except Exception as exc:
            if self._auth_reporter is None or classify_error(exc) is not ErrorKind.AUTH_EXPIRED:
                raise
            recovery = await self._auth_reporter.report_auth_error(exc)
            if recovery is not AuthRecovery.RETRY_NOW or not self._replay_after_refresh:
                raise
        logger.info("Replaying %s once after session refresh", mutation.name)
        return await attempt()

    def _invalidate(self, keys: List[QueryKey] | Tuple[QueryKey, ...]) -> None:
        for key in dict.fromkeys(keys):
            logger.debug("Invalidating %s", format_key(key))
            self._cache.invalidate(key)
