from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional

from ..core.retry import classify_error
from ..domain import AuthRecovery, ErrorKind, GuardianState, SessionEndReason, SyncError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionEnded:
    reason: SessionEndReason
    error: Optional[BaseException] = None


SessionListener = Callable[[SessionEnded], None]


class SessionGuardian:
    """Arbitrates refresh versus logout when authenticated calls start failing.

    The guardian state is switched away from ``IDLE`` before its first
    suspension point, so concurrent reports during a recovery are dropped
    instead of starting a second refresh or logout.
    """

    def __init__(
        self,
        *,
        refresh: Callable[[], Awaitable[bool]],
        end_session: Callable[[], Awaitable[None]],
        validate: Callable[[], Awaitable[bool]],
        is_authenticated: Callable[[], bool],
        validate_interval: timedelta = timedelta(minutes=10),
    ) -> None:
        self._refresh = refresh
        self._end_session = end_session
        self._validate = validate
        self._is_authenticated = is_authenticated
        self._validate_interval = validate_interval
        self._state = GuardianState.IDLE
        self._listeners: List[SessionListener] = []
        self._timer: Optional[asyncio.Task] = None

    @property
    def state(self) -> GuardianState:
        return self._state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def report_auth_error(self, error: BaseException) -> AuthRecovery:
        if classify_error(error) is not ErrorKind.AUTH_EXPIRED:
            return AuthRecovery.NOT_AUTH
        if self._state is not GuardianState.IDLE:
            logger.debug("Auth error ignored while %s: %s", self._state.value, error)
            return AuthRecovery.IGNORED
        if not self._is_authenticated():
            logger.debug("Auth error ignored without an active session: %s", error)
            return AuthRecovery.IGNORED

        self._state = GuardianState.REFRESHING
        logger.warning("Authentication failed (%s); attempting session refresh", error)
        try:
            refreshed = await self._refresh()
        except (SyncError, OSError) as exc:
            logger.error("Session refresh attempt failed: %s", exc)
            refreshed = False
        except BaseException:
            self._state = GuardianState.IDLE
            raise

        if refreshed:
            logger.info("Session refreshed successfully")
            self._state = GuardianState.IDLE
            return AuthRecovery.RETRY_NOW

        await self._logout(SessionEndReason.EXPIRED, error)
        return AuthRecovery.LOGGED_OUT

    async def sign_out(self) -> bool:
        """End the session on user request; returns False when a recovery is already running."""

        if self._state is not GuardianState.IDLE:
            logger.debug("Sign-out ignored while %s", self._state.value)
            return False
        await self._logout(SessionEndReason.SIGNED_OUT, None)
        return True

    async def _logout(self, reason: SessionEndReason, error: Optional[BaseException]) -> None:
        self._state = GuardianState.LOGGING_OUT
        logger.info("Ending session (%s)", reason.value)
        try:
            await self._end_session()
        finally:
            self._notify(SessionEnded(reason=reason, error=error))
            self._state = GuardianState.IDLE

    def _notify(self, event: SessionEnded) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed for %s", event.reason.value)

    async def periodic_validate(self) -> Optional[bool]:
        """Run one validity check. A negative result is only logged, never a logout."""

        if not self._is_authenticated():
            return None
        try:
            valid = await self._validate()
        except (SyncError, OSError) as exc:
            logger.warning("Session validity check failed: %s", exc)
            return False
        if valid:
            logger.debug("Session validated successfully")
        else:
            logger.warning("Session validation failed; waiting for the next API call to confirm")
        return valid

    async def on_app_active(self) -> Optional[bool]:
        """Re-check the session when the app returns to the foreground."""

        if self._is_authenticated():
            logger.info("App became active, validating session")
        return await self.periodic_validate()

    def start(self) -> None:
        if self._timer is not None and not self._timer.done():
            return
        self._timer = asyncio.get_running_loop().create_task(self._run_periodic())

    async def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        try:
            await timer
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def _run_periodic(self) -> None:
        interval = self._validate_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            try:
                await self.periodic_validate()
            except Exception:
                logger.exception("Periodic session validation crashed")
