from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional

from ..core.retry import classify_error, run_with_retry
from ..domain import ErrorKind, ProfileView, RemoteCallError, Session, SessionMissingError, ValidationError

if TYPE_CHECKING:
    from .context import ServiceContext

logger = logging.getLogger(__name__)


def _session_from(data: Any, operation: str) -> Session:
    if not isinstance(data, Mapping):
        raise RemoteCallError("Session payload missing", operation=operation)
    try:
        return Session.from_record(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise RemoteCallError(f"Malformed session payload: {exc}", operation=operation) from exc


@dataclass(slots=True)
class AuthService:
    context: "ServiceContext"

    async def login(self, identifier: str, password: str) -> Session:
        if not identifier or not identifier.strip() or not password:
            raise ValidationError("Identifier and password are required")

        gateway = self.context.gateway
        data = await run_with_retry(
            lambda: gateway.call("login", identifier.strip(), password),
            self.context.query_policy,
            context="Login",
            sleep=self.context.sleep,
        )
        session = _session_from(data, "login")
        gateway.set_session(session)
        self.context.cache.clear()
        await self.context.store.save(session)
        logger.info("Logged in as %s", session.handle)
        await self.refresh_profile()
        return session

    async def restore(self) -> bool:
        """Resume the persisted session, then refresh the cached own profile."""

        stored = await self.context.store.get()
        if stored is None:
            return False

        gateway = self.context.gateway
        try:
            await gateway.call("resume_session", stored.session.to_record())
        except Exception as exc:
            if not classify_error(exc).is_retryable:
                logger.warning("Failed to resume stored session: %s", exc)
                await self.context.store.clear()
                return False
            logger.warning("Service unreachable while resuming session, keeping it: %s", exc)

        gateway.set_session(stored.session)
        logger.info("Resumed session for %s", stored.session.handle)
        await self.refresh_profile()
        return True

    async def refresh_profile(self) -> Optional[ProfileView]:
        gateway = self.context.gateway
        session = gateway.session()
        try:
            data = await run_with_retry(
                lambda: gateway.call("get_profile", session.handle),
                self.context.query_policy,
                context="Get own profile",
                sleep=self.context.sleep,
            )
        except Exception as exc:  # noqa: BLE001
            if classify_error(exc) is ErrorKind.AUTH_EXPIRED:
                await self.context.guardian.report_auth_error(exc)
            else:
                logger.warning("Could not refresh own profile: %s", exc)
            return None

        profile = ProfileView.from_record(data)
        if gateway.is_authenticated():
            await self.context.store.save(gateway.session(), profile)
        return profile

    async def refresh_session(self) -> bool:
        gateway = self.context.gateway
        try:
            current = gateway.session()
        except SessionMissingError:
            return False

        data = await gateway.call("refresh_session", current.refresh_jwt)
        session = _session_from(data, "refresh_session")
        gateway.set_session(session)
        await self.context.store.save(session)
        return True

    async def validate_session(self) -> bool:
        try:
            data = await self.context.gateway.call("validate_session")
        except RemoteCallError as exc:
            logger.debug("Validity check rejected: %s", exc)
            return False
        if isinstance(data, Mapping) and "valid" in data:
            return bool(data["valid"])
        return True if data is None else bool(data)

    async def end_session(self) -> None:
        self.context.gateway.clear_session()
        try:
            await self.context.store.clear()
        finally:
            self.context.cache.clear()

    def current_session(self) -> Session:
        return self.context.gateway.session()

    def is_authenticated(self) -> bool:
        return self.context.gateway.is_authenticated()

    async def sign_out(self) -> None:
        try:
            if self.context.gateway.is_authenticated():
                await self.context.gateway.call("logout")
        finally:
            await self.context.guardian.sign_out()
