from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

import orjson

from ..domain import ProfileView, Session
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class StoredSession:
    session: Session
    profile: Optional[ProfileView] = None


@dataclass(slots=True)
class SessionStore:
    """Persists the authenticated session and the cached own profile. No policy."""

    storage: KeyValueStorage
    session_key: str = "@skysocial/auth_session"
    profile_key: str = "@skysocial/user_profile"

    async def save(self, session: Session, profile: Optional[ProfileView] = None) -> None:
        await self.storage.set_item(self.session_key, orjson.dumps(session.to_record()).decode("utf-8"))
        if profile is not None:
            await self.save_profile(profile)

    async def save_profile(self, profile: ProfileView) -> None:
        await self.storage.set_item(self.profile_key, orjson.dumps(profile.to_record()).decode("utf-8"))

    async def get(self) -> Optional[StoredSession]:
        session = await self._read(self.session_key, Session.from_record)
        if session is None:
            return None
        profile = await self._read(self.profile_key, ProfileView.from_record)
        return StoredSession(session=session, profile=profile)

    async def clear(self) -> None:
        await self.storage.remove_item(self.session_key)
        await self.storage.remove_item(self.profile_key)

    async def _read(self, key: str, parse: Callable[[Any], T]) -> Optional[T]:
        raw = await self.storage.get_item(key)
        if not raw:
            return None
        try:
            return parse(orjson.loads(raw))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed stored record under %s", key)
            return None
