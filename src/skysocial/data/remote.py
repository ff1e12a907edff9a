from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..domain import RemoteCallError, Session, SessionMissingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RemoteResult:
    """Outcome of one remote call: ``{success, data}`` or ``{success: False, error}``."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    status: Optional[int] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "RemoteResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, *, status: Optional[int] = None, code: Optional[str] = None) -> "RemoteResult":
        return cls(success=False, error=error, status=status, code=code)

    @classmethod
    def coerce(cls, value: Any) -> "RemoteResult":
        if isinstance(value, RemoteResult):
            return value
        if isinstance(value, Mapping) and "success" in value:
            return cls(
                success=bool(value["success"]),
                data=value.get("data"),
                error=value.get("error"),
                status=value.get("status"),
                code=value.get("code"),
            )
        raise TypeError(f"Unsupported remote result: {value!r}")


class RemoteClient(Protocol):
    """Calls consumed from the social-graph service client.

    Every method returns a :class:`RemoteResult` (or an equivalent mapping).
    Transport failures may also surface as raised exceptions.
    """

    async def login(self, identifier: str, password: str) -> RemoteResult: ...

    async def resume_session(self, session: Mapping[str, Any]) -> RemoteResult: ...

    async def refresh_session(self, refresh_jwt: str) -> RemoteResult: ...

    async def validate_session(self) -> RemoteResult: ...

    async def logout(self) -> RemoteResult: ...

    async def get_profile(self, actor: str) -> RemoteResult: ...

    async def get_timeline(self, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def get_feed_by_descriptor(self, descriptor: str, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def get_author_feed(self, actor: str, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def get_actor_likes(self, actor: str, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def search_posts(self, query: str, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def search_actors(self, query: str, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def get_popular_feed_generators(self, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def get_suggested_follows(self, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def get_followers(self, actor: str, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def get_follows(self, actor: str, limit: int, cursor: Optional[str] = None) -> RemoteResult: ...

    async def get_post_thread(self, uri: str) -> RemoteResult: ...

    async def create_post(self, text: str, images: Sequence[Mapping[str, Any]] = ()) -> RemoteResult: ...

    async def create_reply(
        self, text: str, parent_uri: str, parent_cid: str, root_uri: str, root_cid: str
    ) -> RemoteResult: ...

    async def like_post(self, uri: str, cid: str) -> RemoteResult: ...

    async def unlike_post(self, like_uri: str) -> RemoteResult: ...

    async def repost(self, uri: str, cid: str) -> RemoteResult: ...

    async def delete_repost(self, repost_uri: str) -> RemoteResult: ...

    async def follow_profile(self, did: str) -> RemoteResult: ...

    async def unfollow_profile(self, follow_uri: str) -> RemoteResult: ...


@dataclass
class RemoteGateway:
    """Thin wrapper around the remote client with session awareness."""

    client: RemoteClient
    _session: Optional[Session] = None

    async def call(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke ``operation`` on the client and unwrap its result.

        A ``success: False`` result is raised as :class:`RemoteCallError`;
        exceptions raised by the client itself propagate unchanged.
        """

        method = getattr(self.client, operation)
        result = RemoteResult.coerce(await method(*args, **kwargs))
        if not result.success:
            message = result.error or f"{operation} failed"
            logger.debug("Remote %s failed: %s (status=%s)", operation, message, result.status)
            raise RemoteCallError(message, operation=operation, status=result.status, code=result.code)
        return result.data

    def set_session(self, session: Session) -> None:
        self._session = session

    def clear_session(self) -> None:
        self._session = None

    def session(self) -> Session:
        if self._session is None:
            raise SessionMissingError("Session is not available.")
        return self._session

    def current_did(self) -> str:
        return self.session().did

    def is_authenticated(self) -> bool:
        return self._session is not None
