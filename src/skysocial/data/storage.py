"""Key-value persistence backing the session store."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import orjson

from ..core import DATA_DIR

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    async def get_item(self, key: str) -> Optional[str]: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, used when nothing needs to survive a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """Storage persisted as a single JSON document in the application data directory."""

    def __init__(self, path: Optional[Path] = None, *, file_name: str = "session.json") -> None:
        self._path = path or DATA_DIR / file_name
        self._state: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        raw = self._path.read_bytes()
        if not raw:
            return {}
        try:
            state = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("Discarding unreadable storage file %s", self._path)
            return {}
        return state if isinstance(state, dict) else {}

    def _write(self, state: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = orjson.dumps(state, option=orjson.OPT_INDENT_2)
        scratch = self._path.with_suffix(self._path.suffix + ".tmp")
        scratch.write_bytes(payload + b"\n")
        scratch.replace(self._path)

    async def _ensure_materialized(self) -> Dict[str, Any]:
        if self._state is None:
            self._state = await asyncio.to_thread(self._load)
        return self._state

    async def get_item(self, key: str) -> Optional[str]:
        async with self._lock:
            state = await self._ensure_materialized()
            value = state.get(key)
            return value if isinstance(value, str) else None

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            state = await self._ensure_materialized()
            state[key] = value
            await asyncio.to_thread(self._write, dict(state))

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            state = await self._ensure_materialized()
            if key not in state:
                return
            state.pop(key)
            await asyncio.to_thread(self._write, dict(state))
