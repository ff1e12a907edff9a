from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from ...core.retry import QUERY_POLICY, AuthErrorReporter, RetryPolicy, Sleep, classify_error, run_with_retry
from ...domain import AuthRecovery, ErrorKind, FetchStatus
from .keys import KeyPredicate, QueryKey, format_key, matches_prefix
from .pages import ItemPatch, Page, apply_patch, item_ids, next_cursor, page_items, without_ids

logger = logging.getLogger(__name__)

Loader = Callable[[Optional[str]], Awaitable[Page]]
Listener = Callable[["QuerySnapshot"], None]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class QuerySnapshot:
    """Immutable view of one cached query handed to readers and subscribers."""

    key: QueryKey
    pages: Tuple[Page, ...]
    status: FetchStatus
    error: Optional[BaseException]
    error_kind: Optional[ErrorKind]
    has_next_page: bool
    is_stale: bool
    updated_at: Optional[datetime]

    @property
    def data(self) -> Tuple[Page, ...]:
        return self.pages

    @property
    def is_loading(self) -> bool:
        return self.status is FetchStatus.FETCHING

    @property
    def is_fetching_more(self) -> bool:
        return self.status is FetchStatus.FETCHING_MORE

    @property
    def items(self) -> tuple:
        collected: list = []
        for page in self.pages:
            collected.extend(page_items(page))
        return tuple(collected)


@dataclass
class CachedQuery:
    key: QueryKey
    stale_time: timedelta
    loader: Optional[Loader] = None
    pages: List[Page] = field(default_factory=list)
    status: FetchStatus = FetchStatus.IDLE
    error: Optional[BaseException] = None
    error_kind: Optional[ErrorKind] = None
    updated_at: Optional[datetime] = None
    invalidated: bool = False
    generation: int = 0
    task: Optional[asyncio.Task] = None
    listeners: List[Listener] = field(default_factory=list)

    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()

    def has_next_page(self) -> bool:
        return bool(self.pages) and next_cursor(self.pages[-1]) is not None

    def is_stale(self, now: datetime) -> bool:
        if self.invalidated or self.updated_at is None:
            return True
        return now - self.updated_at >= self.stale_time

    def snapshot(self, now: datetime) -> QuerySnapshot:
        return QuerySnapshot(
            key=self.key,
            pages=tuple(self.pages),
            status=self.status,
            error=self.error,
            error_kind=self.error_kind,
            has_next_page=self.has_next_page(),
            is_stale=self.is_stale(now),
            updated_at=self.updated_at,
        )


class ResourceCache:
    """Keyed, paginated cache of server-derived collections.

    Page commits and patches run synchronously on the event loop, so a patch is
    visible to every read issued after it returns. Fetches for one key are
    single-flight; a superseded request is detected through the entry's
    generation counter and its result dropped.
    """

    def __init__(
        self,
        *,
        retry: RetryPolicy = QUERY_POLICY,
        default_stale_time: timedelta = timedelta(minutes=2),
        gc_time: timedelta = timedelta(minutes=10),
        clock: Clock = _utc_now,
        sleep: Sleep = asyncio.sleep,
        auth_reporter: Optional[AuthErrorReporter] = None,
    ) -> None:
        self._retry = retry
        self._default_stale_time = default_stale_time
        self._gc_time = gc_time
        self._clock = clock
        self._sleep = sleep
        self._auth_reporter = auth_reporter
        self._entries: Dict[QueryKey, CachedQuery] = {}
        self._background: Set[asyncio.Task] = set()

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    def snapshot(self, key: QueryKey) -> Optional[QuerySnapshot]:
        entry = self._entries.get(key)
        return entry.snapshot(self._clock()) if entry is not None else None

    def _ensure_entry(
        self, key: QueryKey, loader: Optional[Loader], stale_time: Optional[timedelta]
    ) -> CachedQuery:
        entry = self._entries.get(key)
        if entry is None:
            entry = CachedQuery(key=key, stale_time=stale_time or self._default_stale_time)
            self._entries[key] = entry
        if loader is not None:
            entry.loader = loader
        if stale_time is not None:
            entry.stale_time = stale_time
        return entry

    # Reads

    async def fetch(
        self,
        key: QueryKey,
        loader: Optional[Loader] = None,
        *,
        stale_time: Optional[timedelta] = None,
    ) -> QuerySnapshot:
        """Load the first page of ``key``, joining a first-page fetch already in flight."""

        entry = self._ensure_entry(key, loader, stale_time)
        if entry.loader is None:
            raise KeyError(f"No loader registered for {format_key(key)}")
        if entry.in_flight() and entry.status is FetchStatus.FETCHING:
            return await asyncio.shield(entry.task)

        entry.generation += 1
        entry.status = FetchStatus.FETCHING
        entry.task = asyncio.ensure_future(self._load(entry, entry.generation, None))
        self._notify(entry)
        return await asyncio.shield(entry.task)

    async def fetch_next_page(self, key: QueryKey) -> Optional[QuerySnapshot]:
        """Append the next page of ``key``; a no-op while any fetch is in flight."""

        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.loader is None or entry.in_flight() or not entry.has_next_page():
            return entry.snapshot(self._clock())

        cursor = next_cursor(entry.pages[-1])
        entry.status = FetchStatus.FETCHING_MORE
        entry.task = asyncio.ensure_future(self._load(entry, entry.generation, cursor))
        self._notify(entry)
        return await asyncio.shield(entry.task)

    def read(self, key: QueryKey) -> Optional[QuerySnapshot]:
        """Return the current snapshot, scheduling a background refetch when stale."""

        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if entry.is_stale(now) and entry.loader is not None and not entry.in_flight():
            self._schedule_refetch(entry)
        return entry.snapshot(now)

    def subscribe(
        self,
        key: QueryKey,
        listener: Listener,
        *,
        loader: Optional[Loader] = None,
        stale_time: Optional[timedelta] = None,
    ) -> Callable[[], None]:
        entry = self._ensure_entry(key, loader, stale_time)
        entry.listeners.append(listener)
        self.read(key)

        def unsubscribe() -> None:
            if listener in entry.listeners:
                entry.listeners.remove(listener)

        return unsubscribe

    def _schedule_refetch(self, entry: CachedQuery) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.fetch(entry.key))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _load(self, entry: CachedQuery, generation: int, cursor: Optional[str]) -> QuerySnapshot:
        loader = entry.loader
        assert loader is not None
        label = "Fetch more" if cursor else "Fetch"
        try:
            page = await run_with_retry(
                lambda: loader(cursor),
                self._retry,
                context=f"{label} {format_key(entry.key)}",
                sleep=self._sleep,
            )
        except Exception as exc:  # noqa: BLE001
            return await self._fail(entry, generation, exc)

        if not self._is_current(entry, generation):
            logger.debug("Dropping superseded page for %s", format_key(entry.key))
            return entry.snapshot(self._clock())

        if cursor is None:
            entry.pages = self._replace_first(entry.pages, page)
        else:
            entry.pages.append(page)
        entry.status = FetchStatus.IDLE
        entry.error = None
        entry.error_kind = None
        entry.invalidated = False
        entry.updated_at = self._clock()
        self._notify(entry)
        return entry.snapshot(self._clock())

    async def _fail(self, entry: CachedQuery, generation: int, exc: Exception) -> QuerySnapshot:
        if not self._is_current(entry, generation):
            return entry.snapshot(self._clock())

        kind = classify_error(exc)
        logger.warning("Fetching %s failed (%s): %s", format_key(entry.key), kind.value, exc)
        entry.status = FetchStatus.ERROR
        entry.error = exc
        entry.error_kind = kind
        self._notify(entry)

        if kind is ErrorKind.AUTH_EXPIRED and self._auth_reporter is not None:
            recovery = await self._auth_reporter.report_auth_error(exc)
            if recovery is AuthRecovery.RETRY_NOW and self._entries.get(entry.key) is entry:
                entry.invalidated = True
        return entry.snapshot(self._clock())

    def _is_current(self, entry: CachedQuery, generation: int) -> bool:
        return self._entries.get(entry.key) is entry and entry.generation == generation

    @staticmethod
    def _replace_first(pages: List[Page], first: Page) -> List[Page]:
        if not pages:
            return [first]
        present = frozenset(item_ids(first))
        return [first, *(without_ids(page, present) for page in pages[1:])]

    # Writes

    def seed(
        self,
        key: QueryKey,
        pages: List[Page],
        *,
        loader: Optional[Loader] = None,
        stale_time: Optional[timedelta] = None,
    ) -> QuerySnapshot:
        """Store ``pages`` for ``key`` as freshly fetched data."""

        entry = self._ensure_entry(key, loader, stale_time)
        entry.generation += 1
        entry.pages = list(pages)
        entry.status = FetchStatus.IDLE
        entry.error = None
        entry.error_kind = None
        entry.invalidated = False
        entry.updated_at = self._clock()
        self._notify(entry)
        return entry.snapshot(self._clock())

    def invalidate(self, prefix: QueryKey) -> List[QueryKey]:
        """Mark every entry under ``prefix`` stale. The refetch happens on the next read."""

        matched: List[QueryKey] = []
        for key, entry in self._entries.items():
            if not matches_prefix(key, prefix):
                continue
            entry.invalidated = True
            matched.append(key)
            self._notify(entry)
        return matched

    def patch(self, key_predicate: KeyPredicate, patch: ItemPatch) -> List[QueryKey]:
        """Apply ``patch`` to all pages of the matching entries; return the changed keys."""

        touched: List[QueryKey] = []
        for key, entry in list(self._entries.items()):
            if not entry.pages or not key_predicate(key):
                continue
            patched = [apply_patch(page, patch) for page in entry.pages]
            if all(new is old for new, old in zip(patched, entry.pages)):
                continue
            entry.pages = patched
            touched.append(key)
            self._notify(entry)
        return touched

    def clear(self) -> None:
        """Drop all session-derived data; in-flight results are discarded."""

        for key in list(self._entries):
            entry = self._entries[key]
            entry.generation += 1
            entry.task = None
            if not entry.listeners:
                del self._entries[key]
                continue
            entry.pages = []
            entry.status = FetchStatus.IDLE
            entry.error = None
            entry.error_kind = None
            entry.updated_at = None
            entry.invalidated = True
            self._notify(entry)

    def prune(self) -> List[QueryKey]:
        """Forget unobserved entries not refreshed within the garbage-collection window."""

        now = self._clock()
        removed: List[QueryKey] = []
        for key, entry in list(self._entries.items()):
            if entry.listeners or entry.in_flight():
                continue
            if entry.updated_at is not None and now - entry.updated_at < self._gc_time:
                continue
            del self._entries[key]
            removed.append(key)
        return removed

    def _notify(self, entry: CachedQuery) -> None:
        if not entry.listeners:
            return
        snapshot = entry.snapshot(self._clock())
        for listener in list(entry.listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Subscriber of %s failed", format_key(entry.key))
