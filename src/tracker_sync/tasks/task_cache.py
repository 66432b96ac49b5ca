# src/tracker_sync/tasks/task_cache.py

from __future__ import annotations

"""
Key-addressed, single-flight cache of fetched task snapshots.

States a reader can observe:
- Loading: a fetch is pending. `previous` carries the last good snapshot, if any
  (stale data the UI may keep showing while it revalidates).
- Ready:   the latest fetch succeeded.
- Failed:  the latest fetch failed; the error is kept until the next refetch.

Rules:
- at most one in-flight fetch per key
- every fetch captures the entry version it was started for; a result that comes
  back for an older version is discarded and a fresh fetch is started
- the cache is only written by invalidate()/discard() and fetch completion
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ..core.errors import FetchError
from .task_models import Task

logger = logging.getLogger(__name__)

ALL_TASKS = "tasks"

Fetcher = Callable[[], Awaitable[list[Task]]]


@dataclass(slots=True, frozen=True)
class Loading:
    previous: tuple[Task, ...] | None = None


@dataclass(slots=True, frozen=True)
class Ready:
    tasks: tuple[Task, ...]


@dataclass(slots=True, frozen=True)
class Failed:
    error: FetchError


CachedState = Loading | Ready | Failed


@dataclass(slots=True)
class _Entry:
    state: CachedState = field(default_factory=Loading)
    version: int = 0
    inflight: asyncio.Task[None] | None = None


class TaskCache:
    def __init__(self, *, fetch_timeout_seconds: float | None = 15.0) -> None:
        self._fetchers: dict[str, Fetcher] = {}
        self._entries: dict[str, _Entry] = {}
        self._timeout = fetch_timeout_seconds if fetch_timeout_seconds and fetch_timeout_seconds > 0 else None
        self.fetch_count = 0

    def register(self, key: str, fetcher: Fetcher) -> None:
        """Bind a query identity to the coroutine that loads it."""
        self._fetchers[key] = fetcher

    # ---- internal fetch machinery ----

    def _entry(self, key: str) -> _Entry:
        if key not in self._fetchers:
            raise KeyError(f"No fetcher registered for cache key: {key}")
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        return entry

    def _start_fetch(self, key: str, entry: _Entry) -> None:
        if entry.inflight is not None:
            return
        loop = asyncio.get_running_loop()
        entry.inflight = loop.create_task(self._run_fetch(key, entry, entry.version))

    async def _call_fetcher(self, key: str) -> list[Task]:
        self.fetch_count += 1
        coro = self._fetchers[key]()
        if self._timeout is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except TimeoutError as e:
            raise FetchError(f"Fetching '{key}' timed out after {self._timeout:g}s") from e

    async def _run_fetch(self, key: str, entry: _Entry, version: int) -> None:
        result: CachedState
        try:
            tasks = await self._call_fetcher(key)
            result = Ready(tuple(tasks))
        except FetchError as e:
            logger.warning("Fetch failed key=%s: %s", key, e)
            result = Failed(e)
        except Exception as e:
            logger.exception("Fetcher crashed key=%s", key)
            result = Failed(FetchError(f"Unexpected error while fetching '{key}': {e}"))
        finally:
            entry.inflight = None

        if self._entries.get(key) is not entry:
            logger.debug("Dropping result for discarded key=%s", key)
            return

        if version != entry.version:
            logger.debug("Dropping superseded result key=%s version=%s current=%s", key, version, entry.version)
            self._start_fetch(key, entry)
            return

        entry.state = result
        if isinstance(result, Ready):
            logger.debug("Cache ready key=%s tasks=%d", key, len(result.tasks))

    # ---- public API ----

    def read(self, key: str = ALL_TASKS) -> CachedState:
        """
        Current state for key. Never blocks.

        The first read of a key starts its fetch (needs a running event loop).
        """
        entry = self._entry(key)
        if isinstance(entry.state, Loading) and entry.inflight is None:
            self._start_fetch(key, entry)
        return entry.state

    async def get(self, key: str = ALL_TASKS) -> list[Task]:
        """Wait for the current snapshot (sharing any in-flight fetch). Raises FetchError."""
        while True:
            entry = self._entry(key)
            if isinstance(entry.state, Loading) and entry.inflight is None:
                self._start_fetch(key, entry)

            inflight = entry.inflight
            if inflight is not None:
                await asyncio.shield(inflight)
                continue

            state = entry.state
            if isinstance(state, Ready):
                return list(state.tasks)
            if isinstance(state, Failed):
                raise state.error

    def invalidate(self, key: str = ALL_TASKS) -> None:
        """Mark key stale and refetch in the background (needs a running event loop)."""
        entry = self._entry(key)
        entry.version += 1

        state = entry.state
        if isinstance(state, Ready):
            entry.state = Loading(previous=state.tasks)
        elif isinstance(state, Loading):
            entry.state = Loading(previous=state.previous)
        else:
            entry.state = Loading()

        # An in-flight fetch notices the version bump when it completes and restarts.
        self._start_fetch(key, entry)
        logger.debug("Invalidated key=%s version=%s", key, entry.version)

    def discard(self, key: str = ALL_TASKS) -> None:
        """Forget key. A fetch still in flight for it completes but its result is ignored."""
        self._entries.pop(key, None)

    def is_fetching(self, key: str = ALL_TASKS) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.inflight is not None
