# src/tracker_sync/tasks/task_refresher.py

from __future__ import annotations

"""
Periodic refresh.

A small polling loop that invalidates a cache key every interval so edits made
outside this client (someone typing into the spreadsheet) show up without an
explicit refresh. The policy is a value, so push-based invalidation can replace
the timer later without touching the cache.

To stop the loop, cancel the coroutine/task.
"""

import asyncio
import logging
from dataclasses import dataclass

from .task_cache import ALL_TASKS, TaskCache

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 30.0
MIN_REFRESH_INTERVAL_SECONDS = 0.01


@dataclass(slots=True, frozen=True)
class RefreshPolicy:
    """interval_seconds=None disables polling."""

    interval_seconds: float | None = DEFAULT_REFRESH_INTERVAL_SECONDS

    @property
    def enabled(self) -> bool:
        return self.interval_seconds is not None and self.interval_seconds > 0

    @classmethod
    def from_seconds(cls, seconds: float | int | None) -> RefreshPolicy:
        if seconds is None or float(seconds) <= 0:
            return cls(interval_seconds=None)
        return cls(interval_seconds=float(seconds))


async def run_refresh_loop(
        cache: TaskCache,
        *,
        key: str = ALL_TASKS,
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
) -> None:
    """
    Every interval_seconds:
    - skip if a fetch for key is already in flight (single-flight covers it)
    - otherwise invalidate key, which starts a background refetch

    Failures are logged and the loop keeps going.
    """
    sleep_s = max(MIN_REFRESH_INTERVAL_SECONDS, float(interval_seconds))
    logger.info("Refresh loop started key=%s interval=%.2fs", key, sleep_s)

    while True:
        await asyncio.sleep(sleep_s)

        if cache.is_fetching(key):
            logger.debug("Refresh skipped key=%s (fetch in flight)", key)
            continue

        try:
            cache.invalidate(key)
        except Exception:
            logger.exception("Periodic invalidate failed key=%s", key)


def start_refresher(cache: TaskCache, policy: RefreshPolicy, *, key: str = ALL_TASKS) -> asyncio.Task[None] | None:
    """Schedule run_refresh_loop on the running loop, or return None when polling is off."""
    if not policy.enabled or policy.interval_seconds is None:
        logger.info("Periodic refresh disabled key=%s", key)
        return None
    return asyncio.get_running_loop().create_task(
        run_refresh_loop(cache, key=key, interval_seconds=policy.interval_seconds)
    )
