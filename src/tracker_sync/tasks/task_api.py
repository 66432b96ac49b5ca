# src/tracker_sync/tasks/task_api.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from ..core.ports import TaskMutations, TaskSource
from .task_cache import ALL_TASKS, CachedState, Loading, Ready, TaskCache
from .task_models import EDITABLE_FIELDS, StatusCategory, Task, TaskDraft
from .views import ALL, TaskView, build_view

logger = logging.getLogger(__name__)


class TrackerSession:
    """
    What a UI binds to, identical for every backend:
    - snapshot()/view(): loading, ready (tasks) or failed (error)
    - create()/update()/delete(): mutation triggers
    - notifications are delivered by the mutation pipeline's notifier
    """

    def __init__(
        self,
        *,
        backend_name: str,
        source: TaskSource,
        mutations: TaskMutations,
        cache: TaskCache,
        key: str = ALL_TASKS,
    ) -> None:
        self.backend_name = backend_name
        self.source = source
        self.mutations = mutations
        self.cache = cache
        self.key = key
        cache.register(key, source.fetch_all)

    @property
    def requires_full_row(self) -> bool:
        return bool(getattr(self.mutations, "requires_full_row", False))

    # ---- reads ----

    def snapshot(self) -> CachedState:
        return self.cache.read(self.key)

    async def tasks(self) -> list[Task]:
        return await self.cache.get(self.key)

    def view(
        self,
        *,
        category: StatusCategory | str = ALL,
        ascending: bool | None = None,
        today: date | None = None,
    ) -> TaskView | None:
        """Derived view of the current snapshot; None while nothing has loaded yet or on failure."""
        state = self.snapshot()
        if isinstance(state, Ready):
            tasks = state.tasks
        elif isinstance(state, Loading) and state.previous is not None:
            tasks = state.previous
        else:
            return None
        return build_view(list(tasks), category=category, ascending=ascending, today=today)

    def find_cached(self, task_id: str) -> Task | None:
        state = self.snapshot()
        if isinstance(state, Ready):
            tasks = state.tasks
        elif isinstance(state, Loading):
            tasks = state.previous or ()
        else:
            tasks = ()
        return next((t for t in tasks if t.id == task_id), None)

    def refresh(self) -> None:
        logger.debug("Manual refresh backend=%s key=%s", self.backend_name, self.key)
        self.cache.invalidate(self.key)

    # ---- writes ----

    async def create(self, draft: TaskDraft) -> Task:
        return await self.mutations.create(draft)

    async def update(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        return await self.mutations.update(task_id, patch)

    async def edit(self, task_id: str, changes: Mapping[str, Any]) -> Task:
        """
        Apply changes the way an edit form does.

        For full-row backends the changes are merged over the cached task first,
        like a dialog pre-filled with the current values.
        """
        patch = dict(changes)
        if self.requires_full_row:
            current = self.find_cached(task_id)
            if current is not None:
                base = {name: getattr(current, name) for name in EDITABLE_FIELDS}
                base.update(patch)
                patch = base
        return await self.mutations.update(task_id, patch)

    async def delete(self, task_id: str) -> None:
        await self.mutations.delete(task_id)
