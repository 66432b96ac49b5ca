# src/tracker_sync/tasks/mutations.py

from __future__ import annotations

"""
Mutation pipeline: create / update / delete against one backend.

Every operation:
1) validates locally (no network call on a validation failure)
2) performs the remote write
3) only after the write is acknowledged, invalidates the "all tasks" cache key
4) signals the outcome exactly once (success or failure) through the notifier

Errors are never swallowed: after the failure signal the typed error is re-raised.
Concurrent writes to the same task are not coordinated; the last write wins.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, date, datetime
from typing import Any, TypeVar

from ..core.errors import (
    AuthError,
    NotFoundError,
    RemoteCallError,
    RemoteWriteError,
    TrackerError,
    UnsupportedOperationError,
    ValidationError,
)
from ..core.notifier import safe_notify
from ..core.ports import Notifier, RecordBackend
from .record_source import record_to_task
from .sheet_source import SheetTaskSource, parse_row_index, row_to_task, task_values_to_row
from .task_cache import ALL_TASKS, TaskCache
from .task_models import EDITABLE_FIELDS, Task, TaskDraft

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OPTIONAL_TEXT_FIELDS = ("description", "start_date", "completion_date")


def _require_title(title: Any) -> None:
    if not str(title or "").strip():
        raise ValidationError("Title is required")


def _check_patch_keys(patch: Mapping[str, Any]) -> None:
    if "id" in patch or "creation_date" in patch:
        raise ValidationError("id and creation_date cannot be changed")
    unknown = set(patch) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")


def _record_task(record: Mapping[str, Any]) -> Task:
    try:
        return record_to_task(record)
    except ValueError as e:
        raise RemoteWriteError(f"Malformed task record: {e}") from e


def _write_error(e: RemoteCallError, what: str) -> TrackerError:
    if e.is_not_found:
        return NotFoundError(f"{what} not found")
    return RemoteWriteError(e.message)


class _Pipeline:
    def __init__(
        self,
        *,
        cache: TaskCache | None,
        notifier: Notifier | None,
        cache_key: str = ALL_TASKS,
    ) -> None:
        self.cache = cache
        self.notifier = notifier
        self.cache_key = cache_key

    def _invalidate(self) -> None:
        if self.cache is None:
            return
        try:
            self.cache.invalidate(self.cache_key)
        except Exception:
            logger.exception("Cache invalidation failed key=%s", self.cache_key)

    async def _perform(self, action: str, op: Callable[[], Awaitable[T]], ok_message: str) -> T:
        try:
            result = await op()
        except TrackerError as e:
            logger.info("Mutation %s failed: %s: %s", action, e.__class__.__name__, e)
            safe_notify(self.notifier, False, str(e) or f"Failed to {action} task")
            raise
        except asyncio.CancelledError:
            # Shutdown cancels in-flight writes; the outcome is unknown but still reported once.
            logger.warning("Mutation %s cancelled", action)
            safe_notify(self.notifier, False, f"Task {action} cancelled")
            raise
        except Exception:
            logger.exception("Mutation %s crashed", action)
            safe_notify(self.notifier, False, f"Failed to {action} task")
            raise

        # Refetch strictly after the remote write was acknowledged.
        self._invalidate()
        safe_notify(self.notifier, True, ok_message)
        return result


class SheetMutations(_Pipeline):
    """
    Mutations for the spreadsheet backend.

    update() is a full-row replace addressed by row position; callers pass every
    editable field. creation_date is carried over from the row currently at that
    position. Deleting rows is not supported by this backend.
    """

    requires_full_row = True

    def __init__(
        self,
        source: SheetTaskSource,
        *,
        cache: TaskCache | None = None,
        notifier: Notifier | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        super().__init__(cache=cache, notifier=notifier)
        self.source = source
        self._today = today

    async def create(self, draft: TaskDraft) -> Task:
        async def op() -> Task:
            _require_title(draft.title)
            values: dict[str, Any] = draft.values()
            values["creation_date"] = self._today().isoformat()
            row = task_values_to_row(values)

            try:
                resp = await self.source.client.append_row(await self.source.sheet_range(), row)
            except RemoteCallError as e:
                raise RemoteWriteError(e.message) from e

            index = self.source.row_index_from_update(resp)
            task = row_to_task(row, index if index is not None else 0)
            if index is None:
                task.id = ""
                task.row_index = None
            return task

        return await self._perform("create", op, "Task created")

    async def update(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        async def op() -> Task:
            _check_patch_keys(patch)
            missing = [name for name in EDITABLE_FIELDS if name not in patch]
            if missing:
                raise ValidationError(
                    f"Spreadsheet rows are replaced whole; missing field(s): {', '.join(missing)}"
                )
            _require_title(patch.get("title"))
            try:
                index = parse_row_index(task_id)
            except ValueError as e:
                raise NotFoundError(str(e)) from e

            try:
                a1_range = await self.source.row_range(index)
                current = await self.source.client.get_values(a1_range)
                existing = current[0] if current else []
                if not any(str(c).strip() for c in existing):
                    raise NotFoundError(f"Task {task_id} not found")

                values: dict[str, Any] = {name: patch.get(name) for name in EDITABLE_FIELDS}
                values["creation_date"] = existing[3] if len(existing) > 3 else ""
                row = task_values_to_row(values)
                await self.source.client.update_row(a1_range, row)
            except RemoteCallError as e:
                raise _write_error(e, f"Task {task_id}") from e

            return row_to_task(row, index)

        return await self._perform("update", op, "Task updated")

    async def delete(self, task_id: str) -> None:
        async def op() -> None:
            raise UnsupportedOperationError("Deleting tasks is not supported by the spreadsheet backend")

        await self._perform("delete", op, "Task deleted")


class RecordMutations(_Pipeline):
    """Mutations for the relational backend: stable ids, partial updates, auth on create."""

    requires_full_row = False

    def __init__(
        self,
        backend: RecordBackend,
        *,
        cache: TaskCache | None = None,
        notifier: Notifier | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        super().__init__(cache=cache, notifier=notifier)
        self.backend = backend
        self._now = now

    @staticmethod
    def _normalize(values: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(values)
        for name in _OPTIONAL_TEXT_FIELDS:
            if name in out and out[name] is not None and not str(out[name]).strip():
                out[name] = None
        if "title" in out:
            out["title"] = str(out["title"]).strip()
        return out

    async def create(self, draft: TaskDraft) -> Task:
        async def op() -> Task:
            _require_title(draft.title)
            try:
                principal = await self.backend.current_principal()
            except RemoteCallError as e:
                raise AuthError(f"Could not verify the current user: {e.message}") from e
            if not principal:
                raise AuthError("Sign-in required to create tasks")

            values = self._normalize(draft.values())
            values["user_id"] = principal
            values["creation_date"] = self._now().isoformat()

            try:
                record = await self.backend.insert_record(values)
            except RemoteCallError as e:
                raise RemoteWriteError(e.message) from e
            return _record_task(record)

        return await self._perform("create", op, "Task created")

    async def update(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        async def op() -> Task:
            _check_patch_keys(patch)
            if not patch:
                raise ValidationError("Nothing to update")
            if "title" in patch:
                _require_title(patch["title"])

            try:
                record = await self.backend.update_record(task_id, self._normalize(patch))
            except RemoteCallError as e:
                raise _write_error(e, f"Task {task_id}") from e
            if record is None:
                raise NotFoundError(f"Task {task_id} not found")
            return _record_task(record)

        return await self._perform("update", op, "Task updated")

    async def delete(self, task_id: str) -> None:
        async def op() -> None:
            try:
                deleted = await self.backend.delete_record(task_id)
            except RemoteCallError as e:
                raise _write_error(e, f"Task {task_id}") from e
            if not deleted:
                raise NotFoundError(f"Task {task_id} not found")

        await self._perform("delete", op, "Task deleted")
