# src/tracker_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The cache, the mutation pipeline and the session depend on Protocols instead of
concrete backends. This keeps the spreadsheet / relational / local variants
swappable and makes testing easier.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from ..tasks.task_models import Task, TaskDraft

Record = dict[str, Any]
# One row of the relational backend, keyed by column name.


class TaskSource(Protocol):
    """Remote Source Adapter: fetch the whole collection as domain tasks."""

    async def fetch_all(self) -> list[Task]: ...


class RecordBackend(Protocol):
    """
    Query interface of a relational store.

    Implementations raise RemoteCallError on any failure.
    update_record/delete_record return None/False when no row matched the id.
    """

    async def list_records(self, *, order_by: str, descending: bool = True) -> list[Record]: ...
    async def insert_record(self, values: Mapping[str, Any]) -> Record: ...
    async def update_record(self, record_id: str, values: Mapping[str, Any]) -> Record | None: ...
    async def delete_record(self, record_id: str) -> bool: ...
    async def current_principal(self) -> str | None: ...


class TaskMutations(Protocol):
    """Mutation Pipeline for one backend."""

    # True when update() replaces the whole row and needs every editable field.
    requires_full_row: bool

    async def create(self, draft: TaskDraft) -> Task: ...
    async def update(self, task_id: str, patch: Mapping[str, Any]) -> Task: ...
    async def delete(self, task_id: str) -> None: ...


class Notifier(Protocol):
    """User-visible outcome signal (toast, console line, ...)."""

    def success(self, message: str) -> None: ...
    def failure(self, message: str) -> None: ...
