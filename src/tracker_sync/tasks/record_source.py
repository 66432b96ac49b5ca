# src/tracker_sync/tasks/record_source.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..core.errors import FetchError, RemoteCallError
from ..core.ports import Record, RecordBackend
from .task_models import Task, TaskStatus
from .task_store import TaskStore

logger = logging.getLogger(__name__)

ORDER_COLUMN = "creation_date"


def _error_message(resp: httpx.Response, fallback: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"{fallback} (HTTP {resp.status_code})"
    if isinstance(data, dict):
        for key in ("message", "msg", "error_description", "error"):
            val = data.get(key)
            if isinstance(val, str) and val.strip():
                return val
    return f"{fallback} (HTTP {resp.status_code})"


def _error_code(resp: httpx.Response) -> str | None:
    try:
        data = resp.json()
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("code") is not None:
        return str(data["code"])
    return None


class PostgrestBackend:
    """
    Relational backend over a PostgREST endpoint (the Supabase REST shape).

    - rows live under /rest/v1/<table>
    - the current user comes from /auth/v1/user (needs an access token)
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
        table: str = "tasks",
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token or None
        self._table = table

    def _headers(self, *, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _table_url(self) -> str:
        return f"{self._base_url}/rest/v1/{self._table}"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        fallback: str,
        params: dict[str, str] | None = None,
        json: Any | None = None,
        prefer: str | None = None,
    ) -> Any:
        try:
            resp = await self._http.request(
                method, url, params=params, json=json, headers=self._headers(prefer=prefer)
            )
        except httpx.HTTPError as e:
            raise RemoteCallError(f"{fallback}: {e.__class__.__name__}: {e}") from e

        if resp.status_code >= 400:
            raise RemoteCallError(
                _error_message(resp, fallback),
                status_code=resp.status_code,
                code=_error_code(resp),
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteCallError(f"{fallback}: response is not JSON", status_code=resp.status_code) from e

    @staticmethod
    def _rows(data: Any, fallback: str) -> list[Record]:
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise RemoteCallError(f"{fallback}: unexpected response shape")
        return data

    async def list_records(self, *, order_by: str, descending: bool = True) -> list[Record]:
        direction = "desc" if descending else "asc"
        data = await self._send(
            "GET",
            self._table_url(),
            params={"select": "*", "order": f"{order_by}.{direction}"},
            fallback="Failed to load tasks",
        )
        return self._rows(data, "Failed to load tasks")

    async def insert_record(self, values: Mapping[str, Any]) -> Record:
        data = await self._send(
            "POST",
            self._table_url(),
            json=[dict(values)],
            prefer="return=representation",
            fallback="Failed to create task",
        )
        rows = self._rows(data, "Failed to create task")
        if not rows:
            raise RemoteCallError("Failed to create task: server returned no row")
        return rows[0]

    async def update_record(self, record_id: str, values: Mapping[str, Any]) -> Record | None:
        data = await self._send(
            "PATCH",
            self._table_url(),
            params={"id": f"eq.{record_id}"},
            json=dict(values),
            prefer="return=representation",
            fallback="Failed to update task",
        )
        rows = self._rows(data, "Failed to update task")
        return rows[0] if rows else None

    async def delete_record(self, record_id: str) -> bool:
        data = await self._send(
            "DELETE",
            self._table_url(),
            params={"id": f"eq.{record_id}"},
            prefer="return=representation",
            fallback="Failed to delete task",
        )
        return bool(self._rows(data, "Failed to delete task"))

    async def current_principal(self) -> str | None:
        if not self._access_token:
            return None
        try:
            data = await self._send("GET", f"{self._base_url}/auth/v1/user", fallback="Failed to load user")
        except RemoteCallError as e:
            if e.status_code in (401, 403):
                return None
            raise
        if isinstance(data, dict) and data.get("id"):
            return str(data["id"])
        return None


class LocalRecordBackend:
    """RecordBackend over the local SQLite TaskStore (calls run in a worker thread)."""

    def __init__(self, store: TaskStore, *, user_id: str | None = None) -> None:
        self.store = store
        self.user_id = user_id or None

    async def list_records(self, *, order_by: str, descending: bool = True) -> list[Record]:
        return await asyncio.to_thread(self.store.list_tasks, order_by=order_by, descending=descending)

    async def insert_record(self, values: Mapping[str, Any]) -> Record:
        return await asyncio.to_thread(self.store.add_task, values)

    async def update_record(self, record_id: str, values: Mapping[str, Any]) -> Record | None:
        return await asyncio.to_thread(self.store.update_task_fields, record_id, values)

    async def delete_record(self, record_id: str) -> bool:
        return await asyncio.to_thread(self.store.delete_task, record_id)

    async def current_principal(self) -> str | None:
        return self.user_id


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value)
    return s if s.strip() else None


def record_to_task(record: Mapping[str, Any]) -> Task:
    record_id = record.get("id")
    if record_id is None or str(record_id).strip() == "":
        raise ValueError("record has no id")

    return Task(
        id=str(record_id),
        title=str(record.get("title") or ""),
        description=_opt_str(record.get("description")),
        status=str(record.get("status") or TaskStatus.PENDING.value),
        start_date=_opt_str(record.get("start_date")),
        completion_date=_opt_str(record.get("completion_date")),
        creation_date=_opt_str(record.get("creation_date")),
    )


class RecordTaskSource:
    """Record Remote Source Adapter: ids come from the backend, newest first."""

    def __init__(self, backend: RecordBackend) -> None:
        self.backend = backend

    async def fetch_all(self) -> list[Task]:
        try:
            records = await self.backend.list_records(order_by=ORDER_COLUMN, descending=True)
        except RemoteCallError as e:
            raise FetchError(e.message) from e

        try:
            tasks = [record_to_task(r) for r in records]
        except ValueError as e:
            raise FetchError(f"Malformed task record: {e}") from e

        logger.debug("Record fetch: tasks=%d", len(tasks))
        return tasks
