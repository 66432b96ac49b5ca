# src/tracker_sync/tasks/sheet_source.py

from __future__ import annotations

"""
Spreadsheet-backed task source (Google Sheets values API).

Column contract, left to right (A..F):
    title | description | status | created | start | completion

Identity is positional: a task's id is its 0-based data row index at fetch time.
Every row-addressed write goes through SheetTaskSource.row_range(), so moving to a
stable key column later only touches this module.

Known hazard: if another actor inserts/deletes rows between a fetch and an update,
the update targets whatever row now sits at that position.
"""

import logging
import re
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from ..core.errors import FetchError, RemoteCallError
from .task_models import Task

logger = logging.getLogger(__name__)

SHEET_COLUMNS: tuple[str, ...] = (
    "title",
    "description",
    "status",
    "creation_date",
    "start_date",
    "completion_date",
)

DEFAULT_TITLE = "untitled"
DEFAULT_STATUS = "unspecified"

DEFAULT_BASE_URL = "https://sheets.googleapis.com"
FALLBACK_SHEET_TITLE = "Sheet1"

_UPDATED_ROW_RE = re.compile(r"![A-Z]+(\d+)")


def _column_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    letters = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _quote_sheet_title(title: str) -> str:
    if re.fullmatch(r"[A-Za-z0-9_]+", title):
        return title
    return "'" + title.replace("'", "''") + "'"


def _error_message(resp: httpx.Response, fallback: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"{fallback} (HTTP {resp.status_code})"
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return f"{fallback} (HTTP {resp.status_code})"


class SheetsClient:
    """
    Minimal async client for the Sheets v4 values endpoints.

    Auth is either an API key (read-only for public sheets) or an OAuth access token.
    Obtaining the token is the integrator's concern.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        spreadsheet_id: str,
        api_key: str | None = None,
        access_token: str | None = None,
        sheet_title: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        if not spreadsheet_id:
            raise ValueError("spreadsheet_id is required")
        self._http = http
        self._spreadsheet_id = spreadsheet_id
        self._api_key = api_key or None
        self._access_token = access_token or None
        self._sheet_title = sheet_title or None
        self._base_url = base_url.rstrip("/")

    # ---- low-level helpers ----

    def _url(self, suffix: str = "") -> str:
        return f"{self._base_url}/v4/spreadsheets/{quote(self._spreadsheet_id, safe='')}{suffix}"

    def _values_url(self, a1_range: str, action: str = "") -> str:
        return self._url(f"/values/{quote(a1_range, safe='')}{action}")

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self._api_key:
            params["key"] = self._api_key
        return params

    def _headers(self) -> dict[str, str]:
        if self._access_token:
            return {"Authorization": f"Bearer {self._access_token}"}
        return {}

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str],
        json: Any | None = None,
        fallback: str,
    ) -> dict[str, Any]:
        try:
            resp = await self._http.request(method, url, params=params, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            raise RemoteCallError(f"{fallback}: {e.__class__.__name__}: {e}") from e

        if resp.status_code >= 400:
            raise RemoteCallError(_error_message(resp, fallback), status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteCallError(f"{fallback}: response is not JSON", status_code=resp.status_code) from e
        if not isinstance(data, dict):
            raise RemoteCallError(f"{fallback}: unexpected response shape", status_code=resp.status_code)
        return data

    # ---- public API ----

    async def sheet_title(self) -> str:
        """Configured title, or the first sheet's title from spreadsheet metadata."""
        if self._sheet_title:
            return self._sheet_title

        meta = await self._request(
            "GET",
            self._url(),
            params=self._params(fields="sheets.properties.title"),
            fallback="Failed to fetch spreadsheet metadata",
        )
        title = FALLBACK_SHEET_TITLE
        sheets = meta.get("sheets") or []
        if sheets and isinstance(sheets[0], dict):
            title = str((sheets[0].get("properties") or {}).get("title") or FALLBACK_SHEET_TITLE)

        self._sheet_title = title
        logger.debug("Resolved sheet title: %s", title)
        return title

    async def get_values(self, a1_range: str) -> list[list[str]]:
        data = await self._request(
            "GET",
            self._values_url(a1_range),
            params=self._params(),
            fallback="Failed to fetch data from the spreadsheet",
        )
        values = data.get("values") or []
        if not isinstance(values, list):
            raise RemoteCallError("Spreadsheet returned malformed values")
        return [[str(c) for c in row] if isinstance(row, list) else [] for row in values]

    async def append_row(self, a1_range: str, row: Sequence[str]) -> dict[str, Any]:
        return await self._request(
            "POST",
            self._values_url(a1_range, ":append"),
            params=self._params(valueInputOption="USER_ENTERED"),
            json={"values": [list(row)]},
            fallback="Failed to append a row",
        )

    async def update_row(self, a1_range: str, row: Sequence[str]) -> dict[str, Any]:
        return await self._request(
            "PUT",
            self._values_url(a1_range),
            params=self._params(valueInputOption="USER_ENTERED"),
            json={"range": a1_range, "majorDimension": "ROWS", "values": [list(row)]},
            fallback="Failed to update a row",
        )


def row_to_task(row: Sequence[str], index: int) -> Task:
    """Map one positional row onto a Task. Short rows are padded with empty cells."""
    cells = [str(c).strip() if c is not None else "" for c in row]
    cells += [""] * max(0, len(SHEET_COLUMNS) - len(cells))

    return Task(
        id=str(index),
        title=cells[0] or DEFAULT_TITLE,
        description=cells[1],
        status=cells[2] or DEFAULT_STATUS,
        creation_date=cells[3],
        start_date=cells[4],
        completion_date=cells[5],
        row_index=index,
    )


def task_values_to_row(values: dict[str, Any]) -> list[str]:
    return ["" if values.get(name) is None else str(values[name]) for name in SHEET_COLUMNS]


def parse_row_index(task_id: str) -> int:
    try:
        idx = int(str(task_id).strip())
    except ValueError as e:
        raise ValueError(f"Not a sheet row id: {task_id!r}") from e
    if idx < 0:
        raise ValueError(f"Not a sheet row id: {task_id!r}")
    return idx


class SheetTaskSource:
    """Tabular Remote Source Adapter."""

    def __init__(self, client: SheetsClient, *, has_header: bool = True) -> None:
        self.client = client
        self.has_header = has_header

    def _header_offset(self) -> int:
        return 1 if self.has_header else 0

    def rows_to_tasks(self, grid: Sequence[Sequence[str]]) -> list[Task]:
        data_rows = list(grid)[self._header_offset():]
        tasks: list[Task] = []
        for index, row in enumerate(data_rows):
            if not any(str(c).strip() for c in row):
                # Blank spacer row: skipped, but indices of later rows stay positional.
                continue
            tasks.append(row_to_task(row, index))
        return tasks

    async def fetch_all(self) -> list[Task]:
        try:
            grid = await self.client.get_values(await self.sheet_range())
        except RemoteCallError as e:
            raise FetchError(e.message) from e

        tasks = self.rows_to_tasks(grid)
        logger.debug("Sheet fetch: rows=%d tasks=%d", len(grid), len(tasks))
        return tasks

    async def row_range(self, row_index: int) -> str:
        """A1 range covering one data row, e.g. Sheet1!A3:F3."""
        title = await self.client.sheet_title()
        sheet_row = row_index + 1 + self._header_offset()
        last_col = _column_letter(len(SHEET_COLUMNS) - 1)
        return f"{_quote_sheet_title(title)}!A{sheet_row}:{last_col}{sheet_row}"

    async def sheet_range(self) -> str:
        """Whole-sheet range (also the append target)."""
        return _quote_sheet_title(await self.client.sheet_title())

    def row_index_from_update(self, response: dict[str, Any]) -> int | None:
        """Recover the data row index from an append response's updatedRange."""
        updates = response.get("updates") or {}
        m = _UPDATED_ROW_RE.search(str(updates.get("updatedRange") or ""))
        if not m:
            return None
        index = int(m.group(1)) - 1 - self._header_offset()
        return index if index >= 0 else None
