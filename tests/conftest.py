# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tracker_sync.tasks.sheet_source import SheetsClient, SheetTaskSource

from .fakes import SHEETS_BASE_URL, SPREADSHEET_ID, FakeNotifier, FakeRecordBackend, FakeSheet

HEADER = ["Title", "Description", "Status", "Created", "Start", "Completion"]


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tracker-test",
        data_dir=tmp_path,
        backend="local",
        local_db_path=tmp_path / "tasks.sqlite3",
        local_user_id="tester",
        refresh_interval_seconds=0,
        fetch_timeout_seconds=5.0,
        http_timeout_seconds=5.0,
    )


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def record_backend() -> FakeRecordBackend:
    return FakeRecordBackend()


@pytest.fixture()
def fake_sheet() -> FakeSheet:
    return FakeSheet(
        [
            HEADER,
            ["Buy milk", "", "pending", "2024-01-01", "", ""],
            ["Write report", "Q3 numbers", "В процессе", "2024-01-02", "2024-01-03", "01/01/2020"],
            ["Ship release", "", "Выполнено", "2024-01-04", "", "2024-02-01"],
        ]
    )


def make_sheet_source(sheet: FakeSheet, *, has_header: bool = True, sheet_title: str | None = None) -> SheetTaskSource:
    client = SheetsClient(
        sheet.client(),
        spreadsheet_id=SPREADSHEET_ID,
        api_key="test-key",
        sheet_title=sheet_title,
        base_url=SHEETS_BASE_URL,
    )
    return SheetTaskSource(client, has_header=has_header)
