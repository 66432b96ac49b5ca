# tests/test_mutations.py

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest

from tracker_sync.core.errors import (
    AuthError,
    NotFoundError,
    RemoteCallError,
    RemoteWriteError,
    UnsupportedOperationError,
    ValidationError,
)
from tracker_sync.tasks.mutations import RecordMutations, SheetMutations
from tracker_sync.tasks.record_source import RecordTaskSource
from tracker_sync.tasks.task_api import TrackerSession
from tracker_sync.tasks.task_cache import TaskCache
from tracker_sync.tasks.task_models import TaskDraft

from .conftest import HEADER, make_sheet_source
from .fakes import FakeSheet

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _full_row(**overrides):
    values = {
        "title": "Write report",
        "description": "Q3 numbers",
        "status": "done",
        "start_date": "2024-01-03",
        "completion_date": "2024-02-01",
    }
    values.update(overrides)
    return values


def _record_session(backend, notifier) -> TrackerSession:
    cache = TaskCache()
    return TrackerSession(
        backend_name="test",
        source=RecordTaskSource(backend),
        mutations=RecordMutations(backend, cache=cache, notifier=notifier, now=lambda: FIXED_NOW),
        cache=cache,
    )


def _sheet_session(sheet, notifier) -> TrackerSession:
    cache = TaskCache()
    source = make_sheet_source(sheet)
    return TrackerSession(
        backend_name="sheets",
        source=source,
        mutations=SheetMutations(source, cache=cache, notifier=notifier, today=lambda: date(2024, 5, 1)),
        cache=cache,
    )


class ExplodingNotifier:
    def success(self, message: str) -> None:
        raise RuntimeError("toast failed")

    def failure(self, message: str) -> None:
        raise RuntimeError("toast failed")


# ---- record backend ----


@pytest.mark.asyncio
async def test_create_then_fetch_round_trip(record_backend, notifier) -> None:
    session = _record_session(record_backend, notifier)
    assert await session.tasks() == []

    created = await session.create(
        TaskDraft(title="Buy milk", description="2%", status="pending", completion_date="2024-07-01")
    )
    tasks = await session.tasks()

    assert len(tasks) == 1
    fetched = tasks[0]
    assert fetched.id == created.id
    assert (fetched.title, fetched.description, fetched.status, fetched.completion_date) == (
        "Buy milk",
        "2%",
        "pending",
        "2024-07-01",
    )
    assert fetched.creation_date == FIXED_NOW.isoformat()
    assert record_backend.rows[created.id]["user_id"] == "user-1"
    assert notifier.successes == ["Task created"]
    assert notifier.failures == []


@pytest.mark.asyncio
async def test_refetch_happens_only_after_write_is_acknowledged(record_backend, notifier) -> None:
    session = _record_session(record_backend, notifier)
    await session.tasks()

    await session.create(TaskDraft(title="A"))
    await session.tasks()

    assert record_backend.calls == ["list", "principal", "insert", "list"]


@pytest.mark.asyncio
async def test_default_status_is_in_progress(record_backend, notifier) -> None:
    session = _record_session(record_backend, notifier)

    created = await session.create(TaskDraft(title="Fresh"))

    assert created.status == "in-progress"


@pytest.mark.asyncio
async def test_empty_title_fails_before_any_backend_call(record_backend, notifier) -> None:
    session = _record_session(record_backend, notifier)

    with pytest.raises(ValidationError):
        await session.create(TaskDraft(title="   "))

    assert record_backend.calls == []
    assert notifier.failures == ["Title is required"]
    assert notifier.total == 1


@pytest.mark.asyncio
async def test_create_requires_signed_in_principal(record_backend, notifier) -> None:
    record_backend.principal = None
    session = _record_session(record_backend, notifier)

    with pytest.raises(AuthError, match="Sign-in required"):
        await session.create(TaskDraft(title="Buy milk"))

    assert "insert" not in record_backend.calls
    assert notifier.total == 1
    assert len(notifier.failures) == 1


@pytest.mark.asyncio
async def test_server_rejection_message_reaches_notifier(record_backend, notifier) -> None:
    session = _record_session(record_backend, notifier)
    record_backend.fail = RemoteCallError("duplicate key value violates unique constraint", status_code=409)

    with pytest.raises(RemoteWriteError, match="duplicate key value"):
        await session.create(TaskDraft(title="Dup"))

    assert notifier.failures == ["duplicate key value violates unique constraint"]
    assert notifier.successes == []


@pytest.mark.asyncio
async def test_failed_write_does_not_invalidate(record_backend, notifier) -> None:
    session = _record_session(record_backend, notifier)
    await session.tasks()
    fetches = session.cache.fetch_count

    with pytest.raises(NotFoundError):
        await session.update("missing", {"status": "done"})

    assert session.cache.fetch_count == fetches
    assert not session.cache.is_fetching()


@pytest.mark.asyncio
async def test_partial_update_changes_only_given_fields(record_backend, notifier) -> None:
    record_backend.rows["r1"] = {
        "id": "r1",
        "title": "Report",
        "description": "keep",
        "status": "pending",
        "completion_date": "2024-07-01",
        "creation_date": "2024-01-01",
    }
    session = _record_session(record_backend, notifier)

    task = await session.update("r1", {"status": "done", "completion_date": ""})

    assert task.status == "done"
    assert task.description == "keep"
    assert task.completion_date is None
    assert record_backend.rows["r1"]["completion_date"] is None
    assert notifier.successes == ["Task updated"]


@pytest.mark.asyncio
async def test_update_missing_task(record_backend, notifier) -> None:
    session = _record_session(record_backend, notifier)

    with pytest.raises(NotFoundError):
        await session.update("nope", {"status": "done"})

    assert notifier.failures == ["Task nope not found"]
    assert notifier.total == 1


@pytest.mark.asyncio
async def test_remote_404_on_update_is_not_found(record_backend, notifier) -> None:
    record_backend.fail = RemoteCallError("no such row", status_code=404)
    session = _record_session(record_backend, notifier)

    with pytest.raises(NotFoundError):
        await session.update("r9", {"title": "x"})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "patch",
    [{}, {"id": "other"}, {"creation_date": "2020-01-01"}, {"priority": "high"}, {"title": ""}],
)
async def test_invalid_patches_are_rejected_locally(record_backend, notifier, patch) -> None:
    session = _record_session(record_backend, notifier)

    with pytest.raises(ValidationError):
        await session.update("r1", patch)

    assert record_backend.calls == []
    assert notifier.total == 1


@pytest.mark.asyncio
async def test_delete_and_delete_missing(record_backend, notifier) -> None:
    record_backend.rows["r1"] = {"id": "r1", "title": "Gone soon", "status": "pending"}
    session = _record_session(record_backend, notifier)

    await session.delete("r1")
    assert record_backend.rows == {}

    with pytest.raises(NotFoundError):
        await session.delete("r1")

    assert notifier.successes == ["Task deleted"]
    assert notifier.failures == ["Task r1 not found"]


@pytest.mark.asyncio
async def test_broken_notifier_does_not_change_outcome(record_backend) -> None:
    session = _record_session(record_backend, ExplodingNotifier())

    task = await session.create(TaskDraft(title="Still created"))

    assert task.title == "Still created"
    assert task.id in record_backend.rows


# ---- spreadsheet backend ----


@pytest.mark.asyncio
async def test_sheet_create_appends_row_and_reports_position(fake_sheet, notifier) -> None:
    session = _sheet_session(fake_sheet, notifier)

    task = await session.create(TaskDraft(title="New task", completion_date="2024-06-30"))

    assert task.id == "3"
    assert task.row_index == 3
    assert fake_sheet.rows[-1] == ["New task", "", "in-progress", "2024-05-01", "", "2024-06-30"]
    append = fake_sheet.writes()[0]
    assert append.method == "POST"
    assert append.url.params["valueInputOption"] == "USER_ENTERED"
    assert notifier.successes == ["Task created"]

    tasks = await session.tasks()
    assert [t.title for t in tasks][-1] == "New task"


@pytest.mark.asyncio
async def test_sheet_create_with_empty_title_makes_no_request(fake_sheet, notifier) -> None:
    session = _sheet_session(fake_sheet, notifier)

    with pytest.raises(ValidationError):
        await session.create(TaskDraft(title=""))

    assert fake_sheet.requests == []
    assert notifier.failures == ["Title is required"]


@pytest.mark.asyncio
async def test_sheet_update_replaces_row_and_keeps_creation_date(fake_sheet, notifier) -> None:
    session = _sheet_session(fake_sheet, notifier)

    task = await session.update("1", _full_row())

    assert fake_sheet.rows[2] == ["Write report", "Q3 numbers", "done", "2024-01-02", "2024-01-03", "2024-02-01"]
    assert task.creation_date == "2024-01-02"
    put = fake_sheet.writes()[0]
    assert put.method == "PUT"
    assert put.url.path.endswith("/values/Tasks!A3:F3")
    assert notifier.successes == ["Task updated"]


@pytest.mark.asyncio
async def test_sheet_update_needs_every_editable_field(fake_sheet, notifier) -> None:
    session = _sheet_session(fake_sheet, notifier)

    with pytest.raises(ValidationError, match="missing field"):
        await session.update("1", {"status": "done"})

    assert fake_sheet.requests == []


@pytest.mark.asyncio
async def test_sheet_edit_merges_over_cached_row(fake_sheet, notifier) -> None:
    session = _sheet_session(fake_sheet, notifier)
    await session.tasks()

    await session.edit("0", {"status": "done"})

    assert fake_sheet.rows[1] == ["Buy milk", "", "done", "2024-01-01", "", ""]


@pytest.mark.asyncio
async def test_sheet_update_of_empty_row_is_not_found(fake_sheet, notifier) -> None:
    session = _sheet_session(fake_sheet, notifier)

    with pytest.raises(NotFoundError):
        await session.update("10", _full_row())
    with pytest.raises(NotFoundError):
        await session.update("abc", _full_row())

    assert [r for r in fake_sheet.requests if r.method == "PUT"] == []
    assert len(notifier.failures) == 2


@pytest.mark.asyncio
async def test_sheet_update_server_error(fake_sheet, notifier) -> None:
    source = make_sheet_source(fake_sheet, sheet_title="Tasks")
    mutations = SheetMutations(source, notifier=notifier)
    fake_sheet.fail_status = 500
    fake_sheet.fail_message = "Internal error encountered."

    with pytest.raises(RemoteWriteError, match="Internal error"):
        await mutations.update("0", _full_row())

    assert notifier.failures == ["Internal error encountered."]


@pytest.mark.asyncio
async def test_sheet_positional_update_after_external_row_delete(notifier) -> None:
    sheet = FakeSheet(
        [
            HEADER,
            ["A", "", "pending", "2024-01-01", "", ""],
            ["B", "", "pending", "2024-01-02", "", ""],
            ["C", "", "pending", "2024-01-03", "", ""],
            ["D", "", "pending", "2024-01-04", "", ""],
        ]
    )
    session = _sheet_session(sheet, notifier)
    tasks = await session.tasks()
    target = next(t for t in tasks if t.title == "C")
    assert target.id == "2"

    # Someone deletes row "A" in the spreadsheet UI before our write lands.
    del sheet.rows[1]
    await session.update(target.id, _full_row(title="C edited", status="done"))

    # Writes are addressed by position: the row now at index 2 ("D") is overwritten.
    assert [r[0] for r in sheet.rows[1:]] == ["B", "C", "C edited"]
    assert sheet.rows[3][3] == "2024-01-04"


@pytest.mark.asyncio
async def test_sheet_delete_is_unsupported(fake_sheet, notifier) -> None:
    session = _sheet_session(fake_sheet, notifier)

    with pytest.raises(UnsupportedOperationError):
        await session.delete("0")

    assert fake_sheet.requests == []
    assert notifier.total == 1
    assert len(notifier.failures) == 1


@pytest.mark.asyncio
async def test_cancelled_write_still_signals_once(record_backend, notifier) -> None:
    record_backend.hang = asyncio.Event()
    session = _record_session(record_backend, notifier)

    pending = asyncio.create_task(session.create(TaskDraft(title="Never lands")))
    while "insert" not in record_backend.calls:
        await asyncio.sleep(0)
    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending

    assert notifier.failures == ["Task create cancelled"]
    assert notifier.total == 1
    assert not session.cache.is_fetching()


@pytest.mark.asyncio
async def test_unparseable_id_is_not_found(record_backend, notifier) -> None:
    record_backend.fail = RemoteCallError(
        'invalid input syntax for type uuid: "abc"', status_code=400, code="22P02"
    )
    session = _record_session(record_backend, notifier)

    with pytest.raises(NotFoundError):
        await session.update("abc", {"status": "done"})
    with pytest.raises(NotFoundError):
        await session.delete("abc")

    assert notifier.failures == ["Task abc not found", "Task abc not found"]


@pytest.mark.asyncio
async def test_other_bad_request_stays_a_write_error(record_backend, notifier) -> None:
    record_backend.fail = RemoteCallError("new row violates check constraint", status_code=400, code="23514")
    session = _record_session(record_backend, notifier)

    with pytest.raises(RemoteWriteError, match="check constraint"):
        await session.update("r1", {"status": "done"})
