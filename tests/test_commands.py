# tests/test_commands.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from tracker_sync.cli.bootstrap import create_initial_state, shutdown_state
from tracker_sync.cli.commands import CommandRegistry, registry
from tracker_sync.tasks.views import ALL


@pytest.fixture()
def state():
    return SimpleNamespace(category=ALL, ascending=None, runner=None)


@pytest.fixture()
def live_state(settings, notifier):
    """Real AppState on the local SQLite backend, with its background loop."""
    app_state = create_initial_state(settings=settings, notifier=notifier)
    try:
        yield app_state
    finally:
        shutdown_state(app_state)


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    notes: list[str] = []
    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/BEE y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_help_lists_registered_commands(state) -> None:
    text = registry.handle(state, "/help") or ""
    for name in ("/list", "/add", "/edit", "/delete", "/refresh"):
        assert name in text


def test_filter_and_sort_update_list_controls(state) -> None:
    assert registry.handle(state, "/filter done") == "Filter: done"
    assert state.category == "done"
    assert registry.handle(state, "/filter progress") == "Filter: in_progress"
    assert registry.handle(state, "/filter archived") == "Usage: /filter all | progress | done | other."
    assert state.category == "in_progress"

    assert registry.handle(state, "/sort desc") == "Sort: desc"
    assert state.ascending is False
    assert registry.handle(state, "/sort off") == "Sort: off"
    assert state.ascending is None


def test_task_lifecycle_through_console_commands(live_state, notifier) -> None:
    assert registry.handle(live_state, "/refresh") == "Refreshed: 0 tasks."
    assert registry.handle(live_state, "/list") == "No tasks yet. Use /add to create one."

    reply = registry.handle(live_state, "/add Buy milk | 2% | pending | | 01/01/2020") or ""
    assert reply.endswith("] Buy milk")
    task_id = reply[1 : reply.index("]")]

    assert registry.handle(live_state, "/refresh") == "Refreshed: 1 tasks."
    listing = registry.handle(live_state, "/list") or ""
    assert "Buy milk" in listing
    assert "(OVERDUE)" in listing

    assert registry.handle(live_state, f"/edit {task_id} title=Buy oat milk; description=") == (
        f"[{task_id}] Buy oat milk | pending"
    )
    assert registry.handle(live_state, f"/done {task_id}") == f"[{task_id}] Buy oat milk | done"

    registry.handle(live_state, "/refresh")
    done_listing = registry.handle(live_state, "/list done") or ""
    assert "Buy oat milk" in done_listing
    assert "(OVERDUE)" not in done_listing
    assert registry.handle(live_state, "/counts") == "all=1 in progress=0 done=1 other=0"

    assert registry.handle(live_state, f"/rm {task_id}") == f"Deleted [{task_id}]."
    registry.handle(live_state, "/refresh")
    assert registry.handle(live_state, "/list all") == "No tasks yet. Use /add to create one."

    assert notifier.successes == ["Task created", "Task updated", "Task updated", "Task deleted"]
    assert notifier.failures == []


def test_failed_writes_are_reported_once_by_the_notifier(live_state, notifier) -> None:
    assert registry.handle(live_state, "/add") == ""
    assert registry.handle(live_state, "/delete nope") == ""

    assert notifier.failures == ["Title is required", "Task nope not found"]
    assert notifier.successes == []


def test_status_reports_backend(live_state) -> None:
    registry.handle(live_state, "/refresh")
    text = registry.handle(live_state, "/status") or ""

    assert "Backend: local" in text
    assert "Auto-refresh: off" in text
    assert "Cache: ready (0 tasks)" in text


def test_raw_text_commands_keep_inner_whitespace(state) -> None:
    reg = CommandRegistry()
    seen: dict[str, list[str]] = {}

    def grab(name):
        def handler(state, args):
            seen[name] = args
            return name

        return handler

    reg.register("note", grab("note"), "note", aliases=["n"], raw_text=True)
    reg.register("split", grab("split"), "split")

    reg.handle(state, "/n  Buy  milk |  two  spaces ")
    reg.handle(state, "/split a   b")
    reg.handle(state, "/note")

    assert seen["note"] == []
    assert seen["split"] == ["a", "b"]
    reg.handle(state, "/note Buy  milk |  two  spaces ")
    assert seen["note"] == ["Buy  milk |  two  spaces"]


def test_add_and_edit_keep_spacing_in_titles(live_state, notifier) -> None:
    reply = registry.handle(live_state, "/add Buy  2  litres | keep   this  gap") or ""
    assert reply.endswith("] Buy  2  litres")
    task_id = reply[1 : reply.index("]")]

    assert registry.handle(live_state, f"/edit {task_id} title=Call  Anna  back") == (
        f"[{task_id}] Call  Anna  back | in-progress"
    )
    registry.handle(live_state, "/refresh")
    task = live_state.runner.call(live_state.session.find_cached, task_id)
    assert task.title == "Call  Anna  back"
    assert task.description == "keep   this  gap"
