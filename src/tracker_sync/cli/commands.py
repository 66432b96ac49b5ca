# src/tracker_sync/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.errors import FetchError, TrackerError
from ..core.state import AppState
from ..tasks.task_cache import Failed, Loading, Ready
from ..tasks.task_models import EDITABLE_FIELDS, StatusCategory, TaskDraft, TaskStatus
from ..tasks.views import ALL, TaskView

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_CATEGORY_ALIASES: dict[str, str] = {
    "all": ALL,
    "progress": StatusCategory.IN_PROGRESS.value,
    "in_progress": StatusCategory.IN_PROGRESS.value,
    "in-progress": StatusCategory.IN_PROGRESS.value,
    "active": StatusCategory.IN_PROGRESS.value,
    "done": StatusCategory.DONE.value,
    "completed": StatusCategory.DONE.value,
    "other": StatusCategory.OTHER.value,
    "pending": StatusCategory.OTHER.value,
}


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}
        # Commands that parse free text get the untouched remainder as a single arg.
        self._raw_text: set[str] = set()

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
        raw_text: bool = False,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        keys = [key, *(alias.lower() for alias in aliases)]
        for alias in keys[1:]:
            self._handlers[alias] = handler
        if raw_text:
            self._raw_text.update(keys)

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split(maxsplit=1)
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        rest = parts[1].strip() if len(parts) > 1 else ""
        if name in self._raw_text:
            args = [rest] if rest else []
        else:
            args = rest.split()

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _runner(state: AppState):
    if state.runner is None:
        raise RuntimeError("Background loop is not running")
    return state.runner


def _parse_fields(text: str) -> dict[str, str]:
    """'title=Buy milk; status=done' -> {'title': 'Buy milk', 'status': 'done'}"""
    out: dict[str, str] = {}
    for chunk in text.split(";"):
        if not chunk.strip():
            continue
        if "=" not in chunk:
            raise ValueError(f"Expected field=value, got: {chunk.strip()!r}")
        name, value = chunk.split("=", 1)
        out[name.strip().lower()] = value.strip()
    return out


def _render_view(view: TaskView) -> str:
    c = view.counts
    order = {None: "source", True: "asc", False: "desc"}[view.ascending]
    lines = [
        f"Tasks (filter={view.category}, sort={order})  "
        f"all={c.all} in progress={c.in_progress} done={c.done}"
    ]
    if not view.rows:
        lines.append("  (no tasks)")
    for row in view.rows:
        t = row.task
        due = f" | due {t.completion_date}" if t.completion_date else ""
        flag = " (OVERDUE)" if row.overdue else ""
        lines.append(f"  [{t.id}] {t.title} | {t.status}{due}{flag}")
    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    session = state.session
    snap = _runner(state).call(session.snapshot)
    if isinstance(snap, Ready):
        cache = f"ready ({len(snap.tasks)} tasks)"
    elif isinstance(snap, Failed):
        cache = f"error: {snap.error}"
    else:
        cache = "loading"
    interval = getattr(state.settings, "refresh_interval_seconds", None)
    refresh = f"every {interval:g}s" if interval and interval > 0 else "off"
    return (
        "Status:\n"
        f"  Backend: {session.backend_name}\n"
        f"  Auto-refresh: {refresh}\n"
        f"  Cache: {cache}\n"
        f"  Filter: {state.category}  Sort: {state.ascending}"
    )


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                 -> current filter/sort
    /list done            -> switch filter, then list
    """
    if args:
        reply = cmd_filter(state, args[:1])
        if not reply.startswith("Filter:"):
            return reply

    runner = _runner(state)
    session = state.session
    snap = runner.call(session.snapshot)
    if isinstance(snap, Failed):
        return f"Error loading tasks: {snap.error}"
    if isinstance(snap, Loading) and snap.previous is None:
        return "Loading tasks... try /list again in a moment."

    view = runner.call(session.view, category=state.category, ascending=state.ascending)
    if view is None:
        return "Loading tasks... try /list again in a moment."
    if view.counts.all == 0:
        return "No tasks yet. Use /add to create one."
    return _render_view(view)


def cmd_filter(state: AppState, args: list[str]) -> str:
    if not args:
        return f"Filter: {state.category}. Use /filter all | progress | done | other."
    category = _CATEGORY_ALIASES.get(args[0].lower())
    if category is None:
        return "Usage: /filter all | progress | done | other."
    state.category = category
    return f"Filter: {category}"


def cmd_sort(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /sort asc | desc | off (by completion date)."
    arg = args[0].lower()
    if arg in ("asc", "up"):
        state.ascending = True
    elif arg in ("desc", "down"):
        state.ascending = False
    elif arg in ("off", "none"):
        state.ascending = None
    else:
        return "Usage: /sort asc | desc | off (by completion date)."
    return f"Sort: {arg}"


def cmd_counts(state: AppState, args: list[str]) -> str:
    view = _runner(state).call(state.session.view)
    if view is None:
        return "Counts unavailable (tasks not loaded)."
    c = view.counts
    return f"all={c.all} in progress={c.in_progress} done={c.done} other={c.other}"


def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    runner = _runner(state)
    if emit is not None:
        emit("Refreshing tasks...")
    runner.call(state.session.refresh)
    try:
        tasks = runner.run(state.session.tasks(), timeout=60.0)
    except FetchError as e:
        return f"Error loading tasks: {e}"
    return f"Refreshed: {len(tasks)} tasks."


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Title | description | status | start | completion
    Only the title is required.
    """
    parts = [p.strip() for p in (args[0] if args else "").split("|")]
    parts += [""] * (5 - len(parts))
    draft = TaskDraft(
        title=parts[0],
        description=parts[1] or None,
        status=parts[2] or TaskStatus.IN_PROGRESS.value,
        start_date=parts[3] or None,
        completion_date=parts[4] or None,
    )
    try:
        task = _runner(state).run(state.session.create(draft), timeout=60.0)
    except TrackerError:
        # The notifier already reported the failure.
        return ""
    return f"[{task.id}] {task.title}" if task.id else task.title


def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> title=...; status=...; completion_date=..."""
    head = args[0].split(maxsplit=1) if args else []
    if len(head) < 2:
        return f"Usage: /edit <id> field=value; field=value  (fields: {', '.join(EDITABLE_FIELDS)})"
    task_id, fields = head
    try:
        changes = _parse_fields(fields)
    except ValueError as e:
        return str(e)
    try:
        task = _runner(state).run(state.session.edit(task_id, changes), timeout=60.0)
    except TrackerError:
        return ""
    return f"[{task.id}] {task.title} | {task.status}"


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <id>"
    try:
        task = _runner(state).run(state.session.edit(args[0], {"status": TaskStatus.DONE.value}), timeout=60.0)
    except TrackerError:
        return ""
    return f"[{task.id}] {task.title} | {task.status}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <id>"
    try:
        _runner(state).run(state.session.delete(args[0]), timeout=60.0)
    except TrackerError:
        return ""
    return f"Deleted [{args[0]}]."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, refresh and cache state.")
registry.register("list", cmd_list, help_text="List tasks: /list [all|progress|done|other].", aliases=["ls"])
registry.register("filter", cmd_filter, help_text="Set list filter: /filter all | progress | done | other.")
registry.register("sort", cmd_sort, help_text="Sort by completion date: /sort asc | desc | off.")
registry.register("counts", cmd_counts, help_text="Show task totals per status.")
registry.register("refresh", cmd_refresh, help_text="Refetch tasks from the backend now.")
registry.register(
    "add",
    cmd_add,
    help_text="Create a task: /add Title | description | status | start | completion.",
    raw_text=True,
)
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> field=value; field=value.", raw_text=True)
registry.register("done", cmd_done, help_text="Mark a task done: /done <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
