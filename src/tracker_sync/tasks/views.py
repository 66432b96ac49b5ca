# src/tracker_sync/tasks/views.py

from __future__ import annotations

"""
Derived views over a fetched task snapshot.

Pure functions only: no I/O, no clock reads unless `today` is omitted.
Nothing here raises on bad input. Unknown statuses classify as OTHER and
unparseable dates behave like missing dates.
"""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

from .task_models import StatusCategory, Task, TaskStatus

ALL = "all"

# Negated labels ("Not started" is the default Sheets status chip) are checked first.
_NEGATED_TOKENS: tuple[str, ...] = (
    "not started",
    "not done",
    "not completed",
    "not finished",
    "unfinished",
    "incomplete",
    "не выполнен",
    "не завершен",
    "не начат",
)

# Then done, then in progress: a label mentioning both is treated as done.
_DONE_TOKENS: tuple[str, ...] = (
    "done",
    "completed",
    "closed",
    "завершен",
    "выполнен",
    "готово",
)
_IN_PROGRESS_TOKENS: tuple[str, ...] = (
    "progress",
    "doing",
    "процесс",
    "работе",
)

_CANONICAL_LABELS: dict[StatusCategory, str] = {
    StatusCategory.DONE: TaskStatus.DONE.value,
    StatusCategory.IN_PROGRESS: TaskStatus.IN_PROGRESS.value,
    StatusCategory.OTHER: TaskStatus.PENDING.value,
}

_EPOCH = date(1970, 1, 1)

_DMY_RE = re.compile(r"^\s*(\d{1,2})[./-](\d{1,2})[./-](\d{2}|\d{4})\s*$")

_TEXT_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
)


def classify(status: str | None) -> StatusCategory:
    s = (status or "").strip().lower()
    if not s or any(tok in s for tok in _NEGATED_TOKENS):
        return StatusCategory.OTHER
    if any(tok in s for tok in _DONE_TOKENS):
        return StatusCategory.DONE
    if any(tok in s for tok in _IN_PROGRESS_TOKENS):
        return StatusCategory.IN_PROGRESS
    return StatusCategory.OTHER


def classify_label(category: StatusCategory) -> str:
    """Canonical status string for a category; classify() maps it back to the same category."""
    return _CANONICAL_LABELS[category]


def parse_task_date(raw: str | None) -> date | None:
    """
    Parse a calendar date as typed into a sheet cell or stored by a backend.

    Order:
    1) day/month/year segmented (01/02/2024, 1.2.24, 01-02-2024)
    2) ISO 8601 (date or datetime, time-of-day dropped)
    3) a few textual formats (2024/02/01, 02/13/2024, 1 Feb 2024, February 1, 2024)

    Returns None when nothing matches.
    """
    text = (raw or "").strip()
    if not text:
        return None

    m = _DMY_RE.match(text)
    if m:
        day, month, year = (int(g) for g in m.groups())
        if year < 100:
            # Two-digit years pivot at 70: 69 -> 2069, 70 -> 1970.
            year += 2000 if year < 70 else 1900
        try:
            return date(year, month, day)
        except ValueError:
            pass

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    for fmt in _TEXT_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def is_overdue(task: Task, today: date | None = None) -> bool:
    if not task.completion_date:
        return False
    if classify(task.status) == StatusCategory.DONE:
        return False

    due = parse_task_date(task.completion_date)
    if due is None:
        return False

    if today is None:
        today = date.today()
    return due < today


def filter_by_category(tasks: Sequence[Task], category: StatusCategory | str) -> list[Task]:
    if category == ALL:
        return list(tasks)
    try:
        wanted = StatusCategory(category)
    except ValueError:
        return []
    return [t for t in tasks if classify(t.status) == wanted]


def sort_by_completion_date(tasks: Iterable[Task], ascending: bool = True) -> list[Task]:
    """Stable sort. Missing or unparseable completion dates sort as the epoch."""

    def key(t: Task) -> date:
        return parse_task_date(t.completion_date) or _EPOCH

    return sorted(tasks, key=key, reverse=not ascending)


@dataclass(slots=True, frozen=True)
class TaskCounts:
    all: int
    in_progress: int
    done: int
    other: int


def counts(tasks: Iterable[Task]) -> TaskCounts:
    total = in_progress = done = 0
    for t in tasks:
        total += 1
        cat = classify(t.status)
        if cat == StatusCategory.DONE:
            done += 1
        elif cat == StatusCategory.IN_PROGRESS:
            in_progress += 1
    return TaskCounts(all=total, in_progress=in_progress, done=done, other=total - in_progress - done)


@dataclass(slots=True, frozen=True)
class TaskRow:
    task: Task
    category: StatusCategory
    overdue: bool


@dataclass(slots=True, frozen=True)
class TaskView:
    rows: list[TaskRow]
    counts: TaskCounts
    category: str
    ascending: bool | None


def build_view(
    tasks: Sequence[Task],
    *,
    category: StatusCategory | str = ALL,
    ascending: bool | None = None,
    today: date | None = None,
) -> TaskView:
    """
    Everything a list screen needs in one pass.

    ascending=None keeps the source order (the backend's own ordering).
    Counts always come from the full snapshot, not the filtered rows.
    """
    if today is None:
        today = date.today()

    selected = filter_by_category(tasks, category)
    if ascending is not None:
        selected = sort_by_completion_date(selected, ascending=ascending)

    rows = [TaskRow(task=t, category=classify(t.status), overdue=is_overdue(t, today)) for t in selected]
    return TaskView(
        rows=rows,
        counts=counts(tasks),
        category=str(category),
        ascending=ascending,
    )
