# src/tracker_sync/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TaskStatus(StrEnum):
    """Canonical lifecycle labels (the record backend stores these verbatim)."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class StatusCategory(StrEnum):
    """What a free-text status means for filtering and overdue checks."""

    DONE = "done"
    IN_PROGRESS = "in_progress"
    OTHER = "other"


# Fields a caller may write. id and creation_date are owned by the pipeline.
EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "status",
    "start_date",
    "completion_date",
)


@dataclass(slots=True)
class Task:
    id: str
    title: str
    status: str

    description: str | None = None
    start_date: str | None = None
    completion_date: str | None = None
    creation_date: str | None = None

    # Only set by the tabular adapter: 0-based data row position at fetch time.
    row_index: int | None = None


@dataclass(slots=True)
class TaskDraft:
    """A task minus server-assigned fields (id, creation_date)."""

    title: str
    description: str | None = None
    status: str = TaskStatus.IN_PROGRESS.value
    start_date: str | None = None
    completion_date: str | None = None

    def values(self) -> dict[str, str | None]:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "start_date": self.start_date,
            "completion_date": self.completion_date,
        }
