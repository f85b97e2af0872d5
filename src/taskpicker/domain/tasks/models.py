"""Task records and their display ordering."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Tuple

_LINK_PREFIXES = ("http://", "https://")


class TaskRecordError(ValueError):
    """Raised when a task payload is invalid."""


def _isoformat(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class TaskRecord:
    """One normalised unit of work produced by a task source."""

    project: str
    title: str
    description: str = ""
    due: datetime | None = None
    created: datetime | None = None
    id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.project, str):
            raise TaskRecordError("task project must be a string")
        if not isinstance(self.title, str):
            raise TaskRecordError("task title missing or invalid")
        if not isinstance(self.description, str):
            raise TaskRecordError("task description must be a string")
        for label, value in (("due", self.due), ("created", self.created)):
            if value is None:
                continue
            if not isinstance(value, datetime):
                raise TaskRecordError(f"task {label} must be a datetime")
            if value.tzinfo is None or value.utcoffset() is None:
                raise TaskRecordError(f"task {label} must carry a timezone")

    @property
    def identity(self) -> str:
        """Stable identifier, falling back to ``project/title``.

        The fallback is not unique: two tasks with the same title in the same
        project share it.
        """

        if self.id:
            return self.id
        return f"{self.project}/{self.title}"

    @property
    def is_link(self) -> bool:
        return self.description.startswith(_LINK_PREFIXES)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.identity,
            "project": self.project,
            "title": self.title,
            "description": self.description,
            "due": _isoformat(self.due),
            "created": _isoformat(self.created),
        }


def _absent_last(value: datetime | None) -> Tuple[int, float]:
    if value is None:
        return (1, 0.0)
    return (0, value.timestamp())


def task_sort_key(task: TaskRecord) -> Tuple[Tuple[int, float], Tuple[int, float]]:
    """Order by due date then creation date, missing values last."""

    return (_absent_last(task.due), _absent_last(task.created))


def sort_tasks(tasks: Iterable[TaskRecord]) -> List[TaskRecord]:
    return sorted(tasks, key=task_sort_key)
