"""Task domain exports."""

from .models import TaskRecord, TaskRecordError, sort_tasks, task_sort_key
from .store import ResultStore

__all__ = [
    "ResultStore",
    "TaskRecord",
    "TaskRecordError",
    "sort_tasks",
    "task_sort_key",
]
