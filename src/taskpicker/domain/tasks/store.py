"""Shared result store read by the consumer and written by refresh cycles."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Dict, List, Mapping, Sequence

from .models import TaskRecord

if TYPE_CHECKING:  # pragma: no cover
    from taskpicker.ports.tasks.source import TaskSourceError


class ResultStore:
    """Latest merged task list plus per-source results and errors.

    Every publication swaps all state under one lock, so readers never see a
    list mixing two refresh cycles. Critical sections only copy references.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: tuple[TaskRecord, ...] = ()
        self._by_source: Dict[str, tuple[TaskRecord, ...]] = {}
        self._errors: Dict[str, "TaskSourceError"] = {}
        self._unseen: Dict[str, "TaskSourceError"] = {}
        self._cycle = 0

    @property
    def cycle(self) -> int:
        with self._lock:
            return self._cycle

    def tasks(self) -> List[TaskRecord]:
        with self._lock:
            return list(self._tasks)

    def errors(self) -> Dict[str, "TaskSourceError"]:
        with self._lock:
            return dict(self._errors)

    def source_tasks(self, name: str) -> List[TaskRecord] | None:
        with self._lock:
            cached = self._by_source.get(name)
        return list(cached) if cached is not None else None

    def publish(
        self,
        tasks: Sequence[TaskRecord],
        by_source: Mapping[str, Sequence[TaskRecord]],
        errors: Mapping[str, "TaskSourceError"],
    ) -> int:
        frozen_tasks = tuple(tasks)
        frozen_sources = {name: tuple(items) for name, items in by_source.items()}
        fresh_errors = dict(errors)
        with self._lock:
            self._tasks = frozen_tasks
            self._by_source = frozen_sources
            self._errors = fresh_errors
            self._unseen = dict(fresh_errors)
            self._cycle += 1
            return self._cycle

    def drain_errors(self) -> Dict[str, "TaskSourceError"]:
        """Return errors from the last cycle that were not surfaced yet."""

        with self._lock:
            unseen = self._unseen
            self._unseen = {}
        return unseen


__all__ = ["ResultStore"]
