"""Application service refreshing the aggregated task list in the background."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from taskpicker.domain.sources import SourceRegistry
from taskpicker.domain.tasks import ResultStore, TaskRecord, sort_tasks
from taskpicker.ports.secrets import SecretProvider
from taskpicker.ports.tasks.source import SourceTransportError, TaskSource, TaskSourceError
from taskpicker.settings import RuntimeSettings
from taskpicker.utils.telemetry import record_event

logger = logging.getLogger(__name__)

RefreshCallback = Callable[["RefreshReport"], None]


@dataclass(frozen=True)
class PreparedSource:
    """A cloned source and the secret resolved for it at cycle start."""

    source: TaskSource
    secret: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class CycleResult:
    tasks: List[TaskRecord]
    by_source: Dict[str, List[TaskRecord]]
    errors: Dict[str, TaskSourceError]


@dataclass(frozen=True)
class RefreshReport:
    cycle: int
    tasks: tuple[TaskRecord, ...]
    errors: Dict[str, TaskSourceError]
    duration_ms: float

    @property
    def ok(self) -> bool:
        return not self.errors


def run_refresh_cycle(
    sources: Sequence[PreparedSource],
    previous: Callable[[str], List[TaskRecord] | None],
) -> CycleResult:
    """Query each source in turn and merge the results.

    A failing source contributes its last published tasks (if any) and an
    entry in ``errors``; the other sources are unaffected.
    """

    by_source: Dict[str, List[TaskRecord]] = {}
    errors: Dict[str, TaskSourceError] = {}
    for prepared in sources:
        name = prepared.source.name()
        try:
            by_source[name] = list(prepared.source.query_tasks(prepared.secret))
            continue
        except TaskSourceError as exc:
            logger.warning("source '%s' failed: %s", name, exc)
            errors[name] = exc
        except Exception as exc:
            logger.exception("source '%s' failed unexpectedly", name)
            error = TaskSourceError(f"{name}: unexpected failure: {exc}")
            error.__cause__ = exc
            errors[name] = error
        cached = previous(name)
        if cached is not None:
            by_source[name] = cached
    merged = sort_tasks(task for items in by_source.values() for task in items)
    return CycleResult(tasks=merged, by_source=by_source, errors=errors)


class TaskRefreshService:
    """Runs refresh cycles off the calling thread and publishes to a store.

    Each :meth:`refresh` submits one unit of work; sources inside a cycle run
    sequentially. Cycles are not serialised against each other, callers decide
    when to refresh.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        secrets: SecretProvider,
        store: ResultStore | None = None,
        *,
        executor: Executor | None = None,
        settings: RuntimeSettings | None = None,
    ) -> None:
        self._registry = registry
        self._secrets = secrets
        self._store = store or ResultStore()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="taskpicker-refresh")
        self._settings = settings

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    @property
    def store(self) -> ResultStore:
        return self._store

    def refresh(self, on_complete: RefreshCallback | None = None) -> "Future[RefreshReport]":
        prepared = [
            PreparedSource(source=entry.source, secret=self._secrets.get_secret(entry.name))
            for entry in self._registry.snapshot()
            if entry.enabled
        ]
        logger.debug("refresh submitted for %d source(s)", len(prepared))
        return self._executor.submit(self._run_cycle, prepared, on_complete)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "TaskRefreshService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _run_cycle(self, prepared: List[PreparedSource], on_complete: RefreshCallback | None) -> RefreshReport:
        started = time.monotonic()
        result = run_refresh_cycle(prepared, self._store.source_tasks)
        cycle = self._store.publish(result.tasks, result.by_source, result.errors)
        report = RefreshReport(
            cycle=cycle,
            tasks=tuple(result.tasks),
            errors=dict(result.errors),
            duration_ms=(time.monotonic() - started) * 1000.0,
        )
        logger.info(
            "refresh cycle %d: %d task(s), %d failed source(s)",
            cycle,
            len(report.tasks),
            len(report.errors),
        )
        self._record(report, source_count=len(prepared))
        if on_complete is not None:
            try:
                on_complete(report)
            except Exception:
                logger.exception("refresh completion callback failed")
        return report

    def _record(self, report: RefreshReport, *, source_count: int) -> None:
        if self._settings is None:
            return
        unreachable = sorted(
            name for name, error in report.errors.items() if isinstance(error, SourceTransportError) and error.unreachable
        )
        try:
            record_event(
                self._settings,
                "refresh.cycle",
                status="ok" if report.ok else "partial",
                level="info" if report.ok else "warn",
                component="refresh",
                duration_ms=report.duration_ms,
                payload={
                    "cycle": report.cycle,
                    "sources": source_count,
                    "tasks": len(report.tasks),
                    "failed": sorted(report.errors),
                    "unreachable": unreachable,
                },
            )
        except OSError as exc:
            logger.warning("telemetry write failed: %s", exc)


__all__ = [
    "CycleResult",
    "PreparedSource",
    "RefreshReport",
    "TaskRefreshService",
    "run_refresh_cycle",
]
