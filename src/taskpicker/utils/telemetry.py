"""Local structured telemetry (JSONL under the log directory, opt-out)."""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path
from typing import Any, Iterable, Iterator

from jsonschema import ValidationError

from taskpicker.settings import RuntimeSettings
from taskpicker.utils.schema import validate

TELEMETRY_ENV = "TASKPICKER_TELEMETRY"
TELEMETRY_FILE = "telemetry.jsonl"
SCHEMA = "telemetry.schema.json"

_OFF = frozenset({"0", "false", "no", "off"})
_APPEND_LOCK = threading.Lock()


def telemetry_enabled() -> bool:
    return os.getenv(TELEMETRY_ENV, "1").strip().lower() not in _OFF


def log_path(settings: RuntimeSettings) -> Path:
    return settings.log_dir / TELEMETRY_FILE


def record_event(
    settings: RuntimeSettings,
    event: str,
    *,
    payload: dict[str, Any] | None = None,
    level: str = "info",
    status: str | None = None,
    component: str | None = None,
    duration_ms: float | None = None,
) -> None:
    """Append one event; raises ``ValueError`` for records the schema rejects."""

    if not telemetry_enabled():
        return
    name = event.strip()
    if not name:
        raise ValueError("telemetry event name must not be empty")
    record: dict[str, Any] = {"ts": time.time(), "event": name, "payload": dict(payload or {}), "level": level}
    optional = {"status": status, "component": component, "durationMs": duration_ms}
    record.update({key: value for key, value in optional.items() if value is not None})
    try:
        validate(SCHEMA, record)
    except ValidationError as exc:
        raise ValueError(f"telemetry event '{name}' rejected: {exc.message}") from exc

    target = log_path(settings)
    target.parent.mkdir(parents=True, exist_ok=True)
    with _APPEND_LOCK:
        with target.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=False) + "\n")


def iter_events(settings: RuntimeSettings, *, prefix: str | None = None) -> Iterator[dict[str, Any]]:
    """Recorded events in write order; unreadable lines are skipped."""

    source = log_path(settings)
    if not source.exists():
        return
    with source.open("r", encoding="utf-8") as fh:
        for raw in fh:
            raw = raw.strip()
            if not raw:
                continue
            try:
                record = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if prefix is None or str(record.get("event", "")).startswith(prefix):
                yield record


def summarize(events: Iterable[dict[str, Any]]) -> dict[str, Any]:
    by_event: dict[str, int] = {}
    by_status: dict[str, int] = {}
    failures: dict[str, int] = {}
    durations: list[float] = []
    for record in events:
        name = record.get("event", "unknown")
        by_event[name] = by_event.get(name, 0) + 1
        status = record.get("status", "unknown")
        by_status[status] = by_status.get(status, 0) + 1
        if name != "refresh.cycle":
            continue
        if isinstance(record.get("durationMs"), (int, float)):
            durations.append(float(record["durationMs"]))
        for source in record.get("payload", {}).get("failed", []):
            failures[source] = failures.get(source, 0) + 1
    return {
        "total": sum(by_event.values()),
        "by_event": by_event,
        "by_status": by_status,
        "refresh": {
            "cycles": by_event.get("refresh.cycle", 0),
            "mean_duration_ms": sum(durations) / len(durations) if durations else None,
            "failures_by_source": failures,
        },
    }


def clear(settings: RuntimeSettings) -> None:
    log_path(settings).unlink(missing_ok=True)


__all__ = ["clear", "iter_events", "log_path", "record_event", "summarize", "telemetry_enabled"]
