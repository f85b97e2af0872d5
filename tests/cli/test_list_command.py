from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import pytest

from taskpicker import __version__
from taskpicker.adapters.secrets import MappingSecretProvider
from taskpicker.app.tasks import TaskRefreshService
from taskpicker.cli import main as cli_main
from taskpicker.domain.sources import SourceRegistry
from taskpicker.domain.tasks import TaskRecord
from taskpicker.ports.tasks.source import SourceTransportError, TaskSource
from taskpicker.settings import RuntimeSettings


class FixedSource(TaskSource):
    config_type = "fixed"
    type_name = "Fixed"

    def __init__(self, name: str, result: List[TaskRecord] | Exception) -> None:
        self._name = name
        self._result = result

    def name(self) -> str:
        return self._name

    def icon(self) -> str:
        return "*"

    def options(self) -> Dict[str, Any]:
        return {"name": self._name}

    def query_tasks(self, secret: str | None) -> List[TaskRecord]:
        if isinstance(self._result, Exception):
            raise self._result
        return list(self._result)


@pytest.fixture()
def runtime_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> RuntimeSettings:
    settings = RuntimeSettings(
        home_dir=tmp_path,
        log_dir=tmp_path / "logs",
    )
    monkeypatch.setattr(cli_main, "SETTINGS", settings, raising=False)
    monkeypatch.setenv("TASKPICKER_TELEMETRY", "0")
    return settings


def _use_sources(monkeypatch: pytest.MonkeyPatch, *sources: TaskSource) -> None:
    registry = SourceRegistry()
    for source in sources:
        registry.add_or_replace(source)

    def build(_loaded: SourceRegistry) -> TaskRefreshService:
        return TaskRefreshService(registry, MappingSecretProvider())

    monkeypatch.setattr(cli_main, "_build_service", build)


TASKS = [
    TaskRecord(project="acme/widgets", title="No due date", description="https://example.test/1"),
    TaskRecord(
        project="acme/widgets",
        title="Ship release",
        description="https://example.test/2",
        due=datetime(2024, 4, 20, 8, 0, tzinfo=timezone.utc),
    ),
]


def test_list_prints_sorted_tasks(
    runtime_settings: RuntimeSettings,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _use_sources(monkeypatch, FixedSource("Work", TASKS))
    assert cli_main.main(["list"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("acme/widgets: Ship release (due ")
    assert out[1] == "    https://example.test/2"
    assert out[2] == "acme/widgets: No due date"


def test_list_json_reports_errors(
    runtime_settings: RuntimeSettings,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    offline = SourceTransportError("cannot resolve host", dns=True)
    _use_sources(monkeypatch, FixedSource("Work", TASKS), FixedSource("Offline", offline))
    assert cli_main.main(["list", "--json"]) == 1
    captured = capsys.readouterr()
    payload = json.loads(captured.out)
    assert [task["title"] for task in payload["tasks"]] == ["Ship release", "No due date"]
    assert payload["tasks"][0]["due"] == "2024-04-20T08:00:00Z"
    assert payload["errors"]["Offline"]["unreachable"] is True
    assert "Offline: unreachable: cannot resolve host" in captured.err


def test_list_without_sources(
    runtime_settings: RuntimeSettings,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _use_sources(monkeypatch)
    assert cli_main.main(["list"]) == 0
    assert "No open tasks" in capsys.readouterr().out


def test_watch_runs_requested_cycles(
    runtime_settings: RuntimeSettings,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    sleeps: List[float] = []
    monkeypatch.setattr(cli_main.time, "sleep", sleeps.append)
    _use_sources(monkeypatch, FixedSource("Work", TASKS))
    assert cli_main.main(["watch", "--cycles", "2", "--interval", "5", "--json"]) == 0
    out = capsys.readouterr().out
    assert out.count('"cycle"') == 2
    assert len(sleeps) == 1
    assert 0 < sleeps[0] <= 5


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_main.main(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out
