"""YAML file storage for the source registry."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml

from taskpicker.adapters.tasks.sources import build_entry_from_config, entry_to_config
from taskpicker.domain.sources import SourceEntry, SourceRegistry
from taskpicker.ports.tasks.source import SourceConfigError
from taskpicker.utils.schema import iter_schema_errors

SOURCES_VERSION = 1


class SourceRepositoryError(RuntimeError):
    """Raised when the sources file cannot be read or written."""


class FileSourceRepository:
    """Stores source configuration (never secrets) in a YAML document."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SourceRegistry:
        if not self._path.exists():
            return SourceRegistry()
        try:
            payload = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise SourceRepositoryError(f"sources file invalid YAML: {exc}") from exc
        if not isinstance(payload, dict):
            raise SourceRepositoryError("sources file root must be a mapping")

        problems = [
            f"{path or '<root>'}: {message}" for path, message in iter_schema_errors("sources.schema.json", payload)
        ]
        if problems:
            raise SourceRepositoryError("sources file invalid: " + "; ".join(problems))

        entries: List[SourceEntry] = []
        for raw in payload.get("sources", []):
            try:
                entries.append(build_entry_from_config(raw))
            except SourceConfigError as exc:
                raise SourceRepositoryError(str(exc)) from exc
        return SourceRegistry(entries)

    def save(self, registry: SourceRegistry) -> None:
        payload: Dict[str, Any] = {
            "version": SOURCES_VERSION,
            "sources": [entry_to_config(entry) for entry in registry],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            yaml.safe_dump(payload, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )


__all__ = ["FileSourceRepository", "SourceRepositoryError"]
