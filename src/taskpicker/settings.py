"""Runtime settings for the task picker."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

HOME_ENV = "TASKPICKER_HOME"


@dataclass(frozen=True)
class RuntimeSettings:
    home_dir: Path
    log_dir: Path

    @property
    def sources_file(self) -> Path:
        return self.home_dir / "sources.yaml"


def _default_home_dir() -> Path:
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".taskpicker"


def load_settings() -> RuntimeSettings:
    base = _default_home_dir()
    return RuntimeSettings(home_dir=base, log_dir=base / "logs")


SETTINGS = load_settings()
