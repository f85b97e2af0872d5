"""Ports for task source integrations."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from taskpicker.domain.tasks import TaskRecord


class TaskSourceError(RuntimeError):
    """Raised when a source fails to supply a valid payload."""


class SourceConfigError(TaskSourceError):
    """Malformed URL or unusable source configuration."""


class SourceTransportError(TaskSourceError):
    """Network, name resolution or HTTP status failure."""

    def __init__(self, message: str, *, dns: bool = False, status_code: int | None = None) -> None:
        super().__init__(message)
        self.dns = dns
        self.status_code = status_code

    @property
    def unreachable(self) -> bool:
        return self.dns


class SourceSchemaError(TaskSourceError):
    """An expected response field is missing or has the wrong type."""


class SourceParseError(TaskSourceError):
    """A date/time or text value is not in the expected shape."""


class TaskSource(ABC):
    """A remote system that yields tasks.

    Implementations hold configuration only. Secrets are handed to
    :meth:`query_tasks` for each refresh and never stored.
    """

    config_type: str = ""
    type_name: str = ""

    @abstractmethod
    def name(self) -> str:
        """Display name, also the key for secrets and the registry."""

    @abstractmethod
    def icon(self) -> str:
        """Marker prefixed to project labels."""

    @abstractmethod
    def options(self) -> Dict[str, Any]:
        """Persistable configuration, excluding secrets."""

    @abstractmethod
    def query_tasks(self, secret: str | None) -> List[TaskRecord]:
        """Fetch and normalise the open tasks of this source."""

    def clone(self) -> "TaskSource":
        return copy.copy(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name()!r})"


__all__ = [
    "SourceConfigError",
    "SourceParseError",
    "SourceSchemaError",
    "SourceTransportError",
    "TaskSource",
    "TaskSourceError",
]
