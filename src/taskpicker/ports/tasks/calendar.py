"""Port for the calendar protocol used by the CalDAV source."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class CalendarRef:
    name: str
    url: str
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass
class TodoListing:
    """To-do items of one calendar as raw property maps.

    ``errors`` lists items that could not be read; they are reported but do not
    fail the listing.
    """

    items: List[Dict[str, str]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class CalendarClient(ABC):
    @abstractmethod
    def calendars(self) -> List[CalendarRef]:
        """Calendars exposed at the configured base URL."""

    @abstractmethod
    def todos(self, calendar: CalendarRef) -> TodoListing:
        """All to-do items of ``calendar``, completed ones included."""


__all__ = ["CalendarClient", "CalendarRef", "TodoListing"]
