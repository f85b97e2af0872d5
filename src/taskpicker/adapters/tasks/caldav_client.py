"""Calendar client backed by the ``caldav`` library."""

from __future__ import annotations

from typing import Dict, List

import caldav
import requests
from caldav.lib.error import DAVError

from taskpicker.ports.tasks.calendar import CalendarClient, CalendarRef, TodoListing
from taskpicker.ports.tasks.source import SourceTransportError

from .http import is_name_resolution_error


class CalDavClient(CalendarClient):
    def __init__(self, base_url: str, username: str, password: str | None) -> None:
        self._base_url = base_url
        self._client = caldav.DAVClient(url=base_url, username=username or None, password=password)

    def calendars(self) -> List[CalendarRef]:
        try:
            principal = self._client.principal()
            return [
                CalendarRef(name=calendar.get_display_name() or "", url=str(calendar.url), handle=calendar)
                for calendar in principal.calendars()
            ]
        except (DAVError, requests.RequestException) as exc:
            raise _transport_error(f"caldav: listing calendars at {self._base_url} failed", exc) from exc

    def todos(self, calendar: CalendarRef) -> TodoListing:
        handle = calendar.handle
        if handle is None:
            handle = self._client.calendar(url=calendar.url)
        try:
            # caldav sorts by parsing every item, so one malformed item would fail the whole listing
            todos = handle.todos(include_completed=True, sort_keys=())
        except (DAVError, requests.RequestException) as exc:
            raise _transport_error(f"caldav: listing to-dos of '{calendar.name}' failed", exc) from exc
        listing = TodoListing()
        for todo in todos:
            try:
                listing.items.append(parse_todo_properties(str(todo.data or "")))
            except ValueError as exc:
                listing.errors.append(f"{todo.url}: {exc}")
        return listing


def _transport_error(message: str, exc: BaseException) -> SourceTransportError:
    status = getattr(exc, "status", None)
    return SourceTransportError(
        f"{message}: {exc}",
        dns=is_name_resolution_error(exc),
        status_code=status if isinstance(status, int) else None,
    )


def unfold_lines(raw: str) -> List[str]:
    lines: List[str] = []
    for line in raw.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if line[:1] in (" ", "\t") and lines:
            lines[-1] += line[1:]
        elif line:
            lines.append(line)
    return lines


def _split_content_line(line: str) -> tuple[str, str]:
    quoted = False
    for index, char in enumerate(line):
        if char == '"':
            quoted = not quoted
        elif char == ":" and not quoted:
            name = line[:index].split(";", 1)[0].strip().upper()
            if not name:
                break
            return name, line[index + 1:]
    raise ValueError(f"malformed content line '{line}'")


def parse_todo_properties(raw: str) -> Dict[str, str]:
    """Raw property values of the first VTODO in ``raw``.

    Parameters are dropped and text stays escaped. Nested components such as
    VALARM are skipped; the first occurrence of a repeated property wins.
    """

    props: Dict[str, str] = {}
    found = False
    inside = False
    depth = 0
    for line in unfold_lines(raw):
        name, value = _split_content_line(line)
        if name == "BEGIN":
            if inside:
                depth += 1
            elif value.strip().upper() == "VTODO" and not found:
                inside = found = True
            continue
        if name == "END":
            if inside and depth:
                depth -= 1
            elif inside and value.strip().upper() == "VTODO":
                inside = False
            continue
        if inside and depth == 0:
            props.setdefault(name, value)
    if not found:
        raise ValueError("no VTODO component")
    if inside:
        raise ValueError("unterminated VTODO component")
    return props


__all__ = ["CalDavClient", "parse_todo_properties", "unfold_lines"]
