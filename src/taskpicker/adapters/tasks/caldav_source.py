"""CalDAV to-do task source."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Dict, Iterable, List, Mapping

from dateutil import tz

from taskpicker.domain.tasks import TaskRecord
from taskpicker.ports.tasks.calendar import CalendarClient
from taskpicker.ports.tasks.source import (
    SourceConfigError,
    SourceParseError,
    TaskSource,
)

from .http import check_url

logger = logging.getLogger(__name__)

CALDAV_ICON = "\U0001F4C5"

DATE_FORMAT = "%Y%m%d"
DATE_TIME_FORMAT = "%Y%m%dT%H%M%S"
# "YYYYMMDDTHHMMSS": anything this short cannot carry a zone designator
_LOCAL_DATE_TIME_LENGTH = 15
_DATE_ONLY = re.compile(r"\d{8}")

_ESCAPES = {
    "\\": "\\",
    '"': '"',
    "'": "'",
    "`": "`",
    "$": "$",
    ",": ",",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

ClientFactory = Callable[[str, str, "str | None"], CalendarClient]


def unescape(text: str) -> str:
    """Decode backslash escapes used in iCalendar text values.

    Unknown sequences are kept verbatim, including the backslash.
    """

    if "\\" not in text:
        return text
    out: List[str] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\\" and index + 1 < length and text[index + 1] in _ESCAPES:
            out.append(_ESCAPES[text[index + 1]])
            index += 2
            continue
        out.append(char)
        index += 1
    return "".join(out)


def parse_caldav_date(raw: str, *, zone: tzinfo | None = None) -> datetime:
    """Parse an iCalendar DATE or DATE-TIME value into an aware datetime.

    Values without a zone designator are interpreted in ``zone`` (the system
    zone by default). Ambiguous local times resolve to the earlier instant,
    non-existent ones are rejected.
    """

    value = raw.strip()
    if _DATE_ONLY.fullmatch(value):
        try:
            naive = datetime.strptime(value, DATE_FORMAT)
        except ValueError as exc:
            raise SourceParseError(f"invalid date '{raw}'") from exc
        return _localize(naive, zone, raw)
    try:
        return _parse_absolute(value)
    except ValueError as exc:
        if len(value) > _LOCAL_DATE_TIME_LENGTH:
            raise SourceParseError(f"invalid date-time '{raw}'") from exc
    try:
        naive = datetime.strptime(value, DATE_TIME_FORMAT)
    except ValueError as exc:
        raise SourceParseError(f"invalid date-time '{raw}'") from exc
    return _localize(naive, zone, raw)


def _parse_absolute(value: str) -> datetime:
    if value.endswith("Z"):
        return datetime.strptime(value[:-1], DATE_TIME_FORMAT).replace(tzinfo=timezone.utc)
    return datetime.strptime(value, DATE_TIME_FORMAT + "%z")


def _localize(naive: datetime, zone: tzinfo | None, raw: str) -> datetime:
    target = zone or tz.tzlocal()
    candidate = naive.replace(tzinfo=target, fold=0)
    if not tz.datetime_exists(candidate):
        raise SourceParseError(f"local time '{raw}' does not exist in {target}")
    return candidate


def extract_tasks(
    calendar_name: str,
    items: Iterable[Mapping[str, str]],
    *,
    now: datetime,
    zone: tzinfo | None = None,
) -> List[TaskRecord]:
    """Turn raw VTODO property maps into open, startable task records."""

    tasks: List[TaskRecord] = []
    for props in items:
        if props.get("STATUS") == "COMPLETED" or "COMPLETED" in props:
            continue
        start = props.get("DTSTART")
        if start is not None and now < parse_caldav_date(start, zone=zone):
            continue
        title = props.get("SUMMARY")
        if title is None:
            continue
        due = props.get("DUE")
        created = props.get("CREATED")
        tasks.append(
            TaskRecord(
                project=f"{CALDAV_ICON} {calendar_name}",
                title=unescape(title),
                description=unescape(props.get("DESCRIPTION", "")),
                due=parse_caldav_date(due, zone=zone) if due is not None else None,
                created=parse_caldav_date(created, zone=zone) if created is not None else None,
                id=props.get("UID"),
            )
        )
    return tasks


def _default_client_factory(base_url: str, username: str, password: str | None) -> CalendarClient:
    from .caldav_client import CalDavClient

    return CalDavClient(base_url, username, password)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CalDavSource(TaskSource):
    config_type = "caldav"
    type_name = "CalDAV"

    def __init__(
        self,
        options: Dict[str, Any],
        client_factory: ClientFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._calendar_name = str(options.get("calendar_name") or "")
        self._name = str(options.get("name") or self._calendar_name)
        self._username = str(options.get("username") or "")
        self._base_url = str(options.get("base_url") or "")
        self._client_factory = client_factory or _default_client_factory
        self._clock = clock or _utc_now

    def name(self) -> str:
        return self._name

    def icon(self) -> str:
        return CALDAV_ICON

    def options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "calendar_name": self._calendar_name,
            "username": self._username,
            "base_url": self._base_url,
        }
        if self._name != self._calendar_name:
            options["name"] = self._name
        return options

    def query_tasks(self, secret: str | None) -> List[TaskRecord]:
        label = f"caldav source '{self._name}'"
        if not self._calendar_name:
            raise SourceConfigError(f"{label} requires 'calendar_name'")
        check_url(self._base_url, label=label)
        client = self._client_factory(self._base_url, self._username, secret)
        for calendar in client.calendars():
            if calendar.name != self._calendar_name:
                continue
            listing = client.todos(calendar)
            for error in listing.errors:
                logger.warning("%s: skipped malformed to-do: %s", label, error)
            return extract_tasks(calendar.name, listing.items, now=self._clock())
        raise SourceConfigError(f"{label}: calendar '{self._calendar_name}' not found at {self._base_url}")


__all__ = [
    "CALDAV_ICON",
    "CalDavSource",
    "extract_tasks",
    "parse_caldav_date",
    "unescape",
]
