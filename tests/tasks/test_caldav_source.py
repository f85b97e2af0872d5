from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest
from dateutil import tz
from hypothesis import given
from hypothesis import strategies as st

from taskpicker.adapters.tasks.caldav_client import parse_todo_properties, unfold_lines
from taskpicker.adapters.tasks.caldav_source import (
    CALDAV_ICON,
    CalDavSource,
    extract_tasks,
    parse_caldav_date,
    unescape,
)
from taskpicker.ports.tasks.calendar import CalendarClient, CalendarRef, TodoListing
from taskpicker.ports.tasks.source import SourceConfigError, SourceParseError

BERLIN = tz.gettz("Europe/Berlin")
NOW = datetime(2024, 4, 12, 12, 0, tzinfo=timezone.utc)


def test_unescape_known_sequences() -> None:
    assert unescape("a\\,b\\nc") == "a,b\nc"
    assert unescape("tab\\there\\r") == "tab\there\r"
    assert unescape('\\"quoted\\" \\\'single\\\' \\`tick\\` \\$5') == "\"quoted\" 'single' `tick` $5"
    assert unescape("back\\\\slash") == "back\\slash"


def test_unescape_keeps_unknown_sequences() -> None:
    assert unescape("a\\;b") == "a\\;b"
    assert unescape("C:\\Users") == "C:\\Users"
    assert unescape("trailing\\") == "trailing\\"


@given(st.text().filter(lambda text: "\\" not in text))
def test_unescape_is_identity_on_plain_text(text: str) -> None:
    assert unescape(text) == text
    assert unescape(unescape(text)) == unescape(text)


def test_date_without_time() -> None:
    parsed = parse_caldav_date("20240412")
    assert (parsed.year, parsed.month, parsed.day) == (2024, 4, 12)
    assert (parsed.hour, parsed.minute) == (0, 0)
    assert parsed.tzinfo is not None


def test_utc_date_time() -> None:
    assert parse_caldav_date("20240412T101500Z") == datetime(2024, 4, 12, 10, 15, tzinfo=timezone.utc)


def test_offset_date_time() -> None:
    parsed = parse_caldav_date("20240412T101500+0200")
    assert parsed == datetime(2024, 4, 12, 8, 15, tzinfo=timezone.utc)


def test_floating_date_time_uses_given_zone() -> None:
    parsed = parse_caldav_date("20240412T101500", zone=BERLIN)
    assert parsed == datetime(2024, 4, 12, 8, 15, tzinfo=timezone.utc)


def test_ambiguous_local_time_picks_earliest_instant() -> None:
    # 02:30 happens twice on 2024-10-27 in Berlin (CEST then CET)
    parsed = parse_caldav_date("20241027T023000", zone=BERLIN)
    assert parsed.astimezone(timezone.utc) == datetime(2024, 10, 27, 0, 30, tzinfo=timezone.utc)


def test_nonexistent_local_time_is_rejected() -> None:
    with pytest.raises(SourceParseError):
        parse_caldav_date("20240331T023000", zone=BERLIN)


@pytest.mark.parametrize("raw", ["", "2024-04-12", "20240412X101500", "20241312T101500", "20240412T101500+02:00:00x"])
def test_malformed_dates_are_rejected(raw: str) -> None:
    with pytest.raises(SourceParseError):
        parse_caldav_date(raw)


def _todo(**props: str) -> Dict[str, str]:
    base = {"UID": "uid-1", "SUMMARY": "Task"}
    base.update(props)
    return base


def test_completed_items_are_excluded() -> None:
    items = [
        _todo(UID="open", SUMMARY="Open"),
        _todo(UID="done-status", STATUS="COMPLETED"),
        _todo(UID="done-stamp", STATUS="NEEDS-ACTION", COMPLETED="20240410T100000Z"),
    ]
    tasks = extract_tasks("Chores", items, now=NOW)
    assert [task.id for task in tasks] == ["open"]


def test_future_start_is_excluded_until_now_passes_it() -> None:
    items = [_todo(DTSTART="20240413T000000Z")]
    assert extract_tasks("Chores", items, now=NOW) == []
    later = datetime(2024, 4, 13, 0, 0, tzinfo=timezone.utc)
    assert [task.id for task in extract_tasks("Chores", items, now=later)] == ["uid-1"]


def test_items_without_summary_are_skipped() -> None:
    items = [{"UID": "no-title"}]
    assert extract_tasks("Chores", items, now=NOW) == []


def test_task_fields_are_normalised() -> None:
    items = [
        _todo(
            SUMMARY="Buy milk\\, eggs",
            DESCRIPTION="line one\\nline two",
            DUE="20240415T080000Z",
            CREATED="20240401T080000Z",
        )
    ]
    (task,) = extract_tasks("Chores", items, now=NOW)
    assert task.project == f"{CALDAV_ICON} Chores"
    assert task.title == "Buy milk, eggs"
    assert task.description == "line one\nline two"
    assert task.due == datetime(2024, 4, 15, 8, 0, tzinfo=timezone.utc)
    assert task.created == datetime(2024, 4, 1, 8, 0, tzinfo=timezone.utc)
    assert task.id == "uid-1"


def test_bad_due_date_fails_extraction() -> None:
    with pytest.raises(SourceParseError):
        extract_tasks("Chores", [_todo(DUE="tomorrow")], now=NOW)


RAW_TODO = "\r\n".join(
    [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "BEGIN:VTODO",
        "UID:abc-123",
        "SUMMARY:Write the quarterly\\, report with a very long title that the server",
        "  folds",
        "DTSTART;TZID=Europe/Berlin:20240410T090000",
        "DUE;VALUE=DATE:20240420",
        'ATTENDEE;CN="Doe: Jane":mailto:jane@example.test',
        "BEGIN:VALARM",
        "ACTION:DISPLAY",
        "DESCRIPTION:Alarm text",
        "END:VALARM",
        "DESCRIPTION:Details",
        "END:VTODO",
        "END:VCALENDAR",
        "",
    ]
)


def test_parse_todo_properties_keeps_raw_values() -> None:
    props = parse_todo_properties(RAW_TODO)
    assert props["UID"] == "abc-123"
    assert props["SUMMARY"] == "Write the quarterly\\, report with a very long title that the server folds"
    assert props["DTSTART"] == "20240410T090000"
    assert props["DUE"] == "20240420"
    assert props["ATTENDEE"] == "mailto:jane@example.test"
    assert props["DESCRIPTION"] == "Details"
    assert "ACTION" not in props


def test_parse_todo_properties_rejects_other_components() -> None:
    with pytest.raises(ValueError):
        parse_todo_properties("BEGIN:VCALENDAR\r\nBEGIN:VEVENT\r\nUID:x\r\nEND:VEVENT\r\nEND:VCALENDAR\r\n")
    with pytest.raises(ValueError):
        parse_todo_properties("BEGIN:VTODO\r\nnot a content line\r\nEND:VTODO\r\n")


def test_unfold_lines() -> None:
    assert unfold_lines("A:1\r\n 2\r\n\t3\r\nB:4") == ["A:123", "B:4"]


class FakeCalendarClient(CalendarClient):
    def __init__(self, calendars: Dict[str, TodoListing]) -> None:
        self._calendars = calendars
        self.requested: List[str] = []

    def calendars(self) -> List[CalendarRef]:
        return [CalendarRef(name=name, url=f"https://dav.example.test/{name}/") for name in self._calendars]

    def todos(self, calendar: CalendarRef) -> TodoListing:
        self.requested.append(calendar.name)
        return self._calendars[calendar.name]


def _source(client: FakeCalendarClient, captured: Dict[str, object] | None = None, **options: str) -> CalDavSource:
    def factory(base_url: str, username: str, password: str | None) -> CalendarClient:
        if captured is not None:
            captured.update(base_url=base_url, username=username, password=password)
        return client

    config = {"calendar_name": "Chores", "username": "alice", "base_url": "https://dav.example.test/"}
    config.update(options)
    return CalDavSource(config, client_factory=factory, clock=lambda: NOW)


def test_source_reads_only_the_named_calendar() -> None:
    client = FakeCalendarClient(
        {
            "Work": TodoListing(items=[_todo(UID="work")]),
            "Chores": TodoListing(items=[_todo(UID="chore")], errors=["broken.ics: no VTODO component"]),
        }
    )
    captured: Dict[str, object] = {}
    tasks = _source(client, captured).query_tasks("pw")
    assert [task.id for task in tasks] == ["chore"]
    assert client.requested == ["Chores"]
    assert captured == {"base_url": "https://dav.example.test/", "username": "alice", "password": "pw"}


def test_source_reports_missing_calendar() -> None:
    client = FakeCalendarClient({"Work": TodoListing()})
    with pytest.raises(SourceConfigError, match="not found"):
        _source(client).query_tasks(None)


def test_source_rejects_bad_url() -> None:
    client = FakeCalendarClient({})
    with pytest.raises(SourceConfigError):
        _source(client, base_url="not a url").query_tasks(None)


def test_source_name_defaults_to_calendar_name() -> None:
    client = FakeCalendarClient({})
    assert _source(client).name() == "Chores"
    named = _source(client, name="Home chores")
    assert named.name() == "Home chores"
    assert named.options()["name"] == "Home chores"
    assert "name" not in _source(client).options()


def test_start_gating_uses_the_clock() -> None:
    tomorrow = (NOW + timedelta(days=1)).strftime("%Y%m%dT%H%M%SZ")
    client = FakeCalendarClient({"Chores": TodoListing(items=[_todo(DTSTART=tomorrow)])})
    assert _source(client).query_tasks(None) == []
