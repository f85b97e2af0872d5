"""Timestamp parsing shared by the JSON task sources."""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from taskpicker.ports.tasks.source import SourceParseError


def parse_iso_timestamp(raw: str, *, label: str) -> datetime:
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise SourceParseError(f"{label}: invalid timestamp '{raw}'") from exc
    if value.tzinfo is None:
        raise SourceParseError(f"{label}: timestamp '{raw}' has no timezone")
    return value


def parse_calendar_date(raw: str, *, label: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise SourceParseError(f"{label}: invalid date '{raw}'") from exc


def parse_due_date(raw: str, *, label: str) -> datetime:
    """Bare ``YYYY-MM-DD`` date as midnight UTC."""

    return datetime.combine(parse_calendar_date(raw, label=label), time.min, tzinfo=timezone.utc)


__all__ = ["parse_calendar_date", "parse_due_date", "parse_iso_timestamp"]
