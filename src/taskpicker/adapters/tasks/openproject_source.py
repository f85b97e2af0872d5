"""OpenProject work package task source."""

from __future__ import annotations

import json
from datetime import datetime, time, timezone
from typing import Any, Callable, Dict, Iterator, List, Set

import requests
from dateutil import tz

from taskpicker.domain.tasks import TaskRecord
from taskpicker.ports.tasks.source import SourceSchemaError, TaskSource

from .http import SessionOwner, check_url, get_json, int_option, join_url, require
from .timestamps import parse_calendar_date, parse_due_date, parse_iso_timestamp

OPENPROJECT_ICON = "\U0001F4CB"
DEFAULT_SERVER_URL = "https://community.openproject.org/api/v3/"
DEFAULT_TYPE_ID = "1"
DEFAULT_PAGE_SIZE = 200
_API_SUFFIX = "/api/v3"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _elements(payload: Any, *, label: str, what: str) -> List[Dict[str, Any]]:
    embedded = require(payload, "_embedded", dict, label=label, what=what)
    elements = require(embedded, "elements", list, label=label, what=what)
    for element in elements:
        if not isinstance(element, dict):
            raise SourceSchemaError(f"{label}: {what} elements must be objects")
    return elements


class OpenProjectSource(SessionOwner, TaskSource):
    config_type = "openproject"
    type_name = "OpenProject"

    def __init__(
        self,
        options: Dict[str, Any],
        session: requests.Session | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._name = str(options.get("name") or "OpenProject")
        self._server_url = str(options.get("server_url") or DEFAULT_SERVER_URL)
        self._type_id = str(options.get("type_id") or DEFAULT_TYPE_ID)
        self._page_size = int_option(options, "page_size", DEFAULT_PAGE_SIZE, label=self._label)
        self._use_session(session)
        self._clock = clock or _utc_now

    def name(self) -> str:
        return self._name

    def icon(self) -> str:
        return OPENPROJECT_ICON

    def options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "name": self._name,
            "server_url": self._server_url,
            "type_id": self._type_id,
        }
        if self._page_size != DEFAULT_PAGE_SIZE:
            options["page_size"] = self._page_size
        return options

    @property
    def _label(self) -> str:
        return f"openproject source '{self._name}'"

    def query_tasks(self, secret: str | None) -> List[TaskRecord]:
        label = self._label
        check_url(self._server_url, label=label)
        auth = ("apikey", secret) if secret else None

        closed = self._closed_statuses(auth)
        user_id = self._current_user_id(auth)

        filters: List[Dict[str, Any]] = [
            {"assignee": {"operator": "=", "values": [user_id]}},
            {"type": {"operator": "=", "values": [self._type_id]}},
        ]
        if closed:
            filters.append({"status": {"operator": "!", "values": sorted(closed)}})
        now = self._clock()
        tasks: List[TaskRecord] = []
        for work_package in self._work_packages(json.dumps(filters), auth):
            task = self.create_task(work_package, now=now)
            if task is not None:
                tasks.append(task)
        return tasks

    def _work_packages(self, filters: str, auth: tuple[str, str] | None) -> Iterator[Dict[str, Any]]:
        """Follow ``offset`` pages until ``total`` items were seen or a page is empty.

        Servers may cap ``pageSize``, so a short page only ends the listing when
        the response carries no ``total``.
        """

        label = self._label
        url = join_url(self._server_url, "work_packages")
        offset = 1
        seen = 0
        while True:
            params = {"filters": filters, "pageSize": self._page_size, "offset": offset}
            payload = get_json(self._session, url, label=label, auth=auth, params=params)
            elements = _elements(payload, label=label, what="work packages")
            yield from elements
            seen += len(elements)
            total = payload.get("total")
            if not elements:
                return
            if isinstance(total, int) and not isinstance(total, bool):
                if seen >= total:
                    return
            elif len(elements) < self._page_size:
                return
            offset += 1

    def _closed_statuses(self, auth: tuple[str, str] | None) -> Set[str]:
        label = self._label
        payload = get_json(self._session, join_url(self._server_url, "statuses"), label=label, auth=auth)
        closed: Set[str] = set()
        for status in _elements(payload, label=label, what="statuses"):
            if status.get("isClosed") is True:
                closed.add(str(require(status, "id", int, label=label, what="status")))
        return closed

    def _current_user_id(self, auth: tuple[str, str] | None) -> str:
        label = self._label
        payload = get_json(self._session, join_url(self._server_url, "users/me"), label=label, auth=auth)
        return str(require(payload, "id", int, label=label, what="current user"))

    def web_url(self, work_package_id: int) -> str:
        base = self._server_url.rstrip("/")
        if base.endswith(_API_SUFFIX):
            base = base[: -len(_API_SUFFIX)]
        return f"{base}/work_packages/{work_package_id}/activity"

    def create_task(self, work_package: Dict[str, Any], *, now: datetime | None = None) -> TaskRecord | None:
        """Build a task from a work package, or ``None`` if it cannot start yet."""

        label = self._label
        now = now or self._clock()
        start_raw = work_package.get("startDate")
        if isinstance(start_raw, str):
            start_day = parse_calendar_date(start_raw, label=label)
            if now < datetime.combine(start_day, time.min, tzinfo=tz.tzlocal()):
                return None

        work_package_id = require(work_package, "id", int, label=label, what="work package")
        subject = require(work_package, "subject", str, label=label, what="work package")
        links = require(work_package, "_links", dict, label=label, what="work package")
        project = require(links, "project", dict, label=label, what="work package links")
        project_title = require(project, "title", str, label=label, what="work package project")

        due_raw = work_package.get("dueDate")
        created_raw = work_package.get("createdAt")
        url = self.web_url(work_package_id)
        return TaskRecord(
            project=f"{OPENPROJECT_ICON} {project_title}",
            title=subject,
            description=url,
            due=parse_due_date(due_raw, label=label) if isinstance(due_raw, str) else None,
            created=parse_iso_timestamp(created_raw, label=label) if isinstance(created_raw, str) else None,
            id=url,
        )


__all__ = ["OPENPROJECT_ICON", "OpenProjectSource"]
