"""GitLab issues and merge requests task source."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List

import requests

from taskpicker.domain.tasks import TaskRecord
from taskpicker.ports.tasks.source import (
    SourceConfigError,
    SourceSchemaError,
    TaskSource,
    TaskSourceError,
)

from .http import SessionOwner, check_url, get_json, int_option, join_url, require
from .timestamps import parse_due_date, parse_iso_timestamp

logger = logging.getLogger(__name__)

GITLAB_ICON = "\U0001F98A"
DEFAULT_SERVER_URL = "https://gitlab.com/api/v4/"
DEFAULT_PER_PAGE = 100


class GitLabSource(SessionOwner, TaskSource):
    config_type = "gitlab"
    type_name = "GitLab"

    def __init__(self, options: Dict[str, Any], session: requests.Session | None = None) -> None:
        self._name = str(options.get("name") or "GitLab")
        self._server_url = str(options.get("server_url") or DEFAULT_SERVER_URL)
        self._user_name = str(options.get("user_name") or "")
        self._per_page = int_option(options, "per_page", DEFAULT_PER_PAGE, label=f"gitlab source '{self._name}'")
        self._use_session(session)

    def name(self) -> str:
        return self._name

    def icon(self) -> str:
        return GITLAB_ICON

    def options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "name": self._name,
            "server_url": self._server_url,
            "user_name": self._user_name,
        }
        if self._per_page != DEFAULT_PER_PAGE:
            options["per_page"] = self._per_page
        return options

    def query_tasks(self, secret: str | None) -> List[TaskRecord]:
        label = f"gitlab source '{self._name}'"
        check_url(self._server_url, label=label)
        if not self._user_name:
            raise SourceConfigError(f"{label} requires 'user_name'")
        headers = {"PRIVATE-TOKEN": secret} if secret else {}
        projects: Dict[int, str] = {}

        tasks: List[TaskRecord] = []
        issue_params = {"state": "opened", "assignee_username": self._user_name}
        for issue in self._paginate("issues", issue_params, headers, label=label):
            tasks.append(self._normalise(issue, projects, headers, label=label, what="issue"))
        mr_params = {"state": "opened", "scope": "assigned_to_me"}
        for merge_request in self._paginate("merge_requests", mr_params, headers, label=label):
            tasks.append(self._normalise(merge_request, projects, headers, label=label, what="merge request"))
        return tasks

    def _paginate(
        self,
        path: str,
        params: Dict[str, Any],
        headers: Dict[str, str],
        *,
        label: str,
    ) -> Iterator[Dict[str, Any]]:
        url = join_url(self._server_url, path)
        page = 1
        while True:
            page_params = dict(params, page=page, per_page=self._per_page)
            items = get_json(self._session, url, label=label, headers=headers, params=page_params)
            if not isinstance(items, list):
                raise SourceSchemaError(f"{label}: expected a list from {path}")
            if not items:
                return
            for item in items:
                if not isinstance(item, dict):
                    raise SourceSchemaError(f"{label}: {path} entries must be objects")
                yield item
            page += 1

    def _normalise(
        self,
        item: Dict[str, Any],
        projects: Dict[int, str],
        headers: Dict[str, str],
        *,
        label: str,
        what: str,
    ) -> TaskRecord:
        title = require(item, "title", str, label=label, what=what)
        url = require(item, "web_url", str, label=label, what=what)
        project_id = require(item, "project_id", int, label=label, what=what)

        created_raw = item.get("created_at")
        created = parse_iso_timestamp(created_raw, label=label) if isinstance(created_raw, str) else None
        due_raw = item.get("due_date")
        due = parse_due_date(due_raw, label=label) if isinstance(due_raw, str) else None

        return TaskRecord(
            project=f"{GITLAB_ICON} {self._project_name(project_id, projects, headers, label=label)}",
            title=title,
            description=url,
            due=due,
            created=created,
            id=url,
        )

    def _project_name(
        self,
        project_id: int,
        projects: Dict[int, str],
        headers: Dict[str, str],
        *,
        label: str,
    ) -> str:
        cached = projects.get(project_id)
        if cached is not None:
            return cached
        try:
            payload = get_json(
                self._session,
                join_url(self._server_url, f"projects/{project_id}"),
                label=label,
                headers=headers,
            )
            name = require(payload, "name_with_namespace", str, label=label, what="project")
        except TaskSourceError as exc:
            logger.info("%s: project %s lookup failed: %s", label, project_id, exc)
            name = self._name
        projects[project_id] = name
        return name


__all__ = ["GITLAB_ICON", "GitLabSource"]
