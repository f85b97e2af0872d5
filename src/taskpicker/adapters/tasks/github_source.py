"""GitHub issues task source."""

from __future__ import annotations

from typing import Any, Dict, List

import requests

from taskpicker.domain.tasks import TaskRecord
from taskpicker.ports.tasks.source import SourceSchemaError, TaskSource

from .http import SessionOwner, auth_headers, check_url, get_json, join_url, require
from .timestamps import parse_iso_timestamp

GITHUB_ICON = "\U0001F419"
DEFAULT_SERVER_URL = "https://api.github.com"
API_VERSION = "2022-11-28"


class GitHubSource(SessionOwner, TaskSource):
    config_type = "github"
    type_name = "GitHub"

    def __init__(self, options: Dict[str, Any], session: requests.Session | None = None) -> None:
        self._name = str(options.get("name") or "GitHub")
        self._server_url = str(options.get("server_url") or DEFAULT_SERVER_URL)
        self._use_session(session)

    def name(self) -> str:
        return self._name

    def icon(self) -> str:
        return GITHUB_ICON

    def options(self) -> Dict[str, Any]:
        return {"name": self._name, "server_url": self._server_url}

    def query_tasks(self, secret: str | None) -> List[TaskRecord]:
        label = f"github source '{self._name}'"
        check_url(self._server_url, label=label)
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        headers.update(auth_headers(secret))
        issues = get_json(self._session, join_url(self._server_url, "issues"), label=label, headers=headers)
        if not isinstance(issues, list):
            raise SourceSchemaError(f"{label}: expected a list of issues")
        tasks: List[TaskRecord] = []
        for issue in issues:
            if not isinstance(issue, dict) or issue.get("state") != "open":
                continue
            tasks.append(self._normalise_issue(issue, label=label))
        return tasks

    def _normalise_issue(self, issue: Dict[str, Any], *, label: str) -> TaskRecord:
        repository = issue.get("repository")
        if isinstance(repository, dict):
            project = require(repository, "full_name", str, label=label, what="issue repository")
        else:
            project = self._name
        title = require(issue, "title", str, label=label, what="issue")
        url = require(issue, "html_url", str, label=label, what="issue")

        created_raw = issue.get("created_at")
        created = parse_iso_timestamp(created_raw, label=label) if isinstance(created_raw, str) else None

        due = None
        milestone = issue.get("milestone")
        if isinstance(milestone, dict) and isinstance(milestone.get("due_on"), str):
            due = parse_iso_timestamp(milestone["due_on"], label=label)

        return TaskRecord(
            project=f"{GITHUB_ICON} {project}",
            title=title,
            description=url,
            due=due,
            created=created,
            id=url,
        )


__all__ = ["GITHUB_ICON", "GitHubSource"]
