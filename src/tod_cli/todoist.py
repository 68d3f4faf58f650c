"""HTTP client for the Todoist REST API."""

from __future__ import annotations

import logging
from typing import Any

import requests

from .dates import parse_deadline, parse_due
from .models import Duration, Priority, Project, RemoteError, Section, Task

logger = logging.getLogger(__name__)

REST_BASE_URL = "https://api.todoist.com/rest/v2"
SYNC_BASE_URL = "https://api.todoist.com/sync/v9"
DEFAULT_TIMEOUT = 30


def task_from_json(payload: dict[str, Any], timezone: str | None = None) -> Task:
    duration_payload = payload.get("duration")
    duration = None
    if duration_payload:
        duration = Duration(
            amount=int(duration_payload["amount"]),
            unit=str(duration_payload.get("unit") or "minute"),
        )
    section_id = payload.get("section_id")
    project_id = payload.get("project_id")
    return Task(
        id=str(payload["id"]),
        content=str(payload.get("content", "")),
        description=str(payload.get("description") or ""),
        priority=Priority.from_value(payload.get("priority")),
        due=parse_due(payload.get("due"), timezone),
        deadline=parse_deadline(payload.get("deadline")),
        duration=duration,
        labels=[str(label) for label in payload.get("labels") or []],
        project_id=str(project_id) if project_id is not None else None,
        section_id=str(section_id) if section_id is not None else None,
        is_completed=bool(payload.get("is_completed", False)),
    )


class TodoistClient:
    def __init__(
        self,
        token: str,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        timezone: str | None = None,
        base_url: str = REST_BASE_URL,
        sync_url: str = SYNC_BASE_URL,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.timezone = timezone
        self.base_url = base_url.rstrip("/")
        self.sync_url = sync_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        url: str,
        *,
        source: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        logger.debug("%s %s params=%s body=%s", method, url, params, json)
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise RemoteError(
                f"Request timed out after {self.timeout}s: {method} {url}",
                source=source,
            ) from exc
        except requests.RequestException as exc:
            raise RemoteError(f"Request failed: {exc}", source=source) from exc

        if not 200 <= response.status_code < 300:
            detail = response.text.strip()
            message = f"{method} {url} returned {response.status_code}"
            if detail:
                message = f"{message}: {detail}"
            raise RemoteError(message, source=source)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"Invalid JSON from {url}", source=source) from exc

    def _tasks(self, params: dict[str, Any], source: str) -> list[Task]:
        data = self._request("GET", f"{self.base_url}/tasks", params=params, source=source) or []
        return [task_from_json(item, self.timezone) for item in data]

    def projects(self) -> list[Project]:
        data = self._request("GET", f"{self.base_url}/projects", source="get_projects") or []
        return [Project(id=str(item["id"]), name=str(item["name"])) for item in data]

    def labels(self) -> list[str]:
        data = self._request("GET", f"{self.base_url}/labels", source="get_labels") or []
        return [str(item["name"]) for item in data]

    def sections(self, project_id: str) -> list[Section]:
        data = self._request(
            "GET",
            f"{self.base_url}/sections",
            params={"project_id": project_id},
            source="get_sections",
        ) or []
        return [
            Section(id=str(item["id"]), name=str(item["name"]), project_id=str(item["project_id"]))
            for item in data
        ]

    def tasks_for_project(self, project_id: str) -> list[Task]:
        return self._tasks({"project_id": project_id}, "tasks_for_project")

    def tasks_for_filter(self, expression: str) -> list[Task]:
        """Fetch tasks for each comma-separated filter, keeping first-seen order."""
        seen: set[str] = set()
        tasks: list[Task] = []
        for query in [part.strip() for part in expression.split(",") if part.strip()]:
            for task in self._tasks({"filter": query}, "tasks_for_filter"):
                if task.id in seen:
                    continue
                seen.add(task.id)
                tasks.append(task)
        return tasks

    def task(self, task_id: str) -> Task:
        data = self._request("GET", f"{self.base_url}/tasks/{task_id}", source="get_task")
        return task_from_json(data, self.timezone)

    def update_task(self, task_id: str, fields: dict[str, Any]) -> None:
        self._request("POST", f"{self.base_url}/tasks/{task_id}", json=fields, source="update_task")

    def complete_task(self, task_id: str) -> None:
        self._request("POST", f"{self.base_url}/tasks/{task_id}/close", source="complete_task")

    def create_task(self, fields: dict[str, Any]) -> Task:
        data = self._request("POST", f"{self.base_url}/tasks", json=fields, source="create_task")
        return task_from_json(data, self.timezone)

    def quick_add(self, text: str, reminder: str | None = None) -> Task:
        body: dict[str, Any] = {"text": text}
        if reminder:
            body["reminder"] = reminder
        data = self._request("POST", f"{self.sync_url}/quick/add", json=body, source="quick_add")
        return task_from_json(data, self.timezone)

    def create_comment(self, task_id: str, content: str) -> None:
        self._request(
            "POST",
            f"{self.base_url}/comments",
            json={"task_id": task_id, "content": content},
            source="create_comment",
        )
