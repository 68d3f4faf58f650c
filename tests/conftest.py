from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any

import pytest

from tod_cli import updates
from tod_cli.models import Due, Priority, Project, RemoteError, Section, Task
from tod_cli.prompt_ui import ScriptedPrompts
from tod_cli.service import TodService
from tod_cli.storage import Config


TODAY = dt.date(2026, 3, 10)


def make_task(
    task_id: str,
    content: str | None = None,
    *,
    due: dt.date | None = None,
    due_time: dt.time | None = None,
    recurring: bool = False,
    deadline: dt.date | None = None,
    priority: Priority = Priority.NONE,
    labels: list[str] | None = None,
    project_id: str = "p1",
) -> Task:
    task_due = None
    if due is not None:
        when = dt.datetime.combine(due, due_time) if due_time is not None else None
        task_due = Due(date=due, datetime=when, is_recurring=recurring, string="every day" if recurring else "")
    return Task(
        id=task_id,
        content=content or f"task {task_id}",
        priority=priority,
        due=task_due,
        deadline=deadline,
        labels=list(labels or []),
        project_id=project_id,
    )


class FakeClient:
    """In-memory stand-in for TodoistClient that records every write."""

    def __init__(
        self,
        tasks: list[Task] | None = None,
        *,
        projects: list[Project] | None = None,
        labels: list[str] | None = None,
        sections: list[Section] | None = None,
        fail_on: str | None = None,
    ) -> None:
        self.tasks = list(tasks or [])
        self.remote_projects = list(projects or [])
        self.remote_labels = list(labels or [])
        self.remote_sections = list(sections or [])
        self.fail_on = fail_on
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.completed: list[str] = []
        self.created: list[dict[str, Any]] = []
        self.quick_added: list[tuple[str, str | None]] = []
        self.comments: list[tuple[str, str]] = []
        self.filters: list[str] = []

    def _check(self, task_id: str) -> None:
        if task_id == self.fail_on:
            raise RemoteError(f"POST /tasks/{task_id} returned 500", source="update_task")

    def projects(self) -> list[Project]:
        return list(self.remote_projects)

    def labels(self) -> list[str]:
        return list(self.remote_labels)

    def sections(self, project_id: str) -> list[Section]:
        return [section for section in self.remote_sections if section.project_id == project_id]

    def tasks_for_project(self, project_id: str) -> list[Task]:
        return [task for task in self.tasks if task.project_id == project_id]

    def tasks_for_filter(self, expression: str) -> list[Task]:
        self.filters.append(expression)
        return list(self.tasks)

    def update_task(self, task_id: str, fields: dict[str, Any]) -> None:
        self._check(task_id)
        self.updates.append((task_id, fields))

    def complete_task(self, task_id: str) -> None:
        self._check(task_id)
        self.completed.append(task_id)

    def create_task(self, fields: dict[str, Any]) -> Task:
        self.created.append(fields)
        return Task(id=f"new-{len(self.created)}", content=fields["content"])

    def quick_add(self, text: str, reminder: str | None = None) -> Task:
        if text == self.fail_on:
            raise RemoteError("quick add returned 400", source="quick_add")
        self.quick_added.append((text, reminder))
        return Task(id=f"quick-{len(self.quick_added)}", content=text)

    def create_comment(self, task_id: str, content: str) -> None:
        self.comments.append((task_id, content))


class FixedDayService(TodService):
    def today(self) -> dt.date:
        return TODAY


@pytest.fixture(autouse=True)
def no_version_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(updates, "start_version_check", lambda enabled, timeout=5: None)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        path=tmp_path / "config.yaml",
        token="secret-token-12345",
        projects=[Project("p1", "Inbox"), Project("p2", "Work")],
    )


@pytest.fixture
def make_service(config: Config):
    def _make(client: FakeClient, answers=()) -> tuple[FixedDayService, ScriptedPrompts, list[str]]:
        prompts = ScriptedPrompts(answers)
        output: list[str] = []
        svc = FixedDayService(config, client, prompts, echo=output.append)
        return svc, prompts, output

    return _make
