"""Task fetching, the single-task next/complete/comment flow and project mapping."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable

import typer

from . import dates, render, selector, storage
from .models import (
    Priority,
    Project,
    ProjectSelector,
    PromptCancelledError,
    RemoteError,
    RemoteFetchError,
    Section,
    Selector,
    SortOrder,
    Task,
    TaskAttribute,
    TodError,
)
from .prompt_ui import PromptProvider
from .sorting import sort_tasks
from .storage import Config
from .todoist import TodoistClient

logger = logging.getLogger(__name__)

PRIORITY_OPTIONS = [(str(int(priority)), priority.label) for priority in Priority]


def split_reminder(text: str) -> tuple[str, str | None]:
    """Split 'content !reminder' into its parts."""
    index = text.find("!")
    if index < 0:
        return text.strip(), None
    reminder = text[index + 1 :].strip()
    return text[:index].strip(), reminder or None


class TodService:
    def __init__(
        self,
        config: Config,
        client: TodoistClient,
        prompts: PromptProvider,
        *,
        echo: Callable[[str], None] = typer.echo,
    ) -> None:
        self.config = config
        self.client = client
        self.prompts = prompts
        self.echo = echo

    def today(self) -> dt.date:
        return dates.today(self.config.timezone)

    def resolve_selector(self, project: str | None, filter: str | None) -> Selector:
        return selector.resolve(
            project,
            filter,
            projects=self.config.projects,
            prompts=self.prompts,
        )

    def fetch_tasks(self, task_selector: Selector) -> list[Task]:
        try:
            if isinstance(task_selector, ProjectSelector):
                tasks = self.client.tasks_for_project(task_selector.project.id)
            else:
                tasks = self.client.tasks_for_filter(task_selector.expression)
        except RemoteError as exc:
            raise RemoteFetchError(exc.message, source=exc.source) from exc
        logger.debug("Fetched %d tasks for %s", len(tasks), task_selector)
        return [task for task in tasks if not task.is_completed]

    def sort(self, tasks: list[Task], order: SortOrder) -> list[Task]:
        return sort_tasks(tasks, order, today=self.today(), weights=self.config.value_weights)

    def _project_for(self, task_selector: Selector, task: Task) -> Project | None:
        if isinstance(task_selector, ProjectSelector):
            return task_selector.project
        return self.config.project_by_id(task.project_id)

    def next_task(self, task_selector: Selector) -> str:
        tasks = self.sort(self.fetch_tasks(task_selector), SortOrder.VALUE)
        if not tasks:
            return "No tasks on list"
        task = tasks[0]
        storage.remember_task(self.config, task, self._project_for(task_selector, task))
        return render.render_task_plain(task)

    def complete_current(self) -> str:
        pointer = storage.recall_task(self.config, "complete")
        self.client.complete_task(pointer.id)
        return "Task completed successfully"

    def comment_current(self, content: str | None = None) -> str:
        pointer = storage.recall_task(self.config, "comment")
        text = self._require_text(content, "Enter comment")
        self.client.create_comment(pointer.id, text)
        return "Comment created successfully"

    def _require_text(self, value: str | None, title: str) -> str:
        if value is None:
            value = self.prompts.text(title)
            if value is None:
                raise PromptCancelledError(f"Cancelled: {title}")
        value = value.strip()
        if not value:
            raise TodError(f"{title}: value cannot be empty", source="input")
        return value

    def quick_add(self, content: str | None) -> str:
        text = self._require_text(content, "Content")
        body, reminder = split_reminder(text)
        task = self.client.quick_add(body, reminder)
        return f"✓ {task.content}"

    def pick_priority(self, priority: int | None = None) -> Priority:
        if priority is not None:
            return Priority.from_value(priority)
        choice = self.prompts.select("Choose a priority", PRIORITY_OPTIONS, default="1")
        if choice is None:
            raise PromptCancelledError("No priority selected")
        return Priority.from_value(choice)

    def select_section(self, project: Project) -> Section | None:
        sections = self.client.sections(project.id)
        if not sections:
            return None
        options = [("", "No section"), *[(section.id, section.name) for section in sections]]
        choice = self.prompts.select("Select section", options, default="")
        if choice is None:
            raise PromptCancelledError("No section selected")
        for section in sections:
            if section.id == choice:
                return section
        return None

    def create_task(
        self,
        *,
        content: str | None = None,
        project_name: str | None = None,
        due: str | None = None,
        description: str = "",
        priority: int | None = None,
        labels: list[str] | None = None,
        no_section: bool = False,
    ) -> str:
        fields: dict[str, Any] = {}
        no_flags = (
            content is None
            and project_name is None
            and due is None
            and not description
            and priority is None
            and not labels
        )
        if no_flags:
            attribute_options = [(attribute.value, attribute.value) for attribute in TaskAttribute]
            chosen = self.prompts.multi_select("Choose attributes to set", attribute_options)
            if chosen is None:
                raise PromptCancelledError("No attributes selected")
            selections = {TaskAttribute(value) for value in chosen}
            fields["content"] = self._require_text(None, "Content")
            if TaskAttribute.DESCRIPTION in selections:
                fields["description"] = self._require_text(None, "Description")
            if TaskAttribute.PRIORITY in selections:
                fields["priority"] = int(self.pick_priority())
            if TaskAttribute.DUE in selections:
                date_input = self.prompts.date_input(
                    "Choose a due date",
                    formats=self._due_formats(),
                    sentinels=(),
                )
                if date_input is None:
                    raise PromptCancelledError("No due date entered")
                fields.update(dates.date_input_fields(date_input))
            if TaskAttribute.LABELS in selections:
                names = self.client.labels()
                chosen_labels = self.prompts.multi_select(
                    "Select labels",
                    [(name, name) for name in names],
                )
                if chosen_labels is None:
                    raise PromptCancelledError("No labels selected")
                fields["labels"] = chosen_labels
        else:
            fields["content"] = self._require_text(content, "Content")
            if description:
                fields["description"] = description
            fields["priority"] = int(self.pick_priority(priority))
            if due:
                fields.update(dates.due_fields(due))
            if labels:
                fields["labels"] = list(labels)

        project = selector.pick_project(self.config.projects, self.prompts, project_name)
        fields["project_id"] = project.id
        if not (no_section or self.config.no_sections):
            section = self.select_section(project)
            if section is not None:
                fields["section_id"] = section.id

        task = self.client.create_task(fields)
        return f"✓ {task.content}"

    def _due_formats(self) -> tuple[str, ...]:
        if self.config.natural_language_only:
            return ("natural",)
        return ("natural", "date", "datetime")

    def edit_task(self, task_selector: Selector) -> str:
        tasks = self.sort(self.fetch_tasks(task_selector), SortOrder.DATETIME)
        if not tasks:
            return "No tasks on list"
        choice = self.prompts.select(
            "Choose a task to edit",
            [(task.id, task.content) for task in tasks],
            fuzzy=True,
        )
        if choice is None:
            raise PromptCancelledError("No task selected")
        task = next(task for task in tasks if task.id == choice)
        content = self.prompts.text("Edit content", default=task.content)
        if content is None:
            raise PromptCancelledError("No content entered")
        content = content.strip()
        if not content or content == task.content:
            return "Task unchanged"
        self.client.update_task(task.id, {"content": content})
        return "Task updated successfully"

    def list_projects(self) -> str:
        return render.render_projects_plain(self.config.projects)

    def import_projects(self, *, auto: bool = False) -> str:
        known = {project.id for project in self.config.projects}
        candidates = [project for project in self.client.projects() if project.id not in known]
        if not candidates:
            return "No new projects found"
        if auto:
            chosen = candidates
        else:
            picked = self.prompts.multi_select(
                "Select projects to add",
                [(project.id, project.name) for project in candidates],
            )
            if picked is None:
                raise PromptCancelledError("No projects selected")
            chosen = [project for project in candidates if project.id in set(picked)]
        added = storage.add_projects(self.config, chosen)
        return f"Added {len(added)} project(s)"

    def remove_projects(
        self,
        *,
        project_name: str | None = None,
        auto: bool = False,
        remove_all: bool = False,
    ) -> str:
        if auto and remove_all:
            raise TodError("Incorrect flags provided", source="project_remove")
        if remove_all:
            ids = {project.id for project in self.config.projects}
        elif auto:
            remote = {project.id for project in self.client.projects()}
            ids = {project.id for project in self.config.projects if project.id not in remote}
        else:
            ids = {selector.pick_project(self.config.projects, self.prompts, project_name).id}
        removed = storage.remove_projects(self.config, ids)
        if not removed:
            return "No projects removed"
        names = ", ".join(project.name for project in removed)
        return f"Removed {len(removed)} project(s): {names}"

