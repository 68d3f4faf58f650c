"""Renderers for task lists, single tasks and command results."""

from __future__ import annotations

import datetime as dt
from typing import Iterable

from . import dates
from .models import ListResult, Priority, Project, Task


def _priority_style(priority: Priority) -> str:
    return {
        Priority.HIGH: "bold red",
        Priority.MEDIUM: "bold yellow",
        Priority.LOW: "cyan",
        Priority.NONE: "dim",
    }.get(priority, "white")


def _due_style(task: Task, today: dt.date) -> str:
    if task.due is None:
        return "dim"
    if dates.is_overdue(task.due, today):
        return "red"
    if dates.is_today(task.due, today):
        return "green"
    return "magenta"


def _attribute_line(task: Task) -> str:
    parts = []
    if task.due is not None:
        parts.append(f"Due: {dates.format_due(task.due)}")
    if task.deadline is not None:
        parts.append(f"Deadline: {task.deadline.isoformat()}")
    if task.duration is not None:
        parts.append(f"Duration: {task.duration}")
    if task.labels:
        parts.append(f"Labels: {', '.join(task.labels)}")
    return "    ".join(parts)


def render_task_plain(task: Task) -> str:
    title = task.content
    if task.priority != Priority.NONE:
        title = f"[{task.priority.label}] {title}"
    lines = [title]
    if task.description.strip():
        lines.extend(f"  {line}" for line in task.description.strip().splitlines())
    attributes = _attribute_line(task)
    if attributes:
        lines.append(f"  {attributes}")
    return "\n".join(lines)


def render_task_rich(task: Task, today: dt.date | None = None):
    from rich.console import Group
    from rich.text import Text

    reference = today or dt.date.today()
    title = Text()
    if task.priority != Priority.NONE:
        title.append(f"[{task.priority.label}] ", style=_priority_style(task.priority))
    title.append(task.content, style="bold")

    lines = [title]
    if task.description.strip():
        lines.append(Text(task.description.strip(), style="dim"))
    attributes = _attribute_line(task)
    if attributes:
        lines.append(Text(attributes, style=_due_style(task, reference)))
    return Group(*lines)


def render_task_list_plain(tasks: Iterable[Task]) -> str:
    task_list = list(tasks)
    if not task_list:
        return "No tasks found."
    return "\n\n".join(render_task_plain(task) for task in task_list)


def render_task_list_rich(tasks: Iterable[Task], today: dt.date | None = None):
    from rich import box
    from rich.table import Table
    from rich.text import Text

    task_list = list(tasks)
    if not task_list:
        return "No tasks found."

    reference = today or dt.date.today()
    table = Table(
        box=box.SIMPLE_HEAVY,
        show_header=True,
        header_style="bold white",
        pad_edge=False,
    )
    table.add_column("priority", no_wrap=True)
    table.add_column("content", style="bold", overflow="fold")
    table.add_column("due", no_wrap=True)
    table.add_column("deadline", no_wrap=True)
    table.add_column("labels", style="cyan")

    for task in task_list:
        table.add_row(
            Text(task.priority.label, style=_priority_style(task.priority)),
            task.content,
            Text(dates.format_due(task.due) or "-", style=_due_style(task, reference)),
            task.deadline.isoformat() if task.deadline is not None else "-",
            ", ".join(task.labels) or "-",
        )
    return table


def render_projects_plain(projects: Iterable[Project]) -> str:
    project_list = list(projects)
    if not project_list:
        return "No projects in config."
    return "\n".join(f"- {project.name}" for project in project_list)


def render_list_result(result: ListResult) -> str:
    if result.total == 0:
        return "No tasks on list"
    if result.cancelled:
        return f"Stopped early: {result.summary()}"
    return result.summary()


def render_import_result(created: int, failures: list[tuple[str, str]]) -> str:
    lines = [f"{created} created, {len(failures)} failed"]
    for line, message in failures:
        lines.append(f"  failed: {line} ({message})")
    return "\n".join(lines)
