"""Bulk list operations and the per-task attribute workflow that drives them.

Every mutating list operation follows the same loop: present one task,
collect one answer, send at most one remote write, move on. A quit ends the
loop without error; a failed write stops it and reports how far it got.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from pathlib import Path
from typing import Any, Callable

from . import dates, render
from .models import (
    DateInput,
    DateInputKind,
    InvalidDateInputError,
    ListResult,
    Priority,
    ProjectSelector,
    PromptCancelledError,
    RemoteError,
    RemoteUpdateError,
    Selector,
    SortOrder,
    Task,
    TodError,
)
from .service import PRIORITY_OPTIONS, TodService

logger = logging.getLogger(__name__)

SKIP_OPTION = ("skip", "Skip")
QUIT_OPTION = ("quit", "Quit")


class WorkflowState(str, Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    COLLECTING = "collecting"
    APPLYING = "applying"
    CANCELLED = "cancelled"
    DONE = "done"


class Outcome(str, Enum):
    APPLY = "apply"
    COMPLETE = "complete"
    SKIP = "skip"
    QUIT = "quit"


@dataclass(frozen=True, slots=True)
class Collected:
    outcome: Outcome
    fields: dict[str, Any] = field(default_factory=dict)


SKIP = Collected(Outcome.SKIP)
QUIT = Collected(Outcome.QUIT)
COMPLETE = Collected(Outcome.COMPLETE)


def _apply(fields: dict[str, Any]) -> Collected:
    return Collected(Outcome.APPLY, fields)


class AttributeWorkflow:
    """Walks a sorted task list once, applying one collected edit per task."""

    def __init__(
        self,
        svc: TodService,
        *,
        action: str,
        collect: Callable[[Task], Collected],
    ) -> None:
        self.svc = svc
        self.action = action
        self.collect = collect
        self.state = WorkflowState.IDLE
        self.current: Task | None = None

    def _present(self, task: Task) -> None:
        self.state = WorkflowState.PRESENTING
        self.current = task
        self.svc.echo("")
        self.svc.echo(render.render_task_plain(task))

    def _write(self, task: Task, collected: Collected) -> None:
        if collected.outcome == Outcome.COMPLETE:
            self.svc.client.complete_task(task.id)
        else:
            self.svc.client.update_task(task.id, collected.fields)

    def run(self, tasks: list[Task]) -> ListResult:
        result = ListResult(action=self.action)
        for index, task in enumerate(tasks):
            self._present(task)
            self.state = WorkflowState.COLLECTING
            collected = self.collect(task)

            if collected.outcome == Outcome.QUIT:
                result.not_reached = len(tasks) - index
                result.cancelled = True
                self.state = WorkflowState.CANCELLED
                return result
            if collected.outcome == Outcome.SKIP:
                result.skipped += 1
                continue

            self.state = WorkflowState.APPLYING
            try:
                self._write(task, collected)
            except RemoteError as exc:
                raise RemoteUpdateError(
                    f"Could not update task '{task.content}' ({exc.message}). "
                    f"{result.processed} task(s) processed before the failure.",
                    task_id=task.id,
                    processed=result.processed,
                    source=exc.source,
                ) from exc
            if collected.outcome == Outcome.COMPLETE:
                result.completed += 1
            else:
                result.applied += 1
            logger.debug("%s task %s with %s", self.action, task.id, collected)

        self.current = None
        self.state = WorkflowState.DONE
        return result


def _from_date_input(date_input: DateInput | None, *, deadline: bool = False) -> Collected:
    if date_input is None or date_input.kind == DateInputKind.QUIT:
        return QUIT
    if date_input.kind == DateInputKind.SKIP:
        return SKIP
    if date_input.kind == DateInputKind.COMPLETE:
        return COMPLETE
    return _apply(dates.date_input_fields(date_input, deadline=deadline))


def _ask_date(
    svc: TodService,
    title: str,
    *,
    formats: tuple[str, ...],
    sentinels: tuple[DateInputKind, ...],
    deadline: bool = False,
) -> Collected:
    while True:
        date_input = svc.prompts.date_input(title, formats=formats, sentinels=sentinels)
        try:
            return _from_date_input(date_input, deadline=deadline)
        except InvalidDateInputError as exc:
            svc.echo(f"Invalid input: {exc.message}")


def _due_formats(svc: TodService) -> tuple[str, ...]:
    if svc.config.natural_language_only:
        return ("natural",)
    return ("natural", "date", "datetime")


def fetch_sorted(svc: TodService, task_selector: Selector, order: SortOrder) -> list[Task]:
    return svc.sort(svc.fetch_tasks(task_selector), order)


def view(svc: TodService, task_selector: Selector, order: SortOrder) -> list[Task]:
    return fetch_sorted(svc, task_selector, order)


def process(svc: TodService, task_selector: Selector, order: SortOrder) -> ListResult:
    tasks = fetch_sorted(svc, task_selector, order)
    if isinstance(task_selector, ProjectSelector):
        today = svc.today()
        tasks = [task for task in tasks if task.due is None or task.due.date <= today]

    def collect(task: Task) -> Collected:
        choice = svc.prompts.select(
            "Complete this task?",
            [("complete", "Complete"), SKIP_OPTION, QUIT_OPTION],
            default="complete",
        )
        if choice == "complete":
            return COMPLETE
        if choice == "skip":
            return SKIP
        return QUIT

    return AttributeWorkflow(svc, action="completed", collect=collect).run(tasks)


def prioritize(svc: TodService, task_selector: Selector, order: SortOrder) -> ListResult:
    tasks = fetch_sorted(svc, task_selector, order)
    if isinstance(task_selector, ProjectSelector):
        tasks = [task for task in tasks if task.priority == Priority.NONE]

    def collect(task: Task) -> Collected:
        choice = svc.prompts.select(
            "Choose a priority",
            [*PRIORITY_OPTIONS, SKIP_OPTION, QUIT_OPTION],
            default=str(int(task.priority)),
        )
        if choice is None or choice == "quit":
            return QUIT
        if choice == "skip":
            return SKIP
        return _apply({"priority": int(Priority.from_value(choice))})

    return AttributeWorkflow(svc, action="prioritized", collect=collect).run(tasks)


def label(
    svc: TodService,
    task_selector: Selector,
    order: SortOrder,
    labels: list[str] | None = None,
) -> ListResult:
    choices = list(labels or []) or svc.client.labels()
    if not choices:
        raise TodError("No labels to choose from", source="label")
    tasks = fetch_sorted(svc, task_selector, order)
    offered = set(choices)

    def collect(task: Task) -> Collected:
        selected = svc.prompts.multi_select(
            "Select labels (none to skip)",
            [(name, name) for name in choices],
            defaults=[name for name in task.labels if name in offered],
        )
        if selected is None:
            return QUIT
        if not selected:
            return SKIP
        kept = [name for name in task.labels if name not in offered]
        return _apply({"labels": [*kept, *selected]})

    return AttributeWorkflow(svc, action="labeled", collect=collect).run(tasks)


def schedule(
    svc: TodService,
    task_selector: Selector,
    order: SortOrder,
    *,
    overdue_only: bool = False,
    skip_recurring: bool = False,
) -> ListResult:
    tasks = fetch_sorted(svc, task_selector, order)
    today = svc.today()
    if overdue_only:
        tasks = [task for task in tasks if dates.is_overdue(task.due, today)]
    elif isinstance(task_selector, ProjectSelector):
        tasks = [task for task in tasks if task.due is None or dates.is_overdue(task.due, today)]
    if skip_recurring:
        tasks = [task for task in tasks if not task.is_recurring]

    def collect(task: Task) -> Collected:
        return _ask_date(
            svc,
            "Schedule this task",
            formats=_due_formats(svc),
            sentinels=(
                DateInputKind.SKIP,
                DateInputKind.COMPLETE,
                DateInputKind.NONE,
                DateInputKind.QUIT,
            ),
        )

    return AttributeWorkflow(svc, action="scheduled", collect=collect).run(tasks)


def deadline(svc: TodService, task_selector: Selector, order: SortOrder) -> ListResult:
    tasks = [
        task
        for task in fetch_sorted(svc, task_selector, order)
        if not task.is_recurring and task.deadline is None
    ]

    def collect(task: Task) -> Collected:
        return _ask_date(
            svc,
            "Set a deadline",
            formats=("date",),
            sentinels=(DateInputKind.SKIP, DateInputKind.COMPLETE, DateInputKind.QUIT),
            deadline=True,
        )

    return AttributeWorkflow(svc, action="deadlined", collect=collect).run(tasks)


def timebox(svc: TodService, task_selector: Selector, order: SortOrder) -> ListResult:
    tasks = fetch_sorted(svc, task_selector, order)
    if isinstance(task_selector, ProjectSelector):
        tasks = [task for task in tasks if task.duration is None]
    formats = ("natural",) if svc.config.natural_language_only else ("datetime", "natural")

    def collect(task: Task) -> Collected:
        when = _ask_date(
            svc,
            "Choose a start date and time",
            formats=formats,
            sentinels=(DateInputKind.SKIP, DateInputKind.COMPLETE, DateInputKind.QUIT),
        )
        if when.outcome != Outcome.APPLY:
            return when
        while True:
            raw = svc.prompts.text("Duration in minutes (e.g. 30 or 1h)")
            if raw is None:
                return QUIT
            try:
                minutes = dates.parse_duration_minutes(raw)
            except InvalidDateInputError as exc:
                svc.echo(f"Invalid input: {exc.message}")
                continue
            return _apply({**when.fields, "duration": minutes, "duration_unit": "minute"})

    return AttributeWorkflow(svc, action="timeboxed", collect=collect).run(tasks)


def select_import_file(svc: TodService, path: Path) -> Path:
    if path.is_file():
        return path
    if not path.is_dir():
        raise TodError(f"{path} is neither a file nor a directory", source="select_file")
    options = sorted({str(candidate) for candidate in path.rglob("*.md") if candidate.is_file()})
    if not options:
        raise TodError(f"No .md files found in {path}", source="select_file")
    choice = svc.prompts.select("Select file to process", [(value, value) for value in options], fuzzy=True)
    if choice is None:
        raise PromptCancelledError("No file selected", source="select_file")
    return Path(choice)


def _ask_import_path(svc: TodService) -> Path:
    raw = svc.prompts.text("Enter file or directory path")
    if raw is None:
        raise PromptCancelledError("No path entered", source="select_file")
    raw = raw.strip()
    if not raw:
        raise TodError("Path cannot be empty", source="select_file")
    return Path(raw).expanduser()


def import_file(svc: TodService, path: Path | None = None) -> tuple[int, list[tuple[str, str]]]:
    """Quick-add each non-empty line; failures are collected, not fatal."""
    source = select_import_file(svc, path if path is not None else _ask_import_path(svc))
    try:
        text = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TodError(f"Could not read {source}: {exc}", source="select_file") from exc
    created = 0
    failures: list[tuple[str, str]] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        try:
            svc.client.quick_add(line)
        except RemoteError as exc:
            failures.append((line, exc.message))
            continue
        created += 1
        svc.echo(f"✓ {line}")
    return created, failures
