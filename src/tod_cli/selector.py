"""Resolve --project / --filter arguments into a single task selector."""

from __future__ import annotations

from typing import Sequence

from .models import (
    FilterSelector,
    NoProjectsConfiguredError,
    Project,
    ProjectNotFoundError,
    ProjectSelector,
    PromptCancelledError,
    Selector,
    SelectorConflictError,
    SelectorUnresolvableError,
)
from .prompt_ui import PromptProvider

NO_PROJECTS_ERR = "No projects in config. Add projects with `tod project import`"
SELECTOR_OPTIONS = [("project", "Project"), ("filter", "Filter")]


def pick_project(
    projects: Sequence[Project],
    prompts: PromptProvider,
    name: str | None = None,
    *,
    title: str = "Select project",
) -> Project:
    if not projects:
        raise NoProjectsConfiguredError(NO_PROJECTS_ERR)
    if name is not None:
        for project in projects:
            if project.name == name:
                return project
        raise ProjectNotFoundError(f"Could not find project '{name}' in config")
    if len(projects) == 1:
        return projects[0]

    selected = prompts.select(
        title,
        [(project.id, project.name) for project in projects],
        fuzzy=True,
    )
    if selected is None:
        raise PromptCancelledError("No project selected", source="fetch_project")
    for project in projects:
        if project.id == selected:
            return project
    raise ProjectNotFoundError(f"Could not find project '{selected}' in config")


def _filter_selector(expression: str | None, prompts: PromptProvider) -> FilterSelector:
    if expression is None:
        expression = prompts.text("Enter a filter")
        if expression is None:
            raise PromptCancelledError("No filter entered", source="fetch_filter")
    expression = expression.strip()
    if not expression:
        raise SelectorUnresolvableError("Filter cannot be empty", source="fetch_filter")
    return FilterSelector(expression)


def resolve(
    project: str | None,
    filter: str | None,
    *,
    projects: Sequence[Project],
    prompts: PromptProvider,
) -> Selector:
    if project is not None and filter is not None:
        raise SelectorConflictError("Must select project OR filter")
    if project is not None:
        return ProjectSelector(pick_project(projects, prompts, project))
    if filter is not None:
        return _filter_selector(filter, prompts)

    if len(projects) == 1:
        return ProjectSelector(projects[0])

    choice = prompts.select("Select Project or Filter", SELECTOR_OPTIONS, default="project")
    if choice is None:
        raise PromptCancelledError("No selector chosen", source="project_or_filter")
    if choice == "project":
        return ProjectSelector(pick_project(projects, prompts))
    return _filter_selector(None, prompts)
