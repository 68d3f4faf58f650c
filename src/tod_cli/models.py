"""Core task models, selectors and error kinds."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import datetime as dt
from enum import Enum, IntEnum
from typing import Any, Union


class Priority(IntEnum):
    """Remote priority ordinal: 1 is no priority, 4 is the highest."""

    NONE = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4

    @property
    def label(self) -> str:
        return {
            Priority.NONE: "None",
            Priority.LOW: "Low",
            Priority.MEDIUM: "Medium",
            Priority.HIGH: "High",
        }[self]

    @classmethod
    def from_value(cls, value: int | str | None) -> Priority:
        if value is None:
            return cls.NONE
        try:
            return cls(int(value))
        except ValueError:
            return cls.NONE


class SortOrder(str, Enum):
    DATETIME = "datetime"
    VALUE = "value"


class TaskAttribute(str, Enum):
    DESCRIPTION = "Description"
    PRIORITY = "Priority"
    DUE = "Due"
    LABELS = "Labels"


@dataclass(slots=True)
class Due:
    date: dt.date
    datetime: dt.datetime | None = None
    is_recurring: bool = False
    string: str = ""

    @property
    def has_time(self) -> bool:
        return self.datetime is not None


@dataclass(slots=True)
class Duration:
    amount: int
    unit: str = "minute"

    def __str__(self) -> str:
        suffix = "m" if self.unit == "minute" else "d"
        return f"{self.amount}{suffix}"


@dataclass(slots=True)
class Task:
    id: str
    content: str
    description: str = ""
    priority: Priority = Priority.NONE
    due: Due | None = None
    deadline: dt.date | None = None
    duration: Duration | None = None
    labels: list[str] = field(default_factory=list)
    project_id: str | None = None
    section_id: str | None = None
    is_completed: bool = False

    @property
    def is_recurring(self) -> bool:
        return self.due is not None and self.due.is_recurring


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Section:
    id: str
    name: str
    project_id: str


@dataclass(frozen=True, slots=True)
class ProjectSelector:
    project: Project


@dataclass(frozen=True, slots=True)
class FilterSelector:
    expression: str


Selector = Union[ProjectSelector, FilterSelector]


@dataclass(slots=True)
class NextTask:
    """The task surfaced by the last `task next`, kept between invocations."""

    id: str
    content: str
    project_id: str | None = None
    project_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DateInputKind(str, Enum):
    TEXT = "text"
    SKIP = "skip"
    COMPLETE = "complete"
    NONE = "none"
    QUIT = "quit"


@dataclass(frozen=True, slots=True)
class DateInput:
    kind: DateInputKind
    text: str = ""


@dataclass(slots=True)
class ListResult:
    """Outcome of one list operation; partial runs are still results."""

    action: str
    applied: int = 0
    skipped: int = 0
    not_reached: int = 0
    completed: int = 0
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.applied + self.completed

    @property
    def total(self) -> int:
        return self.processed + self.skipped + self.not_reached

    def summary(self) -> str:
        if self.action == "completed":
            parts = [f"{self.completed} completed"]
        else:
            parts = [f"{self.applied} {self.action}"]
            if self.completed:
                parts.append(f"{self.completed} completed")
        parts.append(f"{self.skipped} skipped")
        parts.append(f"{self.not_reached} not reached")
        return ", ".join(parts)


class TodError(Exception):
    """Base error; carries the component that raised it."""

    default_source = "tod"

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source or self.default_source


class ConfigError(TodError):
    """Raised when the config file is unusable or incomplete."""

    default_source = "config"


class SelectorConflictError(TodError):
    """Raised when both a project and a filter are supplied."""

    default_source = "project_or_filter"


class SelectorUnresolvableError(TodError):
    """Raised when no usable project or filter can be determined."""

    default_source = "project_or_filter"


class NoProjectsConfiguredError(SelectorUnresolvableError):
    default_source = "fetch_project"


class ProjectNotFoundError(TodError):
    default_source = "fetch_project"


class PromptCancelledError(TodError):
    """Raised when the user backs out of a required prompt."""

    default_source = "input"


class InvalidDateInputError(TodError):
    default_source = "input"


class RemoteError(TodError):
    """Raised for any failed call to the remote API."""

    default_source = "todoist"


class RemoteFetchError(RemoteError):
    pass


class RemoteUpdateError(RemoteError):
    """Raised when updating one task fails mid-loop."""

    def __init__(
        self,
        message: str,
        *,
        task_id: str,
        processed: int = 0,
        source: str | None = None,
    ) -> None:
        super().__init__(message, source=source)
        self.task_id = task_id
        self.processed = processed


class NoCurrentTaskError(TodError):
    """Raised when complete/comment run before any `task next`."""

    default_source = "next_task"
