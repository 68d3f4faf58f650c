"""Prompt providers: interactive terminal prompts and a scripted stand-in."""

from __future__ import annotations

from collections import deque
from typing import Any, Iterable, Protocol

import click
import typer

from . import dates
from .models import DateInput, DateInputKind, InvalidDateInputError
from .selector_ui import (
    SelectorUnavailableError,
    confirm,
    select_fuzzy,
    select_many,
    select_one,
    select_text,
)

DATE_FORMATS = {
    "natural": "Natural language (e.g. 'tomorrow 4pm')",
    "date": "Date (YYYY-MM-DD)",
    "datetime": "Date and time (YYYY-MM-DD HH:MM)",
}
DATE_SENTINELS = {
    DateInputKind.SKIP: "Skip this task",
    DateInputKind.COMPLETE: "Complete this task instead",
    DateInputKind.NONE: "Remove the date",
    DateInputKind.QUIT: "Quit",
}


class PromptProvider(Protocol):
    def select(
        self,
        title: str,
        options: list[tuple[str, str]],
        *,
        default: str | None = None,
        fuzzy: bool = False,
    ) -> str | None: ...

    def multi_select(
        self,
        title: str,
        options: list[tuple[str, str]],
        *,
        defaults: list[str] | None = None,
    ) -> list[str] | None: ...

    def text(self, title: str, *, default: str = "") -> str | None: ...

    def confirm(self, title: str, *, default: bool = False) -> bool | None: ...

    def date_input(
        self,
        title: str,
        *,
        formats: Iterable[str] = ("natural", "date", "datetime"),
        sentinels: Iterable[DateInputKind] = (DateInputKind.SKIP, DateInputKind.QUIT),
    ) -> DateInput | None: ...


def _warn_selector_fallback(exc: Exception) -> None:
    message = str(exc)
    if not message:
        return
    typer.echo(f"Warning: {message}; falling back to numeric prompts.", err=True)


def _validate_date_text(fmt: str, raw: str) -> None:
    if fmt == "date":
        dates.validate_date(raw)
    elif fmt == "datetime":
        dates.validate_datetime(raw)
    elif not raw:
        raise InvalidDateInputError("Date cannot be empty")


class TerminalPrompts:
    """InquirerPy widgets with numeric typer prompts as the fallback."""

    def __init__(self) -> None:
        self._warned = False

    def _fallback(self, exc: Exception) -> None:
        if not self._warned:
            _warn_selector_fallback(exc)
            self._warned = True

    def _safe_prompt(self, message: str, *, default: str = "") -> str | None:
        try:
            return typer.prompt(message, default=default, show_default=bool(default))
        except (click.Abort, KeyboardInterrupt, EOFError):
            return None

    def select(
        self,
        title: str,
        options: list[tuple[str, str]],
        *,
        default: str | None = None,
        fuzzy: bool = False,
    ) -> str | None:
        if not options:
            return None
        try:
            if fuzzy:
                return select_fuzzy(title, options)
            return select_one(title, options, default_value=default)
        except SelectorUnavailableError as exc:
            self._fallback(exc)

        typer.echo(title)
        default_index = 1
        for idx, (value, label) in enumerate(options, start=1):
            typer.echo(f"{idx}. {label}")
            if value == default:
                default_index = idx

        while True:
            raw = self._safe_prompt("Enter number", default=str(default_index))
            if raw is None:
                return None
            try:
                index = int(raw)
            except ValueError:
                typer.echo("Invalid selection. Enter a number.")
                continue
            if 1 <= index <= len(options):
                return options[index - 1][0]
            typer.echo("Selection out of range.")

    def multi_select(
        self,
        title: str,
        options: list[tuple[str, str]],
        *,
        defaults: list[str] | None = None,
    ) -> list[str] | None:
        if not options:
            return []
        try:
            return select_many(title, options, default_values=defaults)
        except SelectorUnavailableError as exc:
            self._fallback(exc)

        enabled = set(defaults or [])
        typer.echo(title)
        default_numbers: list[str] = []
        for idx, (value, label) in enumerate(options, start=1):
            mark = "x" if value in enabled else " "
            typer.echo(f"{idx}. [{mark}] {label}")
            if value in enabled:
                default_numbers.append(str(idx))

        while True:
            raw = self._safe_prompt("Enter comma-separated numbers", default=",".join(default_numbers))
            if raw is None:
                return None
            tokens = [token.strip() for token in raw.split(",") if token.strip()]
            if not tokens:
                return []
            try:
                indexes = [int(token) for token in tokens]
            except ValueError:
                typer.echo("Invalid selection. Use comma-separated numbers.")
                continue
            if any(index < 1 or index > len(options) for index in indexes):
                typer.echo("Selection out of range.")
                continue
            chosen = {index - 1 for index in indexes}
            return [value for idx, (value, _) in enumerate(options) if idx in chosen]

    def text(self, title: str, *, default: str = "") -> str | None:
        try:
            return select_text(title, default_value=default)
        except SelectorUnavailableError as exc:
            self._fallback(exc)
        return self._safe_prompt(title, default=default)

    def confirm(self, title: str, *, default: bool = False) -> bool | None:
        try:
            return confirm(title, default=default)
        except SelectorUnavailableError as exc:
            self._fallback(exc)
        try:
            return bool(typer.confirm(title, default=default))
        except (click.Abort, KeyboardInterrupt, EOFError):
            return None

    def date_input(
        self,
        title: str,
        *,
        formats: Iterable[str] = ("natural", "date", "datetime"),
        sentinels: Iterable[DateInputKind] = (DateInputKind.SKIP, DateInputKind.QUIT),
    ) -> DateInput | None:
        format_list = list(formats)
        options = [(fmt, DATE_FORMATS[fmt]) for fmt in format_list]
        options.extend((kind.value, DATE_SENTINELS[kind]) for kind in sentinels)
        choice = self.select(title, options, default=format_list[0] if format_list else None)
        if choice is None:
            return None
        if choice not in DATE_FORMATS:
            return DateInput(DateInputKind(choice))

        while True:
            raw = self.text(DATE_FORMATS[choice])
            if raw is None:
                return None
            raw = raw.strip()
            try:
                _validate_date_text(choice, raw)
            except InvalidDateInputError as exc:
                typer.echo(f"Invalid input: {exc.message}", err=True)
                continue
            return DateInput(DateInputKind.TEXT, raw)


class ScriptedPrompts:
    """Replays queued answers in order; used for tests and non-interactive runs.

    Each answer is returned as-is. ``None`` simulates a cancelled prompt and an
    ``Exception`` instance is raised. For ``date_input`` a plain string is
    mapped to a sentinel kind when it names one (``"skip"``, ``"complete"``,
    ``"none"``, ``"quit"``) and to a text input otherwise.
    """

    def __init__(self, answers: Iterable[Any] = ()) -> None:
        self.answers: deque[Any] = deque(answers)
        self.asked: list[str] = []

    def _next(self, title: str) -> Any:
        self.asked.append(title)
        if not self.answers:
            raise RuntimeError(f"No scripted answer left for prompt: {title}")
        answer = self.answers.popleft()
        if isinstance(answer, Exception):
            raise answer
        return answer

    def select(
        self,
        title: str,
        options: list[tuple[str, str]],
        *,
        default: str | None = None,
        fuzzy: bool = False,
    ) -> str | None:
        return self._next(title)

    def multi_select(
        self,
        title: str,
        options: list[tuple[str, str]],
        *,
        defaults: list[str] | None = None,
    ) -> list[str] | None:
        answer = self._next(title)
        return None if answer is None else list(answer)

    def text(self, title: str, *, default: str = "") -> str | None:
        return self._next(title)

    def confirm(self, title: str, *, default: bool = False) -> bool | None:
        return self._next(title)

    def date_input(
        self,
        title: str,
        *,
        formats: Iterable[str] = ("natural", "date", "datetime"),
        sentinels: Iterable[DateInputKind] = (DateInputKind.SKIP, DateInputKind.QUIT),
    ) -> DateInput | None:
        answer = self._next(title)
        if answer is None or isinstance(answer, DateInput):
            return answer
        text = str(answer)
        sentinel_values = {kind.value for kind in DateInputKind if kind != DateInputKind.TEXT}
        if text in sentinel_values:
            return DateInput(DateInputKind(text))
        return DateInput(DateInputKind.TEXT, text)
