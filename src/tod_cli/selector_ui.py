"""Arrow-key selector helpers backed by InquirerPy."""

from __future__ import annotations

import sys
from typing import Any, Callable


class SelectorUnavailableError(RuntimeError):
    """Raised when arrow-key selector UI cannot be used."""


def _ensure_tty() -> None:
    if not (sys.stdin.isatty() and sys.stdout.isatty()):
        raise SelectorUnavailableError("interactive selector requires a TTY")


def _inquirer():
    try:
        from InquirerPy import inquirer
    except Exception as exc:  # pragma: no cover - environment dependent
        raise SelectorUnavailableError("InquirerPy unavailable") from exc
    return inquirer


def _execute(build: Callable[[Any], Any]) -> Any:
    """Run one prompt; None means the user cancelled."""
    _ensure_tty()
    inquirer = _inquirer()
    try:
        return build(inquirer).execute()
    except (KeyboardInterrupt, EOFError):
        return None
    except Exception as exc:
        raise SelectorUnavailableError("selector runtime failed") from exc


def _choices(options: list[tuple[str, str]], enabled: set[str] | None = None) -> list[dict[str, Any]]:
    choices = []
    for value, label in options:
        choice: dict[str, Any] = {"name": label, "value": value}
        if enabled is not None:
            choice["enabled"] = value in enabled
        choices.append(choice)
    return choices


def select_one(
    title: str,
    options: list[tuple[str, str]],
    *,
    default_value: str | None = None,
) -> str | None:
    """Return selected value, None on cancel, or raise SelectorUnavailableError for fallback."""
    if not options:
        return None
    result = _execute(
        lambda inquirer: inquirer.select(
            message=title,
            choices=_choices(options),
            default=default_value,
            pointer=">",
            vi_mode=False,
            mandatory=False,
            raise_keyboard_interrupt=True,
        )
    )
    return None if result is None else str(result)


def select_fuzzy(title: str, options: list[tuple[str, str]]) -> str | None:
    """Fuzzy-searchable single select for long lists such as projects."""
    if not options:
        return None
    result = _execute(
        lambda inquirer: inquirer.fuzzy(
            message=title,
            choices=_choices(options),
            vi_mode=False,
            mandatory=False,
            raise_keyboard_interrupt=True,
        )
    )
    return None if result is None else str(result)


def select_many(
    title: str,
    options: list[tuple[str, str]],
    *,
    default_values: list[str] | None = None,
) -> list[str] | None:
    """Return selected values in source order, None on cancel, or raise SelectorUnavailableError."""
    if not options:
        return []
    selected = _execute(
        lambda inquirer: inquirer.checkbox(
            message=title,
            choices=_choices(options, set(default_values or [])),
            instruction="(space to toggle, enter to submit, ctrl-c to cancel)",
            vi_mode=False,
            mandatory=False,
            raise_keyboard_interrupt=True,
        )
    )
    if selected is None:
        return None
    selected_set = {str(value) for value in selected}
    return [value for value, _ in options if value in selected_set]


def select_text(title: str, *, default_value: str = "") -> str | None:
    result = _execute(
        lambda inquirer: inquirer.text(
            message=title,
            default=default_value,
            vi_mode=False,
            mandatory=False,
            raise_keyboard_interrupt=True,
        )
    )
    return None if result is None else str(result)


def confirm(title: str, *, default: bool = False) -> bool | None:
    result = _execute(
        lambda inquirer: inquirer.confirm(
            message=title,
            default=default,
            mandatory=False,
            raise_keyboard_interrupt=True,
        )
    )
    return None if result is None else bool(result)
