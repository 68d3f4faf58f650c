"""Date handling: parsing remote due values and turning user input into update fields."""

from __future__ import annotations

import datetime as dt
import re
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import DateInput, DateInputKind, Due, InvalidDateInputError

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}$")
DURATION_RE = re.compile(r"^\s*(\d+)\s*(m|min|mins|minutes?|h|hrs?|hours?)?\s*$", re.IGNORECASE)


def zone(timezone: str | None) -> dt.tzinfo | None:
    if not timezone:
        return None
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidDateInputError(f"Unknown timezone: {timezone}", source="timezone") from exc


def now(timezone: str | None = None) -> dt.datetime:
    tz = zone(timezone)
    if tz is None:
        return dt.datetime.now().replace(microsecond=0)
    return dt.datetime.now(tz).replace(tzinfo=None, microsecond=0)


def today(timezone: str | None = None) -> dt.date:
    return now(timezone).date()


def _parse_remote_datetime(raw: str, timezone: str | None) -> dt.datetime:
    value = dt.datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value
    tz = zone(timezone)
    local = value.astimezone(tz) if tz is not None else value.astimezone()
    return local.replace(tzinfo=None)


def parse_due(payload: dict[str, Any] | None, timezone: str | None = None) -> Due | None:
    if not payload or not payload.get("date"):
        return None
    raw_date = str(payload["date"])
    raw_datetime = payload.get("datetime")
    if raw_datetime:
        when = _parse_remote_datetime(str(raw_datetime), timezone)
    elif "T" in raw_date:
        when = _parse_remote_datetime(raw_date, timezone)
    else:
        when = None
    return Due(
        date=when.date() if when is not None else dt.date.fromisoformat(raw_date[:10]),
        datetime=when,
        is_recurring=bool(payload.get("is_recurring", False)),
        string=str(payload.get("string") or ""),
    )


def parse_deadline(payload: dict[str, Any] | None) -> dt.date | None:
    if not payload or not payload.get("date"):
        return None
    return dt.date.fromisoformat(str(payload["date"])[:10])


def validate_date(text: str) -> dt.date:
    if not DATE_RE.match(text):
        raise InvalidDateInputError(f"Date must be in format YYYY-MM-DD, got '{text}'")
    try:
        return dt.date.fromisoformat(text)
    except ValueError as exc:
        raise InvalidDateInputError(f"Invalid date: {text}") from exc


def validate_datetime(text: str) -> dt.datetime:
    if not DATETIME_RE.match(text):
        raise InvalidDateInputError(f"Datetime must be in format YYYY-MM-DD HH:MM, got '{text}'")
    try:
        return dt.datetime.strptime(text, "%Y-%m-%d %H:%M")
    except ValueError as exc:
        raise InvalidDateInputError(f"Invalid datetime: {text}") from exc


def due_fields(text: str) -> dict[str, Any]:
    """Map a due value to update fields; free text goes to the server's date parser."""
    text = text.strip()
    if not text:
        raise InvalidDateInputError("Date cannot be empty")
    if DATE_RE.match(text):
        return {"due_date": validate_date(text).isoformat()}
    if DATETIME_RE.match(text):
        return {"due_datetime": validate_datetime(text).strftime("%Y-%m-%dT%H:%M:%S")}
    return {"due_string": text}


def deadline_fields(text: str) -> dict[str, Any]:
    return {"deadline_date": validate_date(text.strip()).isoformat()}


def date_input_fields(date_input: DateInput, *, deadline: bool = False) -> dict[str, Any]:
    if date_input.kind == DateInputKind.NONE:
        return {"deadline_date": None} if deadline else {"due_string": "no date"}
    if date_input.kind != DateInputKind.TEXT:
        raise InvalidDateInputError(f"No date fields for input kind '{date_input.kind.value}'")
    if deadline:
        return deadline_fields(date_input.text)
    return due_fields(date_input.text)


def parse_duration_minutes(text: str) -> int:
    match = DURATION_RE.match(text)
    if match is None:
        raise InvalidDateInputError(f"Invalid duration: '{text}'. Use minutes, e.g. 30 or 1h")
    amount = int(match.group(1))
    unit = (match.group(2) or "m").lower()
    minutes = amount * 60 if unit.startswith("h") else amount
    if minutes <= 0:
        raise InvalidDateInputError("Duration must be greater than zero")
    return minutes


def is_overdue(due: Due | None, reference: dt.date) -> bool:
    return due is not None and due.date < reference


def is_today(due: Due | None, reference: dt.date) -> bool:
    return due is not None and due.date == reference


def format_due(due: Due | None) -> str:
    if due is None:
        return ""
    if due.datetime is not None:
        text = due.datetime.strftime("%Y-%m-%d %H:%M")
    else:
        text = due.date.isoformat()
    if due.is_recurring and due.string:
        text = f"{text} ({due.string})"
    return text
