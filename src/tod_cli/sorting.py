"""Ordering policies for task collections.

Both policies are pure and rely on Python's stable sort, so ties keep the
order the tasks were fetched in and sorting an already sorted list is a no-op.

Value weights come from ``storage.DEFAULT_VALUE_WEIGHTS`` unless overridden in
``settings.value_weights``; overrides that break the guarantees below are
rejected when the config is loaded. Each priority step is worth more than the
largest possible date and label bonus combined, so a higher priority always
sorts first. Within a priority the earlier of due date and deadline decides
the band: overdue, then today, then future, then undated. A task overdue by
more days scores higher, capped at ``overdue_max_days``.
"""

from __future__ import annotations

import datetime as dt
from typing import Iterable, Mapping

from .models import Priority, SortOrder, Task
from .storage import DEFAULT_VALUE_WEIGHTS

PRIORITY_WEIGHT_KEYS = {
    Priority.HIGH: "priority_high",
    Priority.MEDIUM: "priority_medium",
    Priority.LOW: "priority_low",
    Priority.NONE: "priority_none",
}


def earliest_date(task: Task) -> tuple[dt.date, dt.time] | None:
    candidates: list[tuple[dt.date, dt.time]] = []
    if task.due is not None:
        when = task.due.datetime.time() if task.due.datetime is not None else dt.time.min
        candidates.append((task.due.date, when))
    if task.deadline is not None:
        candidates.append((task.deadline, dt.time.min))
    if not candidates:
        return None
    return min(candidates)


def _datetime_key(task: Task) -> tuple:
    earliest = earliest_date(task)
    if earliest is None:
        return (1,)
    return (0, *earliest)


def date_weight(task: Task, today: dt.date, weights: Mapping[str, int]) -> int:
    earliest = earliest_date(task)
    if earliest is None:
        return weights["undated"]
    when = earliest[0]
    if when < today:
        days = min((today - when).days, weights["overdue_max_days"])
        return weights["overdue"] + weights["overdue_per_day"] * days
    if when == today:
        return weights["today"]
    return weights["future"]


def value_score(
    task: Task,
    today: dt.date,
    weights: Mapping[str, int] = DEFAULT_VALUE_WEIGHTS,
) -> int:
    priority = weights[PRIORITY_WEIGHT_KEYS[task.priority]]
    labels = weights["label"] * min(len(task.labels), weights["label_max"])
    return priority + date_weight(task, today, weights) + labels


def sort_tasks(
    tasks: Iterable[Task],
    order: SortOrder,
    *,
    today: dt.date | None = None,
    weights: Mapping[str, int] | None = None,
) -> list[Task]:
    if order == SortOrder.DATETIME:
        return sorted(tasks, key=_datetime_key)

    reference = today or dt.date.today()
    table = {**DEFAULT_VALUE_WEIGHTS, **(weights or {})}
    return sorted(tasks, key=lambda task: -value_score(task, reference, table))
