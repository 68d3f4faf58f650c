from __future__ import annotations

import datetime as dt

from tod_cli import render
from tod_cli.models import Duration, ListResult, Priority, Project

from conftest import TODAY, make_task


def test_render_task_plain_shape() -> None:
    task = make_task(
        "1",
        "Write report",
        due=TODAY,
        due_time=dt.time(9, 30),
        deadline=TODAY + dt.timedelta(days=2),
        priority=Priority.HIGH,
        labels=["work", "deep"],
    )
    task.description = "Quarterly numbers\nwith charts"
    task.duration = Duration(45)

    lines = render.render_task_plain(task).splitlines()

    assert lines[0] == "[High] Write report"
    assert lines[1:3] == ["  Quarterly numbers", "  with charts"]
    assert lines[3] == (
        "  Due: 2026-03-10 09:30    Deadline: 2026-03-12    Duration: 45m    Labels: work, deep"
    )


def test_render_task_plain_without_attributes_is_one_line() -> None:
    assert render.render_task_plain(make_task("1", "Tidy desk")) == "Tidy desk"


def test_render_task_list_plain_empty() -> None:
    assert render.render_task_list_plain([]) == "No tasks found."


def test_render_task_list_rich_shows_columns() -> None:
    from rich.console import Console

    tasks = [
        make_task("1", "Overdue thing", due=TODAY - dt.timedelta(days=1), priority=Priority.MEDIUM),
        make_task("2", "Someday", labels=["maybe"]),
    ]
    console = Console(record=True, width=140, force_terminal=False, color_system=None)
    console.print(render.render_task_list_rich(tasks, TODAY))
    text = console.export_text()

    assert "priority" in text
    assert "Overdue thing" in text
    assert "2026-03-09" in text
    assert "Medium" in text
    assert "maybe" in text


def test_render_list_result_variants() -> None:
    assert render.render_list_result(ListResult(action="labeled")) == "No tasks on list"
    assert (
        render.render_list_result(ListResult(action="labeled", applied=2, skipped=1))
        == "2 labeled, 1 skipped, 0 not reached"
    )
    stopped = ListResult(action="completed", completed=1, skipped=1, not_reached=1, cancelled=True)
    assert render.render_list_result(stopped) == "Stopped early: 1 completed, 1 skipped, 1 not reached"


def test_render_projects_plain() -> None:
    assert render.render_projects_plain([]) == "No projects in config."
    assert render.render_projects_plain([Project("1", "Inbox"), Project("2", "Work")]) == "- Inbox\n- Work"


def test_render_import_result_lists_failures() -> None:
    text = render.render_import_result(1, [("broken line", "400 bad request")])
    assert text.splitlines() == ["1 created, 1 failed", "  failed: broken line (400 bad request)"]
