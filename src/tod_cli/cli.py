"""CLI entrypoint for tod."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import sys
from typing import Annotated, Callable, Optional

import click
import typer
import yaml

from . import dates, lists, render, storage, updates
from .models import ListResult, PromptCancelledError, SortOrder, TodError
from .prompt_ui import PromptProvider, TerminalPrompts
from .service import TodService
from .storage import Config
from .todoist import TodoistClient

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

ProjectOption = Annotated[
    Optional[str],
    typer.Option("--project", "-p", help="Project name from config"),
]
FilterOption = Annotated[
    Optional[str],
    typer.Option("--filter", "-f", help="Todoist filter expression, comma separated for several"),
]
SortOption = Annotated[
    SortOrder,
    typer.Option("--sort", "-t", case_sensitive=False, help="Sort order: datetime or value"),
]
ContentOption = Annotated[
    Optional[str],
    typer.Option("--content", "-c", help="Task content"),
]


@dataclass(slots=True)
class CliState:
    config_path: Path | None = None
    timeout: int | None = None
    verbose: bool = False
    config: Config | None = None


app = typer.Typer(help="Work through Todoist task lists from the terminal", no_args_is_help=True)
list_app = typer.Typer(help="Bulk operations over a project or filter", no_args_is_help=True)
task_app = typer.Typer(help="Single task commands", no_args_is_help=True)
project_app = typer.Typer(help="Manage projects remembered in config", no_args_is_help=True)
config_app = typer.Typer(help="Inspect and change configuration", no_args_is_help=True)
app.add_typer(list_app, name="list")
app.add_typer(task_app, name="task")
app.add_typer(project_app, name="project")
app.add_typer(config_app, name="config")


def _can_render_rich_output() -> bool:
    return sys.stdout.isatty()


def _print_rich(renderable) -> None:
    from rich.console import Console

    Console().print(renderable)


def _warn_config(message: str) -> None:
    typer.echo(f"Warning: {message}", err=True)


def _bell(enabled: bool) -> None:
    if enabled and sys.stderr.isatty():
        sys.stderr.write("\a")
        sys.stderr.flush()


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT)
    logging.getLogger("tod_cli").setLevel(logging.DEBUG)


def _state(ctx: typer.Context) -> CliState:
    return ctx.ensure_object(CliState)


def _config(ctx: typer.Context) -> Config:
    state = _state(ctx)
    if state.config is None:
        path = storage.resolve_config_path(state.config_path)
        state.config = storage.load_config(path, warn=_warn_config)
        _configure_logging(state.verbose or state.config.verbose)
    return state.config


def _make_client(config: Config, timeout: int) -> TodoistClient:
    return TodoistClient(config.require_token(), timeout=timeout, timezone=config.timezone)


def _make_prompts() -> PromptProvider:
    return TerminalPrompts()


def _service(ctx: typer.Context) -> TodService:
    state = _state(ctx)
    config = _config(ctx)
    timeout = state.timeout if state.timeout is not None else config.timeout
    return TodService(config, _make_client(config, timeout), _make_prompts())


def _exit_canceled(code: int) -> None:
    typer.echo("Canceled.")
    raise typer.Exit(code=code)


def _run_and_handle(ctx: typer.Context, fn: Callable[[], None], *, check_version: bool = True) -> None:
    state = _state(ctx)
    checker = None
    try:
        config = _config(ctx)
        if check_version:
            checker = updates.start_version_check(config.check_version)
        fn()
    except PromptCancelledError as exc:
        logger.debug("Prompt cancelled: %s", exc.message)
        _bell(state.config.bell_on_failure if state.config is not None else True)
        _exit_canceled(1)
    except TodError as exc:
        _bell(state.config.bell_on_failure if state.config is not None else True)
        typer.echo(f"Error ({exc.source}): {exc.message}", err=True)
        raise typer.Exit(code=1) from exc

    _bell(config.bell_on_success)
    if checker is not None:
        for diagnostic in checker.drain():
            prefix = "Warning: " if diagnostic.level == "warning" else ""
            typer.echo(f"{prefix}{diagnostic.message}", err=True)


def _echo_list_result(result: ListResult) -> None:
    typer.echo("")
    typer.echo(render.render_list_result(result))


@app.callback()
def root_callback(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", help=f"Config file path (env: {storage.CONFIG_ENV_VAR})"),
    ] = None,
    timeout: Annotated[
        Optional[int],
        typer.Option("--timeout", min=1, help="Request timeout in seconds"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    """Todoist client for triaging, scheduling and completing tasks."""
    ctx.obj = CliState(config_path=config, timeout=timeout, verbose=verbose)


@list_app.command("view")
def list_view_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
    sort: SortOption = SortOrder.DATETIME,
) -> None:
    """Show the tasks in a project or filter."""

    def _inner() -> None:
        svc = _service(ctx)
        tasks = lists.view(svc, svc.resolve_selector(project, filter_expr), sort)
        if _can_render_rich_output():
            _print_rich(render.render_task_list_rich(tasks, svc.today()))
        else:
            typer.echo(render.render_task_list_plain(tasks))

    _run_and_handle(ctx, _inner)


def _run_list(
    ctx: typer.Context,
    operation: Callable[..., ListResult],
    project: str | None,
    filter_expr: str | None,
    sort: SortOrder,
    **kwargs,
) -> None:
    def _inner() -> None:
        svc = _service(ctx)
        task_selector = svc.resolve_selector(project, filter_expr)
        _echo_list_result(operation(svc, task_selector, sort, **kwargs))

    _run_and_handle(ctx, _inner)


@list_app.command("process")
def list_process_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
    sort: SortOption = SortOrder.VALUE,
) -> None:
    """Complete or skip each task due today or earlier."""
    _run_list(ctx, lists.process, project, filter_expr, sort)


@list_app.command("prioritize")
def list_prioritize_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
    sort: SortOption = SortOrder.VALUE,
) -> None:
    """Give each task without a priority one."""
    _run_list(ctx, lists.prioritize, project, filter_expr, sort)


@list_app.command("label")
def list_label_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
    sort: SortOption = SortOrder.VALUE,
    label: Annotated[
        Optional[list[str]],
        typer.Option("--label", "-l", help="Label to offer; repeat for several. Defaults to all labels"),
    ] = None,
) -> None:
    """Choose labels for each task."""
    _run_list(ctx, lists.label, project, filter_expr, sort, labels=label)


@list_app.command("schedule")
def list_schedule_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
    sort: SortOption = SortOrder.VALUE,
    overdue: Annotated[bool, typer.Option("--overdue", "-o", help="Only tasks that are overdue")] = False,
    skip_recurring: Annotated[
        bool,
        typer.Option("--skip-recurring", "-s", help="Leave recurring tasks out"),
    ] = False,
) -> None:
    """Set a due date on unscheduled or overdue tasks."""
    _run_list(
        ctx,
        lists.schedule,
        project,
        filter_expr,
        sort,
        overdue_only=overdue,
        skip_recurring=skip_recurring,
    )


@list_app.command("deadline")
def list_deadline_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
    sort: SortOption = SortOrder.VALUE,
) -> None:
    """Set a deadline on non-recurring tasks that have none."""
    _run_list(ctx, lists.deadline, project, filter_expr, sort)


@list_app.command("timebox")
def list_timebox_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
    sort: SortOption = SortOrder.VALUE,
) -> None:
    """Give each task a start time and a duration."""
    _run_list(ctx, lists.timebox, project, filter_expr, sort)


@list_app.command("import")
def list_import_cmd(
    ctx: typer.Context,
    path: Annotated[
        Optional[Path],
        typer.Option("--path", help="A file, or a directory to pick a .md file from; prompted if omitted"),
    ] = None,
) -> None:
    """Create a task from every line of a file."""

    def _inner() -> None:
        svc = _service(ctx)
        created, failures = lists.import_file(svc, path)
        typer.echo(render.render_import_result(created, failures))

    _run_and_handle(ctx, _inner)


@task_app.command("quick-add")
def task_quick_add_cmd(
    ctx: typer.Context,
    content: Annotated[
        Optional[list[str]],
        typer.Argument(help="Task text in natural language, with an optional '!reminder' suffix"),
    ] = None,
) -> None:
    """Create a task from natural language text."""

    def _inner() -> None:
        svc = _service(ctx)
        typer.echo(svc.quick_add(" ".join(content) if content else None))

    _run_and_handle(ctx, _inner)


@task_app.command("create")
def task_create_cmd(
    ctx: typer.Context,
    content: ContentOption = None,
    project: ProjectOption = None,
    due: Annotated[
        Optional[str],
        typer.Option("--due", "-u", help="YYYY-MM-DD, 'YYYY-MM-DD HH:MM' or natural language"),
    ] = None,
    description: Annotated[str, typer.Option("--description", "-d", help="Task description")] = "",
    priority: Annotated[
        Optional[int],
        typer.Option("--priority", "-r", min=1, max=4, help="1 (none) to 4 (high)"),
    ] = None,
    label: Annotated[
        Optional[list[str]],
        typer.Option("--label", "-l", help="Label to add; repeat for several"),
    ] = None,
    no_section: Annotated[
        bool,
        typer.Option("--no-section", "-s", help="Do not prompt for a section"),
    ] = False,
) -> None:
    """Create a task, prompting for anything not given."""

    def _inner() -> None:
        svc = _service(ctx)
        typer.echo(
            svc.create_task(
                content=content,
                project_name=project,
                due=due,
                description=description,
                priority=priority,
                labels=label,
                no_section=no_section,
            )
        )

    _run_and_handle(ctx, _inner)


@task_app.command("edit")
def task_edit_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
) -> None:
    """Pick a task and edit its content."""

    def _inner() -> None:
        svc = _service(ctx)
        typer.echo(svc.edit_task(svc.resolve_selector(project, filter_expr)))

    _run_and_handle(ctx, _inner)


@task_app.command("next")
def task_next_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    filter_expr: FilterOption = None,
) -> None:
    """Show the most valuable task and remember it for complete/comment."""

    def _inner() -> None:
        svc = _service(ctx)
        typer.echo(svc.next_task(svc.resolve_selector(project, filter_expr)))

    _run_and_handle(ctx, _inner)


@task_app.command("complete")
def task_complete_cmd(ctx: typer.Context) -> None:
    """Complete the task last shown by 'tod task next'."""

    def _inner() -> None:
        typer.echo(_service(ctx).complete_current())

    _run_and_handle(ctx, _inner)


@task_app.command("comment")
def task_comment_cmd(ctx: typer.Context, content: ContentOption = None) -> None:
    """Comment on the task last shown by 'tod task next'."""

    def _inner() -> None:
        typer.echo(_service(ctx).comment_current(content))

    _run_and_handle(ctx, _inner)


@project_app.command("list")
def project_list_cmd(ctx: typer.Context) -> None:
    """List projects remembered in config."""

    def _inner() -> None:
        typer.echo(render.render_projects_plain(_config(ctx).projects))

    _run_and_handle(ctx, _inner)


@project_app.command("import")
def project_import_cmd(
    ctx: typer.Context,
    auto: Annotated[bool, typer.Option("--auto", help="Add every new project without asking")] = False,
) -> None:
    """Add projects from Todoist to config."""

    def _inner() -> None:
        typer.echo(_service(ctx).import_projects(auto=auto))

    _run_and_handle(ctx, _inner)


@project_app.command("remove")
def project_remove_cmd(
    ctx: typer.Context,
    project: ProjectOption = None,
    auto: Annotated[
        bool,
        typer.Option("--auto", help="Remove projects that no longer exist in Todoist"),
    ] = False,
    remove_all: Annotated[bool, typer.Option("--all", help="Remove every project")] = False,
) -> None:
    """Remove projects from config."""

    def _inner() -> None:
        svc = _service(ctx)
        typer.echo(svc.remove_projects(project_name=project, auto=auto, remove_all=remove_all))

    _run_and_handle(ctx, _inner)


@config_app.command("show")
def config_show_cmd(ctx: typer.Context) -> None:
    """Print the active config with the token redacted."""

    def _inner() -> None:
        typer.echo(
            yaml.safe_dump(
                storage.redacted(_config(ctx)),
                sort_keys=False,
                default_flow_style=False,
                allow_unicode=True,
            ).rstrip()
        )

    _run_and_handle(ctx, _inner)


@config_app.command("set-token")
def config_set_token_cmd(
    ctx: typer.Context,
    token: Annotated[Optional[str], typer.Argument(help="Todoist API token")] = None,
) -> None:
    """Store the Todoist API token in config."""

    def _inner() -> None:
        value = token
        if value is None:
            try:
                value = typer.prompt("Todoist API token", hide_input=True)
            except (click.Abort, EOFError, KeyboardInterrupt) as exc:
                raise PromptCancelledError("No token entered", source="config") from exc
        value = value.strip()
        if not value:
            raise TodError("Token cannot be empty", source="config")
        config = _config(ctx)
        config.token = value
        config.persist_token = True
        storage.save_config(config)
        typer.echo(f"Token saved to {config.path}")

    _run_and_handle(ctx, _inner)


@config_app.command("set-timezone")
def config_set_timezone_cmd(
    ctx: typer.Context,
    timezone: Annotated[str, typer.Argument(help="IANA timezone name, e.g. Europe/Berlin")],
) -> None:
    """Set the timezone used for today and overdue checks."""

    def _inner() -> None:
        dates.zone(timezone)
        config = _config(ctx)
        config.timezone = timezone
        storage.save_config(config)
        typer.echo(f"Timezone set to {timezone}")

    _run_and_handle(ctx, _inner)


@config_app.command("check-version")
def config_check_version_cmd(ctx: typer.Context) -> None:
    """Compare the installed version with the latest release."""

    def _inner() -> None:
        typer.echo(updates.check_version())

    _run_and_handle(ctx, _inner, check_version=False)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
