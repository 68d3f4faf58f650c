from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest
from typer.testing import CliRunner
import yaml

from tod_cli import cli, storage, updates
from tod_cli.models import Priority, Project
from tod_cli.prompt_ui import ScriptedPrompts

from conftest import FakeClient, make_task


runner = CliRunner()


def _write_config(path: Path, *, projects: list[dict] | None = None, token: str = "abcdefghij12345") -> Path:
    payload = {
        "token": token,
        "projects": projects if projects is not None else [{"id": "p1", "name": "Inbox"}],
    }
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    return path


def _read_config(path: Path) -> dict:
    return yaml.safe_load(path.read_text(encoding="utf-8"))


@pytest.fixture
def wire(monkeypatch: pytest.MonkeyPatch):
    def _wire(client: FakeClient, answers=()) -> ScriptedPrompts:
        prompts = ScriptedPrompts(answers)
        monkeypatch.setattr(cli, "_make_client", lambda config, timeout: client)
        monkeypatch.setattr(cli, "_make_prompts", lambda: prompts)
        return prompts

    return _wire


def test_project_and_filter_conflict_exits_1(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    wire(FakeClient([make_task("1")]))
    result = runner.invoke(cli.app, ["--config", str(cfg), "list", "process", "-p", "Inbox", "-f", "today"])
    assert result.exit_code == 1
    assert "Error (project_or_filter): Must select project OR filter" in result.output


def test_process_partial_run_exits_0(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    client = FakeClient([make_task("1", "First"), make_task("2", "Second"), make_task("3", "Third")])
    prompts = wire(client, ["complete", "skip", "quit"])

    result = runner.invoke(cli.app, ["--config", str(cfg), "list", "process"])

    assert result.exit_code == 0
    assert "Stopped early: 1 completed, 1 skipped, 1 not reached" in result.output
    assert "Select Project or Filter" not in prompts.asked
    assert client.completed == ["1"]


def test_view_prints_plain_list_when_not_a_tty(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    wire(FakeClient([make_task("1", "Undated"), make_task("2", "Urgent", priority=Priority.HIGH)]))

    result = runner.invoke(cli.app, ["--config", str(cfg), "list", "view", "--sort", "value"])

    assert result.exit_code == 0
    assert result.output.index("[High] Urgent") < result.output.index("Undated")


def test_label_passes_repeated_label_flags(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    client = FakeClient([make_task("1")])
    wire(client, [["b"]])

    result = runner.invoke(
        cli.app,
        ["--config", str(cfg), "list", "label", "--label", "a", "--label", "b"],
    )

    assert result.exit_code == 0
    assert client.updates == [("1", {"labels": ["b"]})]
    assert "1 labeled, 0 skipped, 0 not reached" in result.output


def test_remote_failure_mid_loop_exits_1(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    wire(FakeClient([make_task("1"), make_task("2")], fail_on="2"), ["4", "4"])

    result = runner.invoke(cli.app, ["--config", str(cfg), "list", "prioritize"])

    assert result.exit_code == 1
    assert "1 task(s) processed before the failure" in result.output


def test_next_then_complete_across_invocations(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    client = FakeClient([make_task("9", "Most valuable", priority=Priority.HIGH), make_task("8")])
    wire(client)

    shown = runner.invoke(cli.app, ["--config", str(cfg), "task", "next"])
    assert shown.exit_code == 0
    assert "[High] Most valuable" in shown.output
    assert _read_config(cfg)["next_task"]["id"] == "9"

    done = runner.invoke(cli.app, ["--config", str(cfg), "task", "complete"])
    assert done.exit_code == 0
    assert "Task completed successfully" in done.output
    assert client.completed == ["9"]


def test_complete_without_next_exits_1(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    wire(FakeClient())
    result = runner.invoke(cli.app, ["--config", str(cfg), "task", "complete"])
    assert result.exit_code == 1
    assert "Error (task_complete): There is nothing to complete" in result.output


def test_comment_uses_content_flag(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    client = FakeClient([make_task("5")])
    wire(client)
    runner.invoke(cli.app, ["--config", str(cfg), "task", "next"])
    result = runner.invoke(cli.app, ["--config", str(cfg), "task", "comment", "-c", "blocked on review"])
    assert result.exit_code == 0
    assert client.comments == [("5", "blocked on review")]


def test_quick_add_joins_words(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    client = FakeClient()
    wire(client)
    result = runner.invoke(cli.app, ["--config", str(cfg), "task", "quick-add", "Buy", "milk", "!6pm"])
    assert result.exit_code == 0
    assert client.quick_added == [("Buy milk", "6pm")]


def test_cancelled_prompt_prints_canceled(tmp_path: Path, wire) -> None:
    cfg = _write_config(
        tmp_path / "config.yaml",
        projects=[{"id": "p1", "name": "Inbox"}, {"id": "p2", "name": "Work"}],
    )
    wire(FakeClient(), [None])
    result = runner.invoke(cli.app, ["--config", str(cfg), "list", "schedule"])
    assert result.exit_code == 1
    assert "Canceled." in result.output


def test_schedule_short_flags_keep_only_overdue_non_recurring(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    long_ago = dt.date(2020, 1, 6)
    client = FakeClient(
        [
            make_task("1", "Water plants", due=long_ago, recurring=True),
            make_task("2", "File taxes", due=long_ago),
            make_task("3", "Someday"),
        ]
    )
    prompts = wire(client, ["skip"])

    result = runner.invoke(cli.app, ["--config", str(cfg), "list", "schedule", "-o", "-s"])

    assert result.exit_code == 0
    assert prompts.asked == ["Schedule this task"]
    assert "File taxes" in result.output
    assert "0 scheduled, 1 skipped, 0 not reached" in result.output


def test_list_import_prompts_for_path_when_omitted(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    source = tmp_path / "todo.md"
    source.write_text("Buy milk\nCall Sam\n", encoding="utf-8")
    client = FakeClient()
    prompts = wire(client, [str(source)])

    result = runner.invoke(cli.app, ["--config", str(cfg), "list", "import"])

    assert result.exit_code == 0
    assert prompts.asked == ["Enter file or directory path"]
    assert "2 created, 0 failed" in result.output


def test_list_import_reports_unreadable_file(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    source = tmp_path / "todo.md"
    source.write_bytes(b"\xff\xfe not text\n")
    wire(FakeClient())

    result = runner.invoke(cli.app, ["--config", str(cfg), "list", "import", "--path", str(source)])

    assert result.exit_code == 1
    assert "Error (select_file): Could not read" in result.output


def test_set_token_prompt_aborted_prints_canceled(tmp_path: Path) -> None:
    cfg = tmp_path / "config.yaml"

    result = runner.invoke(cli.app, ["--config", str(cfg), "config", "set-token"], input="")

    assert result.exit_code == 1
    assert "Canceled." in result.output
    assert not cfg.exists()

def test_missing_token_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(storage.TOKEN_ENV_VAR, raising=False)
    cfg = _write_config(tmp_path / "config.yaml", token="")
    result = runner.invoke(cli.app, ["--config", str(cfg), "task", "next"])
    assert result.exit_code == 1
    assert "Error (config): No API token configured" in result.output


def test_timeout_flag_reaches_the_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    seen: list[int] = []

    def _make_client(config, timeout):
        seen.append(timeout)
        return FakeClient()

    monkeypatch.setattr(cli, "_make_client", _make_client)
    monkeypatch.setattr(cli, "_make_prompts", lambda: ScriptedPrompts())
    result = runner.invoke(cli.app, ["--config", str(cfg), "--timeout", "5", "task", "next"])
    assert result.exit_code == 0
    assert seen == [5]
    assert "settings" not in _read_config(cfg)


def test_config_show_redacts_token(tmp_path: Path) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    result = runner.invoke(cli.app, ["--config", str(cfg), "config", "show"])
    assert result.exit_code == 0
    assert "abcdefghij12345" not in result.output
    assert "xxxxxxxxxx12345" in result.output


def test_set_token_and_timezone(tmp_path: Path) -> None:
    cfg = tmp_path / "config.yaml"
    assert runner.invoke(cli.app, ["--config", str(cfg), "config", "set-token", "tok-98765"]).exit_code == 0
    assert runner.invoke(cli.app, ["--config", str(cfg), "config", "set-timezone", "Europe/Berlin"]).exit_code == 0

    bad = runner.invoke(cli.app, ["--config", str(cfg), "config", "set-timezone", "Nowhere/Atlantis"])
    assert bad.exit_code == 1
    assert "Unknown timezone" in bad.output

    payload = _read_config(cfg)
    assert payload["token"] == "tok-98765"
    assert payload["settings"] == {"timezone": "Europe/Berlin"}


def test_project_import_and_list(tmp_path: Path, wire) -> None:
    cfg = _write_config(tmp_path / "config.yaml")
    wire(FakeClient(projects=[Project("p1", "Inbox"), Project("p7", "Garden")]))
    imported = runner.invoke(cli.app, ["--config", str(cfg), "project", "import", "--auto"])
    assert imported.exit_code == 0
    assert "Added 1 project(s)" in imported.output

    listed = runner.invoke(cli.app, ["--config", str(cfg), "project", "list"])
    assert listed.output.splitlines() == ["- Garden", "- Inbox"]


def test_diagnostics_are_printed_after_the_result(tmp_path: Path, wire, monkeypatch: pytest.MonkeyPatch) -> None:
    class _Checker:
        def drain(self, timeout: float = 2.0):
            return [updates.Diagnostic("A newer tod is available", level="warning")]

    monkeypatch.setattr(updates, "start_version_check", lambda enabled, timeout=5: _Checker())
    cfg = _write_config(tmp_path / "config.yaml")
    wire(FakeClient([make_task("1", "Only task")]))

    result = runner.invoke(cli.app, ["--config", str(cfg), "task", "next"])

    assert result.exit_code == 0
    assert result.output.index("Only task") < result.output.index("Warning: A newer tod is available")
