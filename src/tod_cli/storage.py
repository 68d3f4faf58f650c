"""Config file IO: credentials, remembered projects and the next-task pointer."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
from typing import Any, Callable

import yaml

from .models import ConfigError, NextTask, NoCurrentTaskError, Project, Task


logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TOD_CONFIG"
TOKEN_ENV_VAR = "TODOIST_API_TOKEN"
DEFAULT_TIMEOUT = 30
TOKEN_SUFFIX_LENGTH = 5

DEFAULT_VALUE_WEIGHTS: dict[str, int] = {
    "priority_high": 3000,
    "priority_medium": 2000,
    "priority_low": 1000,
    "priority_none": 0,
    "overdue": 400,
    "overdue_per_day": 5,
    "overdue_max_days": 60,
    "today": 350,
    "future": 100,
    "undated": 0,
    "label": 10,
    "label_max": 5,
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "timeout": DEFAULT_TIMEOUT,
    "timezone": None,
    "natural_language_only": False,
    "no_sections": False,
    "verbose": False,
    "bell_on_success": False,
    "bell_on_failure": True,
    "check_version": True,
}
SETTING_TYPES: dict[str, tuple[type, ...]] = {
    "timeout": (int,),
    "timezone": (str,),
    "natural_language_only": (bool,),
    "no_sections": (bool,),
    "verbose": (bool,),
    "bell_on_success": (bool,),
    "bell_on_failure": (bool,),
    "check_version": (bool,),
}
PRIORITY_WEIGHT_ORDER = ("priority_high", "priority_medium", "priority_low", "priority_none")
SUPPORTED_TOP_KEYS = {"token", "projects", "next_task", "settings"}


@dataclass(slots=True)
class Config:
    path: Path
    token: str | None = None
    persist_token: bool = True
    projects: list[Project] = field(default_factory=list)
    next_task: NextTask | None = None
    timeout: int = DEFAULT_TIMEOUT
    timezone: str | None = None
    natural_language_only: bool = False
    no_sections: bool = False
    verbose: bool = False
    bell_on_success: bool = False
    bell_on_failure: bool = True
    check_version: bool = True
    value_weights: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_VALUE_WEIGHTS))

    def require_token(self) -> str:
        if self.token:
            return self.token
        raise ConfigError(
            f"No API token configured. Run 'tod config set-token' or set {TOKEN_ENV_VAR}."
        )

    def project_by_name(self, name: str) -> Project | None:
        for project in self.projects:
            if project.name == name:
                return project
        return None

    def project_by_id(self, project_id: str | None) -> Project | None:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None


def default_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "tod" / "config.yaml"


def resolve_config_path(explicit: Path | None = None) -> Path:
    if explicit is not None:
        return explicit.expanduser().resolve()
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env).expanduser().resolve()
    return default_config_path()


def read_config(path: Path, warn: Callable[[str], None] | None = None) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Unable to parse config at {path}: {exc}") from exc
    if not isinstance(payload, dict):
        if warn is not None:
            warn(f"Invalid config format at {path}. Falling back to defaults.")
        return {}
    return payload


def _parse_projects(raw: Any, path: Path, warn: Callable[[str], None] | None) -> list[Project]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        if warn is not None:
            warn(f"Invalid projects section in {path}. Ignoring.")
        return []
    projects: list[Project] = []
    for entry in raw:
        if not isinstance(entry, dict) or "id" not in entry or "name" not in entry:
            if warn is not None:
                warn(f"Invalid project entry {entry!r} in {path}. Ignoring.")
            continue
        projects.append(Project(id=str(entry["id"]), name=str(entry["name"])))
    return projects


def _parse_next_task(raw: Any, path: Path, warn: Callable[[str], None] | None) -> NextTask | None:
    if raw is None:
        return None
    if not isinstance(raw, dict) or "id" not in raw:
        if warn is not None:
            warn(f"Invalid next_task in {path}. Ignoring.")
        return None
    project_id = raw.get("project_id")
    return NextTask(
        id=str(raw["id"]),
        content=str(raw.get("content", "")),
        project_id=str(project_id) if project_id is not None else None,
        project_name=raw.get("project_name"),
    )


def max_bonus(weights: dict[str, int]) -> int:
    """Largest date plus label contribution a single task can get."""
    overdue = weights["overdue"] + weights["overdue_per_day"] * weights["overdue_max_days"]
    dated = max(overdue, weights["today"], weights["future"], weights["undated"])
    return dated + weights["label"] * weights["label_max"]


def _value_weights_problem(weights: dict[str, int]) -> str | None:
    if not weights["overdue"] >= weights["today"] >= weights["future"] >= weights["undated"]:
        return "date weights must satisfy overdue >= today >= future >= undated"
    bonus = max_bonus(weights)
    ladder = [weights[key] for key in PRIORITY_WEIGHT_ORDER]
    for higher, lower in zip(ladder, ladder[1:]):
        if higher - lower <= bonus:
            return f"each priority step must exceed the largest date and label bonus ({bonus})"
    return None


def _parse_value_weights(raw: Any, path: Path, warn: Callable[[str], None] | None) -> dict[str, int]:
    weights = dict(DEFAULT_VALUE_WEIGHTS)
    if raw is None:
        return weights
    if not isinstance(raw, dict):
        if warn is not None:
            warn(f"Invalid settings.value_weights in {path}. Using defaults.")
        return weights
    for key, value in raw.items():
        if key not in DEFAULT_VALUE_WEIGHTS:
            if warn is not None:
                warn(f"Unsupported value weight '{key}' in {path}. Ignoring.")
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            if warn is not None:
                warn(f"Invalid value weight '{key}' in {path}. Using default.")
            continue
        weights[key] = value

    problem = _value_weights_problem(weights)
    if problem is not None:
        if warn is not None:
            warn(f"Invalid settings.value_weights in {path}: {problem}. Using defaults.")
        return dict(DEFAULT_VALUE_WEIGHTS)
    return weights


def load_config(path: Path, warn: Callable[[str], None] | None = None) -> Config:
    data = read_config(path, warn=warn)
    for key in data.keys():
        if key not in SUPPORTED_TOP_KEYS and warn is not None:
            warn(f"Unsupported config key '{key}' in {path}. Ignoring.")

    config = Config(path=path)
    file_token = data.get("token")
    if file_token:
        config.token = str(file_token)
    elif os.environ.get(TOKEN_ENV_VAR):
        config.token = os.environ[TOKEN_ENV_VAR]
        config.persist_token = False
    config.projects = _parse_projects(data.get("projects"), path, warn)
    config.next_task = _parse_next_task(data.get("next_task"), path, warn)

    settings = data.get("settings", {}) or {}
    if not isinstance(settings, dict):
        if warn is not None:
            warn(f"Invalid settings section in {path}. Using defaults.")
        settings = {}

    for key, value in settings.items():
        if key == "value_weights":
            continue
        if key not in DEFAULT_SETTINGS:
            if warn is not None:
                warn(f"Unsupported settings key '{key}' in {path}. Ignoring.")
            continue
        if value is None:
            continue
        expected = SETTING_TYPES[key]
        if isinstance(value, bool) and bool not in expected:
            valid = False
        else:
            valid = isinstance(value, expected)
        if key == "timeout" and valid and value <= 0:
            valid = False
        if not valid:
            if warn is not None:
                warn(
                    f"Invalid settings.{key} in {path}. "
                    f"Using default '{DEFAULT_SETTINGS[key]}'."
                )
            continue
        setattr(config, key, value)

    config.value_weights = _parse_value_weights(settings.get("value_weights"), path, warn)
    logger.debug("Loaded config from %s: %s", path, redacted(config))
    return config


def config_to_dict(config: Config) -> dict[str, Any]:
    settings: dict[str, Any] = {}
    for key, default in DEFAULT_SETTINGS.items():
        value = getattr(config, key)
        if value != default:
            settings[key] = value
    if config.value_weights != DEFAULT_VALUE_WEIGHTS:
        settings["value_weights"] = {
            key: value
            for key, value in config.value_weights.items()
            if DEFAULT_VALUE_WEIGHTS.get(key) != value
        }

    payload: dict[str, Any] = {}
    if config.token and config.persist_token:
        payload["token"] = config.token
    payload["projects"] = [project.to_dict() for project in config.projects]
    if config.next_task is not None:
        payload["next_task"] = config.next_task.to_dict()
    if settings:
        payload["settings"] = settings
    return payload


def save_config(config: Config) -> None:
    config.path.parent.mkdir(parents=True, exist_ok=True)
    payload = yaml.safe_dump(
        config_to_dict(config),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    config.path.write_text(payload, encoding="utf-8")
    logger.debug("Wrote config to %s", config.path)


def redact_token(token: str | None) -> str | None:
    if not token:
        return token
    hidden = max(len(token) - TOKEN_SUFFIX_LENGTH, 0)
    return "x" * hidden + token[hidden:]


def redacted(config: Config) -> dict[str, Any]:
    payload = config_to_dict(config)
    if "token" in payload:
        payload["token"] = redact_token(payload["token"])
    payload["path"] = str(config.path)
    return payload


def remember_task(config: Config, task: Task, project: Project | None = None) -> NextTask:
    """Overwrite the next-task pointer and write the config through."""
    if project is None:
        project = config.project_by_id(task.project_id)
    pointer = NextTask(
        id=task.id,
        content=task.content,
        project_id=project.id if project is not None else task.project_id,
        project_name=project.name if project is not None else None,
    )
    config.next_task = pointer
    save_config(config)
    return pointer


def recall_task(config: Config, action: str = "complete") -> NextTask:
    if config.next_task is None:
        raise NoCurrentTaskError(
            f"There is nothing to {action}. A task must first be marked as 'next'.",
            source=f"task_{action}",
        )
    return config.next_task


def add_projects(config: Config, projects: list[Project]) -> list[Project]:
    known = {project.id for project in config.projects}
    added = [project for project in projects if project.id not in known]
    if added:
        config.projects = sorted([*config.projects, *added], key=lambda project: project.name.lower())
        save_config(config)
    return added


def remove_projects(config: Config, project_ids: set[str]) -> list[Project]:
    removed = [project for project in config.projects if project.id in project_ids]
    if removed:
        config.projects = [project for project in config.projects if project.id not in project_ids]
        save_config(config)
    return removed
