"""Background check for a newer release on PyPI."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import queue
import threading

import requests

from . import __version__
from .models import RemoteError

logger = logging.getLogger(__name__)

PYPI_URL = "https://pypi.org/pypi/tod-cli/json"
CHECK_TIMEOUT = 5
JOIN_TIMEOUT = 2.0


@dataclass(frozen=True, slots=True)
class Diagnostic:
    message: str
    level: str = "info"


def _version_tuple(version: str) -> tuple[int, ...]:
    parts: list[int] = []
    for part in version.split("."):
        digits = "".join(ch for ch in part if ch.isdigit())
        if not digits:
            break
        parts.append(int(digits))
    return tuple(parts)


def latest_version(timeout: float = CHECK_TIMEOUT) -> str:
    try:
        response = requests.get(PYPI_URL, timeout=timeout)
    except requests.RequestException as exc:
        raise RemoteError(f"Could not reach PyPI: {exc}", source="check_version") from exc
    if response.status_code != 200:
        raise RemoteError(
            f"PyPI returned {response.status_code}", source="check_version"
        )
    try:
        return str(response.json()["info"]["version"])
    except (ValueError, KeyError, TypeError) as exc:
        raise RemoteError("Unexpected response from PyPI", source="check_version") from exc


def compare_versions(current: str, latest: str) -> str:
    if _version_tuple(latest) > _version_tuple(current):
        return f"Your version of tod is out of date. Latest: {latest}, Current: {current}"
    return f"Tod is up to date with version: {current}"


def check_version(timeout: float = CHECK_TIMEOUT) -> str:
    return compare_versions(__version__, latest_version(timeout))


class VersionCheck:
    """Runs the release lookup on a daemon thread and queues what it finds."""

    def __init__(self, timeout: float = CHECK_TIMEOUT) -> None:
        self.timeout = timeout
        self.diagnostics: queue.Queue[Diagnostic] = queue.Queue()
        self._thread = threading.Thread(target=self._run, name="tod-version-check", daemon=True)

    def start(self) -> VersionCheck:
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            latest = latest_version(self.timeout)
        except RemoteError as exc:
            logger.debug("Version check failed: %s", exc.message)
            return
        if _version_tuple(latest) > _version_tuple(__version__):
            self.diagnostics.put(Diagnostic(compare_versions(__version__, latest), level="warning"))

    def drain(self, timeout: float = JOIN_TIMEOUT) -> list[Diagnostic]:
        self._thread.join(timeout)
        items: list[Diagnostic] = []
        while True:
            try:
                items.append(self.diagnostics.get_nowait())
            except queue.Empty:
                return items


def start_version_check(enabled: bool, timeout: float = CHECK_TIMEOUT) -> VersionCheck | None:
    if not enabled:
        return None
    return VersionCheck(timeout).start()
