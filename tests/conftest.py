"""Shared test fixtures for pollcurl.

Provides a scripted in-memory transport, a controllable clock, isolated
config environments, output state management, and a CLI runner. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pytest

from pollcurl.client import reset_client
from pollcurl.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeTransport:
    """Scripted transport engine.

    Each request id gets a list of status reports. Every ``get_status`` call
    pops the next one; the last report repeats once the script runs out.
    Ids with no script report ``Sending``.
    """

    def __init__(self) -> None:
        self.sessions: set[str] = set()
        self.created = 0
        self.requests: list[tuple[str, str, Any]] = []
        self.scripts: dict[str, list[Any]] = {}
        self.status_calls: list[str] = []
        self.cancelled: list[str] = []
        self.acknowledged: list[str] = []
        self.destroyed: list[str] = []
        self.closed = False
        self.fail_create: Optional[Exception] = None
        self.reject: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.accept_cancel = True

    def create_session(self) -> str:
        if self.fail_create is not None:
            raise self.fail_create
        self.created += 1
        session_id = f"session-{self.created}"
        self.sessions.add(session_id)
        return session_id

    def destroy_session(self, session_id: str) -> bool:
        self.destroyed.append(session_id)
        if session_id in self.sessions:
            self.sessions.discard(session_id)
            return True
        return False

    def request(self, session_id: str, request_id: str, descriptor: Any) -> str:
        if self.reject is not None:
            raise self.reject
        self.requests.append((session_id, request_id, descriptor))
        return request_id

    def script(self, request_id: str, *reports: Any) -> None:
        self.scripts[request_id] = list(reports)

    def get_status(self, session_id: str, request_id: str) -> Any:
        self.status_calls.append(request_id)
        if self.status_error is not None:
            raise self.status_error
        queue = self.scripts.get(request_id)
        if not queue:
            return {"completed": False, "state": "Sending"}
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def cancel_request(self, session_id: str, request_id: str) -> bool:
        self.cancelled.append(request_id)
        return self.accept_cancel

    def acknowledge_request(self, session_id: str, request_id: str) -> bool:
        self.acknowledged.append(request_id)
        return True

    def close(self) -> None:
        self.closed = True

    @property
    def last_request(self) -> tuple[str, str, Any]:
        return self.requests[-1]


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(transport: FakeTransport, clock: FakeClock):
    """A manually driven client over the fake transport."""
    from pollcurl.client import PollingClient

    c = PollingClient(transport, clock=clock, autostart=False)
    yield c
    c.destroy()


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals_between_tests() -> None:
    """Reset the global OutputManager and process-wide client after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file"). Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()
    reset_client()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, forces the XDG layout,
    and clears all POLLCURL_* environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("pollcurl.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "POLLCURL_POLL_INTERVAL_MS",
        "POLLCURL_TIMEOUT",
        "POLLCURL_TRANSPORT",
        "POLLCURL_MAX_WORKERS",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
