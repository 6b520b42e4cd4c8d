"""Shared test fixtures for cflogin.

Provides isolated config and netrc locations, output state management, a
scripted :class:`~cflogin.auth.prompt.Prompt`, and a CLI runner. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import base64
import json
import socket
from pathlib import Path

import pytest

from cflogin.output import OutputFormat, OutputManager, reset_output, set_output


CREDENTIAL_ENV_VARS = [
    "CONFLUENT_CLOUD_EMAIL",
    "CONFLUENT_CLOUD_PASSWORD",
    "CCLOUD_EMAIL",
    "CCLOUD_PASSWORD",
    "CONFLUENT_PLATFORM_USERNAME",
    "CONFLUENT_PLATFORM_PASSWORD",
    "CONFLUENT_USERNAME",
    "CONFLUENT_PASSWORD",
]


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    points CFLOGIN_NETRC at ``tmp_path / "netrc"``, clears every credential
    environment variable and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("CFLOGIN_NETRC", str(tmp_path / "netrc"))
    for var in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def netrc_path(tmp_path: Path) -> Path:
    """Location of a not-yet-existing netrc file."""
    return tmp_path / "netrc"


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for tests that don't care about output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a plain, colourless OutputManager with debug output enabled."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Prompt and network helpers
# ---------------------------------------------------------------------------


class ScriptedPrompt:
    """Prompt that replays canned answers and records what was shown."""

    def __init__(self, lines: list[str] | None = None, secrets: list[str] | None = None) -> None:
        self.lines = list(lines or [])
        self.secrets = list(secrets or [])
        self.shown: list[str] = []
        self.labels: list[str] = []

    def show(self, message: str) -> None:
        self.shown.append(message)

    def read_line(self, label: str) -> str:
        self.labels.append(label)
        return self.lines.pop(0)

    def read_secret(self, label: str) -> str:
        self.labels.append(label)
        return self.secrets.pop(0)


@pytest.fixture
def scripted_prompt() -> type[ScriptedPrompt]:
    """The ScriptedPrompt class, for tests that need canned answers."""
    return ScriptedPrompt


@pytest.fixture
def free_port() -> int:
    """A loopback TCP port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _make_jwt(claims: dict) -> str:
    """Build an unsigned JWT carrying *claims*."""

    def _segment(data: dict) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{_segment({'alg': 'none', 'typ': 'JWT'})}.{_segment(claims)}."


@pytest.fixture
def make_jwt():
    """Factory building unsigned JWTs from a claims dict."""
    return _make_jwt


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
