"""CLI tests for ``cflogin context``."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from cflogin.app import app
from cflogin.config import load_config, save_config
from cflogin.exit_codes import EXIT_NOT_FOUND, EXIT_SUCCESS
from cflogin.models import BackendKind, Context, Credential, GlobalConfig, Platform


def _seed(*names: str, current: str | None = None) -> None:
    contexts = {
        name: Context(
            name=name,
            backend=BackendKind.ONPREM,
            platform=Platform(name=f"{name}.example.com", server=f"https://{name}.example.com"),
            credential=Credential(name=f"username-{name}", username=name),
        )
        for name in names
    }
    save_config(GlobalConfig(current_context=current, contexts=contexts))


class TestContextCommands:
    def test_list_empty(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "context", "list"])
        assert result.exit_code == EXIT_SUCCESS
        assert "No contexts yet" in result.output

    def test_list_marks_current(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        _seed("beta", "alpha", current="beta")

        result = cli_runner.invoke(app, ["--json", "context", "list"])

        assert result.exit_code == EXIT_SUCCESS, result.output
        rows = json.loads(result.stdout)
        assert [r["Name"] for r in rows] == ["alpha", "beta"]
        assert [r["Current"] for r in rows] == ["", "*"]
        assert rows[0]["Platform"] == "alpha.example.com"

    def test_use(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        _seed("alpha", "beta", current="alpha")

        result = cli_runner.invoke(app, ["--no-color", "context", "use", "beta"])

        assert result.exit_code == EXIT_SUCCESS, result.output
        assert load_config().current_context == "beta"

    def test_use_unknown(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        _seed("alpha", current="alpha")

        result = cli_runner.invoke(app, ["--no-color", "context", "use", "ghost"])

        assert result.exit_code == EXIT_NOT_FOUND
        assert load_config().current_context == "alpha"

    def test_current(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        _seed("alpha", current="alpha")
        result = cli_runner.invoke(app, ["context", "current"])
        assert result.exit_code == EXIT_SUCCESS
        assert result.stdout.strip() == "alpha"

    def test_current_without_context(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["context", "current"])
        assert result.exit_code == EXIT_NOT_FOUND
