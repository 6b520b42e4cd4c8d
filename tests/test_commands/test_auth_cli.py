"""CLI tests for ``cflogin auth login|logout|status``.

The backend is replaced by a stub token handler and a canned ``/api/me``
response; everything else (credential resolution, the netrc file and the
config file) runs for real inside an isolated directory.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Optional

import pytest
from typer.testing import CliRunner

from cflogin.app import app
from cflogin.auth.netrc import NetrcHandler
from cflogin.config import load_config
from cflogin.exceptions import AuthError
from cflogin.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SUCCESS,
)
from cflogin.handlers.base import TokenHandler, TokenResult
from cflogin.models import Account, AuthInfo, BackendKind, Credentials

CLOUD_URL = "https://confluent.cloud"
MDS_URL = "https://mds.example.com:8090"


class StubHandler(TokenHandler):
    """Accepts the password ``right`` and mints a JWT-shaped token."""

    def __init__(self, backend: BackendKind, url: str, make_jwt, tokens: list[str]) -> None:  # noqa: ANN001
        self._backend = backend
        self._url = url
        self._make_jwt = make_jwt
        self._tokens = tokens

    @property
    def backend(self) -> BackendKind:
        return self._backend

    @property
    def url(self) -> str:
        return self._url

    def authenticate(self, credentials: Credentials) -> TokenResult:
        if credentials.password != "right":
            raise AuthError("incorrect email or password")
        token = self._make_jwt({"sub": credentials.username, "exp": time.time() + 3600})
        self._tokens.append(token)
        return TokenResult(token=token, credentials=credentials)


@pytest.fixture
def minted(monkeypatch: pytest.MonkeyPatch, make_jwt, scripted_prompt) -> list[str]:  # noqa: ANN001
    """Patch the backend seams of the auth commands; returns the minted tokens."""
    tokens: list[str] = []

    def create_token_handler(
        backend: BackendKind,
        url: str,
        prompt: Any,
        no_browser: bool = False,
        ca_cert_path: Optional[str] = None,
    ) -> TokenHandler:
        return StubHandler(backend, url, make_jwt, tokens)

    monkeypatch.setattr("cflogin.commands.auth.create_token_handler", create_token_handler)
    monkeypatch.setattr(
        "cflogin.commands.auth._fetch_identity",
        lambda url, token: AuthInfo(
            accounts=[Account(id="env-123", name="default"), Account(id="env-456", name="prod")]
        ),
    )
    monkeypatch.setattr("cflogin.commands.auth._prompt", lambda: scripted_prompt())
    return tokens


def _invoke(runner: CliRunner, *args: str, env: Optional[dict[str, str]] = None):  # noqa: ANN202
    return runner.invoke(app, ["--no-color", *args], env=env)


CLOUD_ENV = {"CONFLUENT_CLOUD_EMAIL": "a@example.com", "CONFLUENT_CLOUD_PASSWORD": "right"}
MDS_ENV = {"CONFLUENT_PLATFORM_USERNAME": "admin", "CONFLUENT_PLATFORM_PASSWORD": "right"}


class TestLogin:
    def test_cloud_login_from_env(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str]
    ) -> None:
        result = _invoke(cli_runner, "auth", "login", env=CLOUD_ENV)

        assert result.exit_code == EXIT_SUCCESS, result.output
        assert "Found credentials for user a@example.com from environment variables" in result.output
        assert 'Logged in as "a@example.com".' in result.output
        assert 'Using environment "env-123" ("default").' in result.output

        config = load_config()
        context = config.get_current_context()
        assert context.name == f"login-a@example.com-{CLOUD_URL}"
        assert context.state.auth_token == minted[0]
        assert context.state.auth.account.id == "env-123"

    def test_onprem_login(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str]
    ) -> None:
        result = _invoke(
            cli_runner, "auth", "login", "--on-prem", "--url", MDS_URL + "/", env=MDS_ENV
        )

        assert result.exit_code == EXIT_SUCCESS, result.output
        context = load_config().get_current_context()
        assert context.name == f"login-admin-{MDS_URL}"
        assert context.backend == BackendKind.ONPREM
        assert context.state.auth is None

    def test_on_prem_requires_url(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "auth", "login", "--on-prem")
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "--url is required" in result.output

    def test_ca_cert_requires_on_prem(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "auth", "login", "--ca-cert-path", "ca.pem")
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_rejected_credentials(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str]
    ) -> None:
        env = {"CONFLUENT_CLOUD_EMAIL": "a@example.com", "CONFLUENT_CLOUD_PASSWORD": "wrong"}
        result = _invoke(cli_runner, "auth", "login", env=env)

        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "incorrect email or password" in result.output
        assert load_config().contexts == {}

    def test_no_credentials_without_input(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str]
    ) -> None:
        result = _invoke(cli_runner, "--no-input", "auth", "login")
        assert result.exit_code == EXIT_NOT_FOUND
        assert "no credentials found" in result.output

    def test_save_then_login_from_netrc(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str]
    ) -> None:
        result = _invoke(cli_runner, "auth", "login", "--save", env=CLOUD_ENV)
        assert result.exit_code == EXIT_SUCCESS, result.output
        assert "Wrote credentials to netrc file" in result.output

        machine = NetrcHandler(isolated_config / "netrc").get_credentials(
            BackendKind.CLOUD, False, f"login-a@example.com-{CLOUD_URL}"
        )
        assert machine.user == "a@example.com"
        assert machine.password == "right"

        result = _invoke(cli_runner, "--no-input", "auth", "login")
        assert result.exit_code == EXIT_SUCCESS, result.output
        assert "from netrc file" in result.output
        assert len(minted) == 2


class TestLogout:
    def test_logout(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str]
    ) -> None:
        _invoke(cli_runner, "auth", "login", env=CLOUD_ENV)

        result = _invoke(cli_runner, "auth", "logout")

        assert result.exit_code == EXIT_SUCCESS, result.output
        assert "You are now logged out." in result.output
        assert load_config().get_current_context().state.auth_token == ""

    def test_logout_without_context(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "auth", "logout")
        assert result.exit_code == EXIT_NOT_FOUND


class TestStatus:
    def test_valid_token(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str]
    ) -> None:
        _invoke(cli_runner, "auth", "login", env=CLOUD_ENV)

        result = _invoke(cli_runner, "--json", "auth", "status")

        assert result.exit_code == EXIT_SUCCESS, result.output
        data = json.loads(result.stdout)
        assert data == {
            "context": f"login-a@example.com-{CLOUD_URL}",
            "backend": "ccloud",
            "server": CLOUD_URL,
            "user": "a@example.com",
            "environment": "env-123",
            "token": "valid",
        }

    def _expire_current_token(self, make_jwt) -> None:  # noqa: ANN001
        from cflogin.config import save_config

        config = load_config()
        config.get_current_context().state.auth_token = make_jwt({"exp": time.time() - 60})
        save_config(config)

    def test_expired_token_is_refreshed_from_netrc(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str], make_jwt
    ) -> None:
        _invoke(cli_runner, "auth", "login", "--save", env=CLOUD_ENV)
        self._expire_current_token(make_jwt)

        result = _invoke(cli_runner, "auth", "status")

        assert result.exit_code == EXIT_SUCCESS, result.output
        assert "Token refreshed from the netrc file." in result.output
        assert "token\tvalid" in result.output
        assert load_config().get_current_context().state.auth_token == minted[-1]

    def test_expired_token_without_saved_credentials(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str], make_jwt
    ) -> None:
        _invoke(cli_runner, "auth", "login", env=CLOUD_ENV)
        self._expire_current_token(make_jwt)

        result = _invoke(cli_runner, "auth", "status")

        assert result.exit_code == EXIT_NOT_FOUND
        assert "not found in netrc file" in result.output

    def test_no_refresh(
        self, cli_runner: CliRunner, isolated_config: Path, minted: list[str], make_jwt
    ) -> None:
        _invoke(cli_runner, "auth", "login", "--save", env=CLOUD_ENV)
        self._expire_current_token(make_jwt)

        result = _invoke(cli_runner, "auth", "status", "--no-refresh")

        assert result.exit_code == EXIT_SUCCESS, result.output
        assert "token\texpired" in result.output
        assert "cflogin auth login" in result.output
        assert len(minted) == 1
