"""Tests for PKCE state, provider selection and the token exchange."""

from __future__ import annotations

import base64
import hashlib
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from cflogin.auth.sso.state import (
    PROVIDERS,
    AuthFlowState,
    code_challenge_for,
    provider_for_url,
)
from cflogin.exceptions import AuthError, ConfigError, ConnectionError_, MalformedInputError
from cflogin.output import OutputManager


def _mock_httpx_post(
    token_response: object | None = None,
    status_code: int = 200,
) -> MagicMock:
    """Create a mock for httpx.post that returns a token response."""
    if token_response is None:
        token_response = {"id_token": "id-tok", "refresh_token": "ref-tok"}

    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.json.return_value = token_response
    mock_response.text = str(token_response)

    if status_code >= 400:
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            message=f"HTTP {status_code}",
            request=MagicMock(),
            response=mock_response,
        )
    else:
        mock_response.raise_for_status.return_value = None

    return mock_response


class TestProviderForUrl:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("", "prod"),
            ("https://confluent.cloud", "prod"),
            ("https://devel.cpdev.cloud", "devel"),
            ("https://stag.cpdev.cloud", "stag"),
            ("https://team-a.priv.cpdev.cloud", "cpd"),
        ],
    )
    def test_known_urls(self, url: str, expected: str) -> None:
        assert provider_for_url(url) is PROVIDERS[expected]

    def test_unknown_url_raises(self) -> None:
        with pytest.raises(ConfigError, match="unrecognized auth url"):
            provider_for_url("https://example.com")


class TestAuthFlowState:
    def test_challenge_is_sha256_of_verifier(self) -> None:
        state = AuthFlowState.for_url("https://confluent.cloud")
        digest = hashlib.sha256(state.code_verifier.encode("ascii")).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        assert state.code_challenge == expected
        assert code_challenge_for(state.code_verifier) == expected

    def test_artifacts_are_distinct_and_long(self) -> None:
        for _ in range(20):
            state = AuthFlowState.for_url("")
            values = {state.code_verifier, state.code_challenge, state.state_nonce}
            assert len(values) == 3
            assert all(len(v) > 10 for v in values)
            assert "=" not in state.code_verifier

    def test_each_flow_gets_a_fresh_nonce(self) -> None:
        assert AuthFlowState.for_url("").state_nonce != AuthFlowState.for_url("").state_nonce

    def test_browser_mode_uses_loopback_callback(self) -> None:
        state = AuthFlowState.for_url("https://devel.cpdev.cloud")
        assert state.callback_url == "http://127.0.0.1:26635/cli_callback"

    def test_no_browser_mode_uses_backend_callback(self) -> None:
        state = AuthFlowState.for_url("https://devel.cpdev.cloud", no_browser=True)
        assert state.callback_url == "https://devel.cpdev.cloud/cli_callback"

    def test_authorization_url(self) -> None:
        state = AuthFlowState.for_url("https://confluent.cloud")
        url = state.authorization_url("my-org-idp")
        parsed = urlparse(url)
        query = parse_qs(parsed.query)

        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
            "https://login.confluent.io/authorize"
        )
        assert "scope=email%20openid%20offline_access" in url
        assert query["response_type"] == ["code"]
        assert query["code_challenge"] == [state.code_challenge]
        assert query["code_challenge_method"] == ["S256"]
        assert query["client_id"] == [PROVIDERS["prod"].client_id]
        assert query["redirect_uri"] == ["http://127.0.0.1:26635/cli_callback"]
        assert query["audience"] == [PROVIDERS["prod"].audience]
        assert query["state"] == [state.state_nonce]
        assert query["connection"] == ["my-org-idp"]

    def test_authorization_url_without_connection(self) -> None:
        state = AuthFlowState.for_url("")
        assert "connection=" not in state.authorization_url()

    def test_matches_state(self) -> None:
        state = AuthFlowState.for_url("")
        assert state.matches_state(state.state_nonce)
        assert not state.matches_state("")
        assert not state.matches_state(state.state_nonce + "x")
        assert not state.matches_state("ünïcode")


class TestTokenExchange:
    def test_exchange_code_posts_form(self) -> None:
        state = AuthFlowState.for_url("https://confluent.cloud")
        state.authorization_code = "the-code"

        with patch(
            "cflogin.auth.sso.state.httpx.post", return_value=_mock_httpx_post()
        ) as mock_post:
            state.exchange_code()

        assert state.id_token == "id-tok"
        assert state.refresh_token == "ref-tok"
        args, kwargs = mock_post.call_args
        assert args[0] == "https://login.confluent.io/oauth/token"
        assert kwargs["data"] == {
            "grant_type": "authorization_code",
            "client_id": PROVIDERS["prod"].client_id,
            "code_verifier": state.code_verifier,
            "code": "the-code",
            "redirect_uri": state.callback_url,
        }

    def test_missing_id_token_is_malformed(self) -> None:
        state = AuthFlowState.for_url("")
        state.authorization_code = "c"
        with patch(
            "cflogin.auth.sso.state.httpx.post",
            return_value=_mock_httpx_post({"access_token": "x"}),
        ):
            with pytest.raises(MalformedInputError, match="did not contain id_token"):
                state.exchange_code()

    def test_refresh_token_is_optional(self) -> None:
        state = AuthFlowState.for_url("")
        state.authorization_code = "c"
        with patch(
            "cflogin.auth.sso.state.httpx.post",
            return_value=_mock_httpx_post({"id_token": "only-id"}),
        ):
            state.exchange_code()
        assert state.id_token == "only-id"
        assert state.refresh_token == ""

    def test_rejected_code_hides_body(
        self, verbose_output: OutputManager, capsys: pytest.CaptureFixture[str]
    ) -> None:
        state = AuthFlowState.for_url("")
        state.authorization_code = "c"
        with patch(
            "cflogin.auth.sso.state.httpx.post",
            return_value=_mock_httpx_post({"error": "invalid_grant"}, status_code=403),
        ):
            with pytest.raises(AuthError) as exc_info:
                state.exchange_code()
        assert "invalid_grant" not in str(exc_info.value)
        assert "invalid_grant" in capsys.readouterr().err

    def test_non_json_response(self) -> None:
        state = AuthFlowState.for_url("")
        state.authorization_code = "c"
        response = _mock_httpx_post()
        response.json.side_effect = ValueError("not json")
        with patch("cflogin.auth.sso.state.httpx.post", return_value=response):
            with pytest.raises(MalformedInputError):
                state.exchange_code()

    def test_network_failure(self) -> None:
        state = AuthFlowState.for_url("")
        state.authorization_code = "c"
        with patch(
            "cflogin.auth.sso.state.httpx.post",
            side_effect=httpx.ConnectError("refused"),
        ):
            with pytest.raises(ConnectionError_):
                state.exchange_code()

    def test_exchange_without_code_raises(self) -> None:
        with pytest.raises(AuthError, match="no authorization code"):
            AuthFlowState.for_url("").exchange_code()

    def test_refresh(self) -> None:
        state = AuthFlowState.for_url("https://stag.cpdev.cloud")
        with patch(
            "cflogin.auth.sso.state.httpx.post",
            return_value=_mock_httpx_post({"id_token": "new-id"}),
        ) as mock_post:
            state.refresh("stored-refresh")

        assert state.id_token == "new-id"
        assert state.refresh_token == "stored-refresh"
        data = mock_post.call_args.kwargs["data"]
        assert data["grant_type"] == "refresh_token"
        assert data["refresh_token"] == "stored-refresh"
        assert data["client_id"] == PROVIDERS["stag"].client_id
        assert mock_post.call_args.args[0] == "https://login-stag.confluent-dev.io/oauth/token"
