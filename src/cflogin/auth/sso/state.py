"""PKCE flow state and identity-provider token exchange.

An :class:`AuthFlowState` is created fresh for every sign-on attempt and
never persisted. It carries the PKCE verifier/challenge pair (:rfc:`7636`),
the state nonce the provider must echo back, and, as the flow advances, the
authorization code and the tokens minted from it.

The identity provider is chosen from :data:`PROVIDERS` according to which
environment the CLI's target URL belongs to (see :func:`provider_for_url`).
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote, urlencode

import httpx

from cflogin.exceptions import AuthError, ConfigError, ConnectionError_, MalformedInputError
from cflogin.output import debug

LOCAL_CALLBACK_HOST = "127.0.0.1"
LOCAL_CALLBACK_PORT = 26635
CALLBACK_PATH = "/cli_callback"
SCOPE = "email openid offline_access"

_TOKEN_TIMEOUT = 30.0


@dataclass(frozen=True)
class SSOProvider:
    """Identity-provider settings for one deployment environment."""

    name: str
    host: str
    client_id: str
    audience: str


PROVIDERS: dict[str, SSOProvider] = {
    "prod": SSOProvider(
        name="prod",
        host="https://login.confluent.io",
        client_id="hPbGZM8G55HSaUsaaieiiAprnJaEc9rH",
        audience="https://confluent.auth0.com/api/v2/",
    ),
    "devel": SSOProvider(
        name="devel",
        host="https://login.confluent-dev.io",
        client_id="XKlqgOEo39iyonTl3Yv3IHWIXGKDP3fA",
        audience="https://confluent-dev.auth0.com/api/v2/",
    ),
    "stag": SSOProvider(
        name="stag",
        host="https://login-stag.confluent-dev.io",
        client_id="Lk2u2MHszzpmmiJ1LetzZw3ur41nqLrw",
        audience="https://confluent-stag.auth0.com/api/v2/",
    ),
    "cpd": SSOProvider(
        name="cpd",
        host="https://login-cpd.confluent-dev.io",
        client_id="Ru1HRWIyKdu2xNOOwuEuL6n0cjtbSeQb",
        audience="https://confluent-cpd.auth0.com/api/v2/",
    ),
}

_DEFAULT_AUTH_URL = "https://confluent.cloud"


def provider_for_url(auth_url: str) -> SSOProvider:
    """Return the identity provider serving *auth_url*.

    An empty URL means production.

    Raises:
        ConfigError: If *auth_url* belongs to no known environment.
    """
    url = auth_url or _DEFAULT_AUTH_URL
    if url == _DEFAULT_AUTH_URL:
        return PROVIDERS["prod"]
    if url.endswith("priv.cpdev.cloud"):
        return PROVIDERS["cpd"]
    if url == "https://devel.cpdev.cloud":
        return PROVIDERS["devel"]
    if url == "https://stag.cpdev.cloud":
        return PROVIDERS["stag"]
    raise ConfigError(f"unrecognized auth url: {auth_url}")


def _b64url(data: bytes) -> str:
    """Base64url-encode *data* without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def code_challenge_for(code_verifier: str) -> str:
    """Return the S256 challenge for *code_verifier*."""
    return _b64url(hashlib.sha256(code_verifier.encode("ascii")).digest())


class AuthFlowState:
    """Mutable state of a single sign-on attempt.

    Args:
        provider: The identity provider to talk to.
        callback_url: ``redirect_uri`` registered for this attempt.

    Attributes:
        code_verifier: 32 random bytes, base64url encoded.
        code_challenge: ``base64url(sha256(code_verifier))``.
        state_nonce: 32 further random bytes, base64url encoded.
        authorization_code: Set once the provider redirects back.
        id_token: Set by :meth:`exchange_code` or :meth:`refresh`.
        refresh_token: Set by the exchange when the provider returns one.
    """

    def __init__(self, provider: SSOProvider, callback_url: str) -> None:
        self.provider = provider
        self.callback_url = callback_url
        self.state_nonce = _b64url(secrets.token_bytes(32))
        self.code_verifier = _b64url(secrets.token_bytes(32))
        self.code_challenge = code_challenge_for(self.code_verifier)
        self.authorization_code = ""
        self.id_token = ""
        self.refresh_token = ""

    @classmethod
    def for_url(
        cls,
        auth_url: str,
        no_browser: bool = False,
        callback_port: int = LOCAL_CALLBACK_PORT,
    ) -> AuthFlowState:
        """Create a state for *auth_url*.

        In browser mode the redirect always targets the local loopback
        listener; with ``no_browser`` it targets the CLI callback page of the
        backend, which shows the ``state/code`` string for pasting.
        """
        provider = provider_for_url(auth_url)
        if no_browser:
            callback_url = (auth_url or _DEFAULT_AUTH_URL) + CALLBACK_PATH
        else:
            callback_url = f"http://{LOCAL_CALLBACK_HOST}:{callback_port}{CALLBACK_PATH}"
        return cls(provider, callback_url)

    def matches_state(self, echoed: str) -> bool:
        """Return True if *echoed* equals :attr:`state_nonce` (constant time)."""
        if not echoed:
            return False
        return secrets.compare_digest(echoed.encode("utf-8"), self.state_nonce.encode("utf-8"))

    def authorization_url(self, connection_name: Optional[str] = None) -> str:
        """Build the provider's ``/authorize`` URL for this attempt."""
        params = [
            ("response_type", "code"),
            ("code_challenge", self.code_challenge),
            ("code_challenge_method", "S256"),
            ("client_id", self.provider.client_id),
            ("redirect_uri", self.callback_url),
            ("scope", SCOPE),
            ("audience", self.provider.audience),
            ("state", self.state_nonce),
        ]
        if connection_name:
            params.append(("connection", connection_name))
        return f"{self.provider.host}/authorize?{urlencode(params, quote_via=quote)}"

    def exchange_code(self) -> None:
        """Trade :attr:`authorization_code` for an ID token and refresh token.

        Raises:
            AuthError: If the provider rejects the code.
            MalformedInputError: If the response lacks ``id_token``.
        """
        if not self.authorization_code:
            raise AuthError("no authorization code to exchange")
        data = {
            "grant_type": "authorization_code",
            "client_id": self.provider.client_id,
            "code_verifier": self.code_verifier,
            "code": self.authorization_code,
            "redirect_uri": self.callback_url,
        }
        self._store_tokens(self._post_token(data))

    def refresh(self, refresh_token: str) -> None:
        """Mint a new ID token from a stored *refresh_token*.

        The stored refresh token is kept when the provider does not rotate it.
        """
        data = {
            "grant_type": "refresh_token",
            "client_id": self.provider.client_id,
            "refresh_token": refresh_token,
            "redirect_uri": self.callback_url,
        }
        self.refresh_token = refresh_token
        self._store_tokens(self._post_token(data))

    def _store_tokens(self, token_data: dict[str, Any]) -> None:
        id_token = token_data.get("id_token")
        if not isinstance(id_token, str) or not id_token:
            raise MalformedInputError(
                "oauth token response body did not contain id_token field"
            )
        self.id_token = id_token
        refresh_token = token_data.get("refresh_token")
        if isinstance(refresh_token, str) and refresh_token:
            self.refresh_token = refresh_token

    def _post_token(self, data: dict[str, str]) -> dict[str, Any]:
        url = f"{self.provider.host}/oauth/token"
        try:
            response = httpx.post(
                url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=_TOKEN_TIMEOUT,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            debug(f"POST {url} returned {exc.response.status_code}: {exc.response.text}")
            raise AuthError(
                f"identity provider rejected the {data['grant_type']} exchange "
                f"(HTTP {exc.response.status_code})"
            ) from exc
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"Failed to reach identity provider: {exc}") from exc

        try:
            token_data = response.json()
        except ValueError as exc:
            debug(f"Unparseable token response from {url}: {response.text}")
            raise MalformedInputError(
                "identity provider returned a response that is not JSON"
            ) from exc
        if not isinstance(token_data, dict):
            debug(f"Unexpected token response from {url}: {response.text}")
            raise MalformedInputError("identity provider returned an unexpected response")
        return token_data
