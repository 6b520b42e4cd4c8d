"""Token handler for the cloud control plane (password and SSO logins)."""

from __future__ import annotations

from typing import Callable

from cflogin.auth.sso.flow import SSOFlow, SSOTokens
from cflogin.client.cloud import CloudClient, SSOIdentity
from cflogin.exceptions import AuthError, CfloginError
from cflogin.handlers.base import TokenHandler, TokenResult
from cflogin.models import BackendKind, Credentials
from cflogin.output import debug


class CloudTokenHandler(TokenHandler):
    """Authenticate against the cloud control plane.

    Password users log in directly. SSO users either present a stored
    refresh token, which is traded for a fresh ID token, or run the
    interactive :class:`~cflogin.auth.sso.flow.SSOFlow`. Either way the ID
    token is then exchanged for a bearer token through the same login call.

    Args:
        url: Cloud base URL.
        sso_flow: Flow used for SSO sign-on and refresh.
        no_browser: Run SSO in copy/paste mode.
        client_factory: Builds a :class:`~cflogin.client.cloud.CloudClient`
            for *url*; tests inject one wired to a mock transport.
    """

    def __init__(
        self,
        url: str,
        sso_flow: SSOFlow,
        no_browser: bool = False,
        client_factory: Callable[[str], CloudClient] = CloudClient,
    ) -> None:
        self._url = url
        self._sso_flow = sso_flow
        self._no_browser = no_browser
        self._client_factory = client_factory

    @property
    def backend(self) -> BackendKind:
        return BackendKind.CLOUD

    @property
    def url(self) -> str:
        return self._url

    @property
    def username_label(self) -> str:
        return "Email"

    def authenticate(self, credentials: Credentials) -> TokenResult:
        if credentials.is_sso:
            if credentials.refresh_token:
                return self.refresh_sso_token(credentials)
            return self.get_sso_token(credentials.username)
        token = self.get_token(credentials.username, credentials.password)
        return TokenResult(token=token, credentials=credentials)

    def get_token(self, email: str, password: str) -> str:
        with self._client_factory(self._url) as client:
            return client.login(email=email, password=password)

    def get_sso_identity(self, email: str) -> SSOIdentity:
        """Return the SSO settings for *email*. Lookup failures propagate."""
        with self._client_factory(self._url) as client:
            return client.check_email(email)

    def is_sso_user(self, email: str) -> bool:
        """Best-effort SSO check.

        Any failure reads as "not SSO", so a bogus email gets the same
        password prompt as a real one.
        """
        try:
            return self.get_sso_identity(email).is_sso
        except CfloginError as exc:
            debug(f"SSO lookup for {email} failed: {exc}")
            return False

    def get_sso_token(self, email: str) -> TokenResult:
        """Run the interactive sign-on for *email* and log in with the result."""
        try:
            identity = self.get_sso_identity(email)
        except CfloginError as exc:
            raise AuthError(f"unable to obtain SSO info for user {email}") from exc
        if not identity.is_sso:
            raise AuthError(f"tried to obtain SSO token for non SSO user {email}")

        tokens = self._sso_flow.login(self._url, self._no_browser, identity.connection_name)
        return self._login_with(email, tokens)

    def refresh_sso_token(self, credentials: Credentials) -> TokenResult:
        """Trade the stored refresh token for a new bearer token."""
        tokens = self._sso_flow.refresh(self._url, credentials.refresh_token)
        return self._login_with(credentials.username, tokens)

    def _login_with(self, email: str, tokens: SSOTokens) -> TokenResult:
        with self._client_factory(self._url) as client:
            token = client.login(id_token=tokens.id_token)
        return TokenResult(
            token=token,
            credentials=Credentials(
                username=email, refresh_token=tokens.refresh_token, is_sso=True
            ),
        )
