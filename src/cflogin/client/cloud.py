"""Client for the cloud control plane's session endpoints.

Three calls are used by the login flow:

* ``POST /api/check_email`` -- whether an email belongs to an SSO-managed
  organization, and which identity-provider connection it uses.
* ``POST /api/sessions`` -- exchange either an email/password pair or an
  identity-provider ID token for a bearer token.
* ``GET /api/me`` -- the user, organization and environments a bearer token
  belongs to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from cflogin.client.base import BackendClient
from cflogin.exceptions import AuthError, InvalidUsageError
from cflogin.models import Account, AuthInfo, Organization, User


@dataclass(frozen=True)
class SSOIdentity:
    """SSO settings of an email's organization."""

    enabled: bool = False
    connection_name: str = ""

    @property
    def is_sso(self) -> bool:
        """SSO only applies when it is enabled *and* a connection is configured."""
        return self.enabled and bool(self.connection_name)


class CloudClient(BackendClient):
    """Cloud control-plane client.

    Example::

        with CloudClient("https://confluent.cloud") as client:
            token = client.login(email="a@b.com", password="pw")
            info = client.get_me(token)
    """

    def login(
        self,
        email: str = "",
        password: str = "",
        id_token: str = "",
    ) -> str:
        """Exchange credentials for a bearer token.

        Exactly one of *password* or *id_token* must be given.

        Raises:
            InvalidUsageError: If both or neither secret is given.
            AuthError: If the backend rejects the credentials.
        """
        if password and id_token:
            raise InvalidUsageError("login takes a password or an ID token, not both")
        if not password and not id_token:
            raise InvalidUsageError("login requires a password or an ID token")

        body: dict[str, Any] = {"id_token": id_token} if id_token else {
            "email": email,
            "password": password,
        }
        response = self._request("POST", "/api/sessions", json=body)
        message = (
            "the SSO sign-on was not accepted by the backend"
            if id_token
            else "incorrect email or password"
        )
        # The sessions endpoint answers 404 for unknown users.
        self._map_response_error(response, message, unauthorized=(401, 403, 404))

        token = self._token_from(response)
        if not token:
            raise AuthError(message)
        return token

    def check_email(self, email: str) -> SSOIdentity:
        """Look up the SSO settings of *email*'s organization."""
        response = self._request("POST", "/api/check_email", json={"user": {"email": email}})
        self._map_response_error(response, "email lookup was rejected")
        user = self._json(response).get("user") or {}
        sso = user.get("sso") or {}
        return SSOIdentity(
            enabled=bool(sso.get("enabled", False)),
            connection_name=str(sso.get("auth0_connection_name") or ""),
        )

    def get_me(self, token: str) -> AuthInfo:
        """Fetch the identity behind *token*."""
        response = self._request(
            "GET", "/api/me", headers={"Authorization": f"Bearer {token}"}
        )
        self._map_response_error(response, "the bearer token was rejected")
        data = self._json(response)
        return AuthInfo(
            user=User.model_validate(data["user"]) if data.get("user") else None,
            organization=(
                Organization.model_validate(data["organization"])
                if data.get("organization")
                else None
            ),
            accounts=[Account.model_validate(a) for a in data.get("accounts") or []],
        )

    @staticmethod
    def _token_from(response: httpx.Response) -> Optional[str]:
        """Read the token from the body, falling back to the ``auth_token`` cookie."""
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("token"):
            return str(data["token"])
        return response.cookies.get("auth_token")
