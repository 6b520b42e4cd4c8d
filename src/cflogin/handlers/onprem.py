"""Token handler for an on-premises metadata service (password logins only)."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Union

from cflogin.client.mds import MDSClient
from cflogin.handlers.base import TokenHandler, TokenResult
from cflogin.models import BackendKind, Credentials


class OnPremTokenHandler(TokenHandler):
    """Authenticate against MDS with HTTP Basic credentials.

    Args:
        url: MDS base URL.
        ca_cert_path: Optional PEM bundle trusted in addition to the system
            store. An unreadable bundle fails the login.
        client_factory: Builds an :class:`~cflogin.client.mds.MDSClient`.
    """

    def __init__(
        self,
        url: str,
        ca_cert_path: Optional[Union[str, Path]] = None,
        client_factory: Callable[..., MDSClient] = MDSClient,
    ) -> None:
        self._url = url
        self._ca_cert_path = ca_cert_path
        self._client_factory = client_factory

    @property
    def backend(self) -> BackendKind:
        return BackendKind.ONPREM

    @property
    def url(self) -> str:
        return self._url

    def authenticate(self, credentials: Credentials) -> TokenResult:
        token = self.get_token(credentials.username, credentials.password)
        return TokenResult(token=token, credentials=credentials)

    def get_token(self, username: str, password: str) -> str:
        with self._client_factory(self._url, ca_cert_path=self._ca_cert_path) as client:
            return client.get_token(username, password).auth_token
