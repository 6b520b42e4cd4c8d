"""Client for the on-premises metadata service (MDS) token endpoint.

MDS issues bearer tokens in exchange for HTTP Basic credentials. Self-signed
deployments are supported through :func:`build_ssl_context`, which appends a
PEM bundle to the system trust store.
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import httpx

from cflogin.client.base import BackendClient
from cflogin.exceptions import ConfigError, ServerError
from cflogin.output import debug

TOKEN_PATH = "/security/1.0/authenticate"


@dataclass(frozen=True)
class MDSToken:
    auth_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None


def build_ssl_context(ca_cert_path: Union[str, Path]) -> ssl.SSLContext:
    """Return a TLS context trusting the system store plus *ca_cert_path*.

    Raises:
        ConfigError: If the file cannot be read or holds no certificate.
    """
    path = Path(ca_cert_path).expanduser().absolute()
    try:
        pem = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to read certificate {path}: {exc}") from exc
    if "-----BEGIN CERTIFICATE-----" not in pem:
        raise ConfigError(f"no certificates found in {path}")

    context = ssl.create_default_context()
    try:
        context.load_verify_locations(cadata=pem)
    except (ssl.SSLError, ValueError) as exc:
        raise ConfigError(f"failed to load certificate {path}: {exc}") from exc
    debug(f"Trusting CA certificates from {path} in addition to the system store")
    return context


class MDSClient(BackendClient):
    """Metadata-service client.

    Args:
        base_url: MDS URL, e.g. ``https://mds.example.com:8090``.
        ca_cert_path: Optional PEM bundle for self-signed deployments.
        transport: Optional httpx transport for tests.
    """

    def __init__(
        self,
        base_url: str,
        ca_cert_path: Optional[Union[str, Path]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        verify: Union[bool, ssl.SSLContext] = True
        if ca_cert_path:
            verify = build_ssl_context(ca_cert_path)
        super().__init__(base_url, verify=verify, transport=transport)

    def get_token(self, username: str, password: str) -> MDSToken:
        """Authenticate with HTTP Basic credentials and return the issued token.

        Raises:
            AuthError: If MDS rejects the credentials.
        """
        response = self._request("GET", TOKEN_PATH, auth=(username, password))
        self._map_response_error(response, "incorrect username or password")
        data = self._json(response)
        token = data.get("auth_token")
        if not token:
            debug(f"MDS token response without auth_token: {sorted(data)}")
            raise ServerError("metadata service response did not contain auth_token")
        expires_in = data.get("expires_in")
        return MDSToken(
            auth_token=str(token),
            token_type=str(data.get("token_type") or "Bearer"),
            expires_in=int(expires_in) if expires_in is not None else None,
        )
