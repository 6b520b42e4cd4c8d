"""Shared plumbing for the backend HTTP clients.

:class:`BackendClient` wraps :class:`httpx.Client` and maps transport and
HTTP status failures onto the :mod:`cflogin.exceptions` hierarchy. Calls are
made exactly once: a failed token exchange surfaces immediately instead of
being retried.

Raw response bodies of failed calls are only written through
:func:`~cflogin.output.debug`; the raised exceptions carry plain messages.
"""

from __future__ import annotations

import ssl
from typing import Any, Optional, Union

import httpx

from cflogin.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError
from cflogin.output import debug

DEFAULT_TIMEOUT = 30.0


class BackendClient:
    """Synchronous client for one backend base URL.

    Must be used as a context manager so that the underlying connection pool
    is opened and closed.

    Args:
        base_url: Scheme and host of the backend, e.g. ``https://confluent.cloud``.
        verify: TLS verification setting passed to httpx: ``True``, or an
            :class:`ssl.SSLContext` trusting extra certificates.
        transport: Optional httpx transport, used by tests to inject a
            :class:`httpx.MockTransport`.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        verify: Union[bool, ssl.SSLContext] = True,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._verify = verify
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.Client] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def __enter__(self) -> BackendClient:
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=self._timeout,
            verify=self._verify,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request, mapping network failures to :class:`ConnectionError_`."""
        assert self._client is not None, "Client not initialised -- use as context manager"
        debug(f"{method} {self._base_url}{path}")
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"Failed to reach {self._base_url}: {exc}") from exc
        debug(f"{method} {path} -> HTTP {response.status_code}")
        return response

    def _map_response_error(
        self,
        response: httpx.Response,
        auth_message: str,
        unauthorized: tuple[int, ...] = (401, 403),
    ) -> None:
        """Raise a typed exception for error HTTP status codes.

        Args:
            response: The response to check.
            auth_message: Message for statuses in *unauthorized*.
            unauthorized: Statuses that mean the credentials were rejected.
        """
        status = response.status_code
        if status < 400:
            return

        debug(f"Error body from {response.request.url}: {response.text[:500]}")

        if status in unauthorized:
            raise AuthError(auth_message)
        if status == 404:
            raise NotFoundError(f"{response.request.url.path} not found on {self._base_url}")
        if status >= 500:
            raise ServerError(f"{self._base_url} returned HTTP {status}")
        raise ServerError(f"{self._base_url} rejected the request with HTTP {status}")

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            debug(f"Unexpected body from {response.request.url}: {response.text[:500]}")
            raise ServerError(f"{response.request.url.host} returned an unexpected response")
        return data
