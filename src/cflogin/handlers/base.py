"""Abstract base class for token handlers.

Each handler owns the backend calls for one :class:`~cflogin.models.BackendKind`.
The resolver never talks to a backend itself; it hands the credentials a
source produced to :meth:`TokenHandler.authenticate`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from cflogin.models import BackendKind, Credentials


@dataclass(frozen=True)
class TokenResult:
    """A bearer token and the credentials that produced it.

    For SSO logins ``credentials.refresh_token`` holds the refresh token
    minted during the flow, so the caller can persist it.
    """

    token: str
    credentials: Credentials


class TokenHandler(ABC):
    """Turns :class:`~cflogin.models.Credentials` into a bearer token."""

    @property
    @abstractmethod
    def backend(self) -> BackendKind:
        """The backend this handler authenticates against."""
        ...

    @property
    @abstractmethod
    def url(self) -> str:
        """The backend URL tokens are requested from."""
        ...

    @property
    def username_label(self) -> str:
        """Label used when prompting for the username."""
        return "Username"

    def is_sso_user(self, username: str) -> bool:
        """Whether *username* signs on through SSO instead of a password."""
        return False

    @abstractmethod
    def authenticate(self, credentials: Credentials) -> TokenResult:
        """Exchange *credentials* for a bearer token.

        Raises:
            AuthError: If the backend rejects the credentials.
        """
        ...
