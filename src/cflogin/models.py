"""Canonical Pydantic models shared across all cflogin modules.

The models fall into two groups:

**Credential models** -- short-lived values passed between the resolver,
the token handlers and the netrc store:
    :class:`BackendKind`, :class:`CredentialKind`, :class:`Credentials`,
    :class:`NetrcMachine`, and :class:`MachineFilter`.

**Configuration models** -- serialised as JSON in the user's config
directory and describing the login contexts the CLI can switch between:
    :class:`Platform`, :class:`Credential`, :class:`User`,
    :class:`Organization`, :class:`Account`, :class:`AuthInfo`,
    :class:`ContextState`, :class:`Context`, and :class:`GlobalConfig`.

Credential models are frozen. Configuration models accept unknown keys with
``extra="allow"`` so that fields written by newer versions survive a
load/save cycle.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Credential models ---


class BackendKind(str, enum.Enum):
    """The remote system a login targets.

    The values double as the CLI name embedded in netrc machine names, which
    keeps existing netrc files readable.
    """

    CLOUD = "ccloud"
    ONPREM = "confluent"


class CredentialKind(str, enum.Enum):
    """Kind of secret stored under a netrc machine."""

    MDS_PASSWORD = "mds-username-password"
    CLOUD_PASSWORD = "ccloud-username-password"
    CLOUD_SSO = "ccloud-sso-refresh-token"

    @classmethod
    def for_backend(cls, backend: BackendKind, is_sso: bool = False) -> CredentialKind:
        """Return the credential kind written for *backend*.

        On-prem logins only ever store passwords, so *is_sso* is ignored for
        :attr:`BackendKind.ONPREM`.
        """
        if backend == BackendKind.ONPREM:
            return cls.MDS_PASSWORD
        return cls.CLOUD_SSO if is_sso else cls.CLOUD_PASSWORD


class Credentials(BaseModel):
    """A username plus exactly one secret, produced by a credential source.

    ``password`` is meaningful for password logins; ``refresh_token`` is
    meaningful only when ``is_sso`` is set.
    """

    model_config = ConfigDict(frozen=True)

    username: str = Field(description="Email (cloud) or username (on-prem)")
    password: str = Field(default="", description="Password, empty for SSO users")
    refresh_token: str = Field(
        default="", description="Identity-provider refresh token, SSO only"
    )
    is_sso: bool = False

    @field_validator("username")
    @classmethod
    def _username_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("username must not be empty")
        return value

    @property
    def secret(self) -> str:
        """The secret worth persisting: the refresh token for SSO users, else the password."""
        return self.refresh_token if self.is_sso else self.password


class NetrcMachine(BaseModel):
    """A single ``machine`` entry read back from the netrc file."""

    model_config = ConfigDict(frozen=True)

    name: str
    user: str
    password: str = ""
    is_sso: bool = False


class MachineFilter(BaseModel):
    """Criteria for :meth:`cflogin.auth.netrc.NetrcHandler.get_matching_machine`.

    Leaving both ``context_name`` and ``url`` unset matches a machine for
    any context of the backend. ``is_sso`` only narrows cloud lookups:
    ``None`` accepts password and SSO machines alike.
    """

    backend: BackendKind
    is_sso: Optional[bool] = None
    context_name: Optional[str] = None
    url: Optional[str] = None


# --- Configuration models ---


class Platform(BaseModel):
    """The server a context talks to."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(description="Server URL with the https:// prefix removed")
    server: str = Field(description="Full server URL")
    ca_cert_path: Optional[str] = Field(
        default=None, description="Absolute path to a PEM bundle trusted for this server"
    )


class Credential(BaseModel):
    """Identity a context logs in as. Secrets are never stored here."""

    model_config = ConfigDict(extra="allow")

    name: str
    username: str


class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    email: str = ""
    first_name: str = ""
    last_name: str = ""


class Organization(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    resource_id: str = ""
    name: str = ""


class Account(BaseModel):
    """A cloud environment the user can select."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""


class AuthInfo(BaseModel):
    """Identity returned by the cloud backend for a bearer token."""

    model_config = ConfigDict(extra="allow")

    user: Optional[User] = None
    organization: Optional[Organization] = None
    accounts: list[Account] = Field(default_factory=list)
    account: Optional[Account] = Field(
        default=None, description="The currently selected environment"
    )


class ContextState(BaseModel):
    """The resolved session of a context: token plus identity."""

    model_config = ConfigDict(extra="allow")

    auth_token: str = ""
    auth: Optional[AuthInfo] = None

    def is_logged_in(self) -> bool:
        return bool(self.auth_token)


class Context(BaseModel):
    """A named combination of server URL and credential identity."""

    model_config = ConfigDict(extra="allow")

    name: str
    backend: BackendKind = BackendKind.CLOUD
    platform: Platform
    credential: Credential
    state: ContextState = Field(default_factory=ContextState)


class GlobalConfig(BaseModel):
    """Top-level config file contents (``config.json``)."""

    model_config = ConfigDict(extra="allow")

    current_context: Optional[str] = None
    contexts: dict[str, Context] = Field(default_factory=dict)

    def get_current_context(self) -> Optional[Context]:
        """Return the active context, or ``None`` when none is selected."""
        if self.current_context is None:
            return None
        return self.contexts.get(self.current_context)
