"""Credential resolution: environment, then netrc, then an interactive prompt.

:class:`CredentialResolver` walks its sources in a fixed order and stops at
the first one that yields a token. A source that has nothing to offer
returns ``None`` and the next source is tried. Any exception raised by a
source (a malformed netrc file, rejected credentials, an SSO timeout) ends
resolution immediately; weaker sources are never consulted after a hard
failure of a stronger one.

Each source only locates raw :class:`~cflogin.models.Credentials`; turning
them into a token is left to the injected
:class:`~cflogin.handlers.base.TokenHandler`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from cflogin.auth.netrc import NetrcHandler
from cflogin.auth.prompt import Prompt
from cflogin.exceptions import NoCredentialsFoundError
from cflogin.handlers.base import TokenHandler, TokenResult
from cflogin.models import BackendKind, Credentials, MachineFilter, NetrcMachine
from cflogin.output import debug, info


@dataclass(frozen=True)
class EnvVarNames:
    """Username/password variable pairs for one backend, current names first."""

    username: str
    password: str
    deprecated_username: str
    deprecated_password: str

    def pairs(self) -> list[tuple[str, str]]:
        return [
            (self.username, self.password),
            (self.deprecated_username, self.deprecated_password),
        ]


ENV_VARS: dict[BackendKind, EnvVarNames] = {
    BackendKind.CLOUD: EnvVarNames(
        username="CONFLUENT_CLOUD_EMAIL",
        password="CONFLUENT_CLOUD_PASSWORD",
        deprecated_username="CCLOUD_EMAIL",
        deprecated_password="CCLOUD_PASSWORD",
    ),
    BackendKind.ONPREM: EnvVarNames(
        username="CONFLUENT_PLATFORM_USERNAME",
        password="CONFLUENT_PLATFORM_PASSWORD",
        deprecated_username="CONFLUENT_USERNAME",
        deprecated_password="CONFLUENT_PASSWORD",
    ),
}

CredentialSource = Callable[[], Optional[TokenResult]]


def credentials_from_env(
    backend: BackendKind, environ: Mapping[str, str]
) -> Optional[tuple[Credentials, str, str]]:
    """Look up a complete username/password pair for *backend* in *environ*.

    The current variable names are checked before the deprecated ones. A
    pair with only one half set counts as absent.

    Returns:
        ``(credentials, username_var, password_var)`` or ``None``.
    """
    for user_var, password_var in ENV_VARS[backend].pairs():
        username = environ.get(user_var, "")
        password = environ.get(password_var, "")
        if username and password:
            return Credentials(username=username, password=password), user_var, password_var
        if username or password:
            debug(f"Ignoring incomplete credentials in {user_var}/{password_var}")
    return None


def credentials_from_machine(machine: NetrcMachine) -> Optional[Credentials]:
    """Convert a netrc machine to credentials. SSO machines hold a refresh token.

    Returns ``None`` when the login or the secret is empty.
    """
    if not machine.user or not machine.password:
        return None
    if machine.is_sso:
        return Credentials(username=machine.user, refresh_token=machine.password, is_sso=True)
    return Credentials(username=machine.user, password=machine.password)


class CredentialResolver:
    """Produce a bearer token for a login command.

    Args:
        handler: Exchanges located credentials for a token. Its backend and
            URL also scope the netrc lookup.
        netrc: Store consulted as the second source.
        prompt: Terminal used as the last source.
        environ: Environment mapping; defaults to :data:`os.environ`.
        interactive: When False the prompt source is skipped.

    Example::

        resolver = CredentialResolver(handler, NetrcHandler("~/.netrc"), TyperPrompt())
        result = resolver.resolve()
        print(result.token, result.credentials.username)
    """

    def __init__(
        self,
        handler: TokenHandler,
        netrc: NetrcHandler,
        prompt: Prompt,
        environ: Optional[Mapping[str, str]] = None,
        interactive: bool = True,
    ) -> None:
        self._handler = handler
        self._netrc = netrc
        self._prompt = prompt
        self._environ = os.environ if environ is None else environ
        self._interactive = interactive

    def sources(self) -> list[tuple[str, CredentialSource]]:
        """The sources tried by :meth:`resolve`, in precedence order."""
        sources: list[tuple[str, CredentialSource]] = [
            ("environment variables", self.from_env),
            ("netrc file", self.from_netrc),
        ]
        if self._interactive:
            sources.append(("prompt", self.from_prompt))
        return sources

    def resolve(self) -> TokenResult:
        """Return the token from the first source that has credentials.

        Raises:
            NoCredentialsFoundError: If every source came back empty.
            CfloginError: Whatever a source raised; later sources are skipped.
        """
        for name, source in self.sources():
            result = source()
            if result is not None:
                return result
            debug(f"No credentials found in {name}")
        raise NoCredentialsFoundError("no credentials found")

    # ------------------------------------------------------------------ #
    # Sources
    # ------------------------------------------------------------------ #

    def from_env(self) -> Optional[TokenResult]:
        found = credentials_from_env(self._handler.backend, self._environ)
        if found is None:
            return None
        credentials, user_var, password_var = found
        info(
            f"Found credentials for user {credentials.username} from environment "
            f"variables {user_var} and {password_var}"
        )
        return self._handler.authenticate(credentials)

    def from_netrc(self) -> Optional[TokenResult]:
        machine_filter = MachineFilter(backend=self._handler.backend, url=self._handler.url)
        debug(f"Searching for netrc machine with filter: {machine_filter!r}")
        machine = self._netrc.get_matching_machine(machine_filter)
        if machine is None:
            return None
        credentials = credentials_from_machine(machine)
        if credentials is None:
            debug(f"Netrc machine {machine.name} has no login or secret")
            return None
        info(
            f"Found credentials for user {credentials.username} from netrc file "
            f"{self._netrc.path}"
        )
        return self._handler.authenticate(credentials)

    def from_prompt(self) -> Optional[TokenResult]:
        self._prompt.show("Enter your Confluent credentials:")
        username = self._prompt.read_line(self._handler.username_label).strip()
        if not username:
            return None
        if self._handler.is_sso_user(username):
            debug("Entered email belongs to an SSO user.")
            credentials = Credentials(username=username, is_sso=True)
        else:
            password = self._prompt.read_secret("Password")
            credentials = Credentials(username=username, password=password)
        return self._handler.authenticate(credentials)
