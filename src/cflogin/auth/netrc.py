"""Netrc-backed credential store with context-aware machine matching.

Long-lived secrets (passwords, SSO refresh tokens) are persisted in the
user's netrc file so that other tools, and later invocations, can read them.
Each secret lives under a machine whose name encodes the backend, the kind
of secret and the login context::

    machine confluent-cli:ccloud-username-password:login-a@b.com-https://confluent.cloud
        login a@b.com
        password s3cret

:class:`NetrcFile` reads the file with the standard library :mod:`netrc`
parser and re-serialises it, keeping foreign entries, ``default`` entries
and ``macdef`` blocks intact. Comments are not preserved across a write.

:class:`NetrcHandler` is the store itself. Writes update a machine in place
(at most one machine per name) and land atomically with ``0o600``
permissions. Lookups compile a pattern from a :class:`~cflogin.models.MachineFilter`
in which every user-supplied fragment is regex-escaped, and return the first
matching machine in file order.
"""

from __future__ import annotations

import netrc as stdlib_netrc
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from cflogin.config import atomic_write
from cflogin.exceptions import NetrcError
from cflogin.models import BackendKind, CredentialKind, MachineFilter, NetrcMachine
from cflogin.output import debug

MACHINE_PREFIX = "confluent-cli"

_NEEDS_QUOTING = re.compile(r'[\s"\\]|^#|^$')


def machine_name(backend: BackendKind, is_sso: bool, context_name: str) -> str:
    """Return the netrc machine name for a credential of *backend* in *context_name*."""
    kind = CredentialKind.for_backend(backend, is_sso)
    return f"{MACHINE_PREFIX}:{kind.value}:{context_name}"


def machine_name_pattern(machine_filter: MachineFilter) -> re.Pattern[str]:
    """Compile the pattern that selects machines for *machine_filter*.

    The context name is matched literally. A bare URL matches any context
    whose name ends with ``-<url>``. With neither, any context matches.
    """
    if machine_filter.context_name:
        context_pattern = re.escape(machine_filter.context_name)
    elif machine_filter.url:
        context_pattern = ".*-" + re.escape(machine_filter.url)
    else:
        context_pattern = ".*"

    if machine_filter.backend == BackendKind.ONPREM:
        kinds = [CredentialKind.MDS_PASSWORD]
    elif machine_filter.is_sso is None:
        kinds = [CredentialKind.CLOUD_PASSWORD, CredentialKind.CLOUD_SSO]
    elif machine_filter.is_sso:
        kinds = [CredentialKind.CLOUD_SSO]
    else:
        kinds = [CredentialKind.CLOUD_PASSWORD]
    kind_pattern = "(?:" + "|".join(re.escape(k.value) for k in kinds) + ")"

    return re.compile(f"{re.escape(MACHINE_PREFIX)}:{kind_pattern}:{context_pattern}")


# --- Reading and serialisation ---


@dataclass
class NetrcEntry:
    """One ``machine`` (or the ``default``) block. ``name`` is ``None`` for ``default``."""

    name: Optional[str]
    login: str = ""
    password: str = ""
    account: str = ""


@dataclass
class NetrcFile:
    entries: list[NetrcEntry] = field(default_factory=list)
    macros: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> NetrcFile:
        """Read the netrc file at *path* with the standard library parser.

        A missing file reads as empty. Machines keep their file order and
        the ``default`` entry, if any, is placed last.

        Raises:
            NetrcError: If the file cannot be read or is malformed.
        """
        if not path.exists():
            return cls()
        try:
            parsed = stdlib_netrc.netrc(str(path))
        except stdlib_netrc.NetrcParseError as exc:
            raise NetrcError(
                f"Unable to parse netrc file {path}: {exc.msg} (line {exc.lineno})"
            ) from exc
        except OSError as exc:
            raise NetrcError(f"Unable to read netrc file {path}: {exc}") from exc

        netrc = cls()
        default: Optional[NetrcEntry] = None
        for host, (login, account, password) in parsed.hosts.items():
            if host == "default":
                default = NetrcEntry(name=None, login=login, password=password, account=account)
                continue
            netrc.entries.append(
                NetrcEntry(name=host, login=login, password=password, account=account)
            )
        if default is not None:
            netrc.entries.append(default)
        netrc.macros = {
            name: [line.rstrip("\n") for line in body] for name, body in parsed.macros.items()
        }
        return netrc

    def find(self, name: str) -> Optional[NetrcEntry]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def set_machine(self, name: str, login: str, password: str) -> NetrcEntry:
        """Update the machine called *name*, or append it when missing.

        New machines are placed before any ``default`` entry, which must stay
        last to be honoured by other netrc readers.
        """
        entry = self.find(name)
        if entry is None:
            entry = NetrcEntry(name=name)
            position = next(
                (i for i, e in enumerate(self.entries) if e.name is None),
                len(self.entries),
            )
            self.entries.insert(position, entry)
        entry.login = login
        entry.password = password
        return entry

    def dumps(self) -> str:
        """Serialise back to netrc text.

        Raises:
            NetrcError: If a value contains a line break, which no netrc
                reader can represent.
        """
        chunks: list[str] = []
        for entry in self.entries:
            head = "default" if entry.name is None else f"machine {_quote(entry.name)}"
            lines = [head]
            for key in ("login", "password", "account"):
                value = getattr(entry, key)
                if value:
                    lines.append(f"\t{key} {_quote(value)}")
            chunks.append("\n".join(lines))
        for name, body in self.macros.items():
            # A blank line terminates the macro body.
            chunks.append("\n".join([f"macdef {_quote(name)}", *body, ""]))
        return "\n\n".join(chunks) + "\n" if chunks else ""


def _quote(value: str) -> str:
    if "\n" in value or "\r" in value:
        raise NetrcError("netrc values cannot contain line breaks")
    if not _NEEDS_QUOTING.search(value):
        return value
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


# --- Store ---


class NetrcHandler:
    """Read and write login credentials in a netrc file.

    Args:
        path: Location of the netrc file. A leading ``~`` is expanded. The
            file is created on first write.

    Example::

        handler = NetrcHandler("~/.netrc")
        handler.write_credentials(
            BackendKind.CLOUD, False, "login-a@b.com-https://x", "a@b.com", "pw"
        )
        machine = handler.get_matching_machine(
            MachineFilter(backend=BackendKind.CLOUD, context_name="login-a@b.com-https://x")
        )
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._raw_path = str(path)

    @property
    def path(self) -> Path:
        """The resolved filesystem path of the netrc file."""
        if not self._raw_path:
            raise NetrcError("Unable to resolve netrc path: no path configured")
        return Path(os.path.expanduser(self._raw_path))

    def write_credentials(
        self,
        backend: BackendKind,
        is_sso: bool,
        context_name: str,
        username: str,
        secret: str,
    ) -> None:
        """Store *username*/*secret* under the machine for *context_name*.

        Writing the same credential twice leaves the file unchanged.

        Raises:
            NetrcError: If the file cannot be read, parsed or written.
        """
        path = self.path
        netrc = NetrcFile.load(path)
        name = machine_name(backend, is_sso, context_name)
        netrc.set_machine(name, username, secret)
        text = netrc.dumps()
        try:
            atomic_write(path, text, mode=0o600)
        except OSError as exc:
            raise NetrcError(f"Unable to write netrc file {path}: {exc}") from exc
        debug(f"Wrote machine {name} to {path}")

    def get_matching_machine(self, machine_filter: MachineFilter) -> Optional[NetrcMachine]:
        """Return the first machine in file order that matches *machine_filter*.

        Returns:
            The matching :class:`~cflogin.models.NetrcMachine`, or ``None``
            when the file is absent or nothing matches. For SSO machines
            ``password`` holds the refresh token.

        Raises:
            NetrcError: If the file exists but cannot be read or parsed.
        """
        path = self.path
        if not path.is_file():
            debug(f"No netrc file at {path}")
            return None
        pattern = machine_name_pattern(machine_filter)
        debug(f"Searching {path} for a machine matching {pattern.pattern}")
        for entry in NetrcFile.load(path).entries:
            if entry.name is not None and pattern.fullmatch(entry.name):
                return NetrcMachine(
                    name=entry.name,
                    user=entry.login,
                    password=entry.password,
                    is_sso=CredentialKind.CLOUD_SSO.value in entry.name,
                )
        return None

    def get_credentials(
        self, backend: BackendKind, is_sso: bool, context_name: str
    ) -> Optional[NetrcMachine]:
        """Return the machine stored for exactly *context_name*, if any."""
        return self.get_matching_machine(
            MachineFilter(backend=backend, is_sso=is_sso, context_name=context_name)
        )
