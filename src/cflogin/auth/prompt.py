"""Interactive terminal input used by the credential resolver and the SSO flow.

Components take a :class:`Prompt` instead of reading stdin directly so that
tests can script the user's answers.
"""

from __future__ import annotations

from typing import Protocol

import typer


class Prompt(Protocol):
    """What the login flow needs from a terminal."""

    def show(self, message: str) -> None:
        """Display *message* to the user. Never suppressed by ``--quiet``."""
        ...

    def read_line(self, label: str) -> str:
        """Read one visible line of input."""
        ...

    def read_secret(self, label: str) -> str:
        """Read one line of input without echoing it."""
        ...


class TyperPrompt:
    """:class:`Prompt` backed by :func:`typer.prompt`, writing to stderr."""

    def show(self, message: str) -> None:
        typer.echo(message, err=True)

    def read_line(self, label: str) -> str:
        return typer.prompt(label, err=True)

    def read_secret(self, label: str) -> str:
        return typer.prompt(label, hide_input=True, err=True)
