"""Context commands -- list and switch between login contexts.

A context is created by ``cflogin auth login`` for every user/server pair.
"""

from __future__ import annotations

import typer

from cflogin.config import load_config, require_context, save_config
from cflogin.exceptions import CfloginError
from cflogin.output import error, info, print_data, print_table, success


context_app = typer.Typer(no_args_is_help=True)


@context_app.command("list")
def context_list() -> None:
    """List all contexts. The current one is marked with ``*``."""
    try:
        config = load_config()
    except CfloginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if not config.contexts:
        info("No contexts yet. Run `cflogin auth login` to create one.")
        return

    headers = ["Current", "Name", "Platform", "Credential"]
    rows = [
        [
            "*" if name == config.current_context else "",
            name,
            context.platform.name,
            context.credential.name,
        ]
        for name, context in sorted(config.contexts.items())
    ]
    print_table(headers, rows, title="Contexts")


@context_app.command("use")
def context_use(name: str = typer.Argument(help="Context to make current.")) -> None:
    """Make *name* the current context."""
    try:
        config = load_config()
        require_context(config, name)
        config.current_context = name
        save_config(config)
    except CfloginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f'Using context "{name}".')


@context_app.command("current")
def context_current() -> None:
    """Print the name of the current context."""
    try:
        context = require_context(load_config())
    except CfloginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    print_data(context.name)
