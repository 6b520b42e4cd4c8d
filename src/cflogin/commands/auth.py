"""Auth commands -- log in, log out, and inspect the current session.

Provides the ``cflogin auth`` sub-command group. ``login`` resolves
credentials (environment variables, then the netrc file, then a prompt),
exchanges them for a bearer token, records the session in the matching
context, and optionally saves the credentials to netrc for later
non-interactive logins and token refreshes.

Typical workflow::

    cflogin auth login --save                                # cloud, prompts once
    cflogin auth login --on-prem --url https://mds:8090 \\
        --ca-cert-path ./ca.pem                              # on-prem MDS
    cflogin auth status                                      # refreshes an expired token
    cflogin auth logout
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import typer

from cflogin.auth.netrc import NetrcHandler
from cflogin.auth.prompt import Prompt, TyperPrompt
from cflogin.auth.resolver import CredentialResolver
from cflogin.auth.session import (
    HandlerFactory,
    TokenStatus,
    TokenUpdater,
    apply_login,
    check_token,
    logout,
)
from cflogin.client.cloud import CloudClient
from cflogin.config import (
    DEFAULT_CLOUD_URL,
    get_netrc_path,
    load_config,
    require_context,
    save_config,
)
from cflogin.exceptions import CfloginError, InvalidUsageError
from cflogin.handlers import create_token_handler
from cflogin.handlers.base import TokenHandler
from cflogin.models import AuthInfo, BackendKind
from cflogin.output import error, info, print_record, success, suggest, warning


auth_app = typer.Typer(no_args_is_help=True)


def _prompt() -> Prompt:
    return TyperPrompt()


def _netrc() -> NetrcHandler:
    return NetrcHandler(get_netrc_path())


def _fetch_identity(url: str, token: str) -> AuthInfo:
    with CloudClient(url) as client:
        return client.get_me(token)


def _handler_factory(prompt: Prompt) -> HandlerFactory:
    def factory(
        backend: BackendKind, url: str, ca_cert_path: Optional[Union[str, Path]] = None
    ) -> TokenHandler:
        return create_token_handler(backend, url, prompt, ca_cert_path=ca_cert_path)

    return factory


def _exit_with(exc: CfloginError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(
        None, "--url", help="Server URL. Defaults to the cloud URL; required with --on-prem."
    ),
    on_prem: bool = typer.Option(
        False, "--on-prem", help="Log in to an on-premises metadata service."
    ),
    ca_cert_path: Optional[Path] = typer.Option(
        None, "--ca-cert-path", help="PEM bundle to trust for a self-signed on-prem server."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Sign on with SSO by pasting a code instead of a local callback."
    ),
    save: bool = typer.Option(
        False, "--save", help="Save the credentials to the netrc file."
    ),
) -> None:
    """Log in and make the resulting context current.

    Raises:
        typer.Exit: With the error's exit code on any failure.
    """
    backend = BackendKind.ONPREM if on_prem else BackendKind.CLOUD
    no_input = ctx.obj.get("no_input", False) if ctx.obj else False

    try:
        if on_prem and not url:
            raise InvalidUsageError("--url is required when logging in with --on-prem")
        if ca_cert_path is not None and not on_prem:
            raise InvalidUsageError("--ca-cert-path only applies to --on-prem logins")
        server = (url or DEFAULT_CLOUD_URL).rstrip("/")
        ca_path = str(ca_cert_path.expanduser().absolute()) if ca_cert_path else None

        prompt = _prompt()
        netrc = _netrc()
        handler = create_token_handler(
            backend, server, prompt, no_browser=no_browser, ca_cert_path=ca_path
        )
        resolver = CredentialResolver(handler, netrc, prompt, interactive=not no_input)
        result = resolver.resolve()

        auth_info = _fetch_identity(server, result.token) if backend == BackendKind.CLOUD else None

        config = load_config()
        context = apply_login(config, backend, server, result, auth_info, ca_cert_path=ca_path)
        save_config(config)

        if save:
            credentials = result.credentials
            if credentials.secret:
                netrc.write_credentials(
                    backend, credentials.is_sso, context.name, credentials.username, credentials.secret
                )
                info(f"Wrote credentials to netrc file {netrc.path}")
            else:
                warning("The identity provider returned no refresh token; nothing was saved.")
    except CfloginError as exc:
        raise _exit_with(exc) from None

    success(f'Logged in as "{result.credentials.username}".')
    if auth_info is not None and auth_info.account is not None:
        info(f'Using environment "{auth_info.account.id}" ("{auth_info.account.name}").')


@auth_app.command("logout")
def auth_logout() -> None:
    """Clear the session of the current context. Saved netrc credentials are kept."""
    try:
        config = load_config()
        logout(config)
        save_config(config)
    except CfloginError as exc:
        raise _exit_with(exc) from None
    success("You are now logged out.")


@auth_app.command("status")
def auth_status(
    refresh: bool = typer.Option(
        True, "--refresh/--no-refresh", help="Refresh an expired token from the netrc file."
    ),
) -> None:
    """Show the current context's login state.

    An expired token is re-derived from the credentials saved in netrc for
    the context, without prompting.
    """
    try:
        config = load_config()
        context = require_context(config)
        status = check_token(context.state.auth_token)
        if status == TokenStatus.EXPIRED and refresh:
            updater = TokenUpdater(_netrc(), _handler_factory(_prompt()))
            updater.update_token(context)
            save_config(config)
            status = check_token(context.state.auth_token)
            info("Token refreshed from the netrc file.")
    except CfloginError as exc:
        raise _exit_with(exc) from None

    auth = context.state.auth
    print_record(
        {
            "context": context.name,
            "backend": context.backend.value,
            "server": context.platform.server,
            "user": context.credential.username,
            "environment": auth.account.id if auth and auth.account else None,
            "token": status.value,
        }
    )
    if status in (TokenStatus.MISSING, TokenStatus.EXPIRED):
        suggest("Run `cflogin auth login` to log in again.")
