"""Session updates on the active login context.

* :func:`apply_login` records a freshly resolved token in the context for
  the user and server, creating the context on first login and making it
  current.
* :func:`logout` clears the token and identity of the current context. The
  netrc file is left alone.
* :func:`check_token` inspects a bearer token's ``exp`` claim.
* :class:`TokenUpdater` re-derives an expired token from the credentials
  saved in netrc for that exact context, without prompting.
"""

from __future__ import annotations

import enum
import time
from pathlib import Path
from typing import Callable, Optional, Union

import jwt

from cflogin.auth.netrc import NetrcHandler
from cflogin.auth.resolver import credentials_from_machine
from cflogin.config import context_name_for, credential_name_for, platform_name_for
from cflogin.exceptions import NotFoundError
from cflogin.handlers.base import TokenHandler, TokenResult
from cflogin.models import (
    AuthInfo,
    BackendKind,
    Context,
    ContextState,
    Credential,
    GlobalConfig,
    Platform,
)
from cflogin.output import debug


class TokenStatus(str, enum.Enum):
    VALID = "valid"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    MISSING = "missing"


def check_token(token: str, now: Optional[float] = None) -> TokenStatus:
    """Classify *token* by its ``exp`` claim.

    The signature is not verified; the CLI holds no key to verify it with and
    only needs to know whether to refresh.
    """
    if not token:
        return TokenStatus.MISSING
    try:
        claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.PyJWTError as exc:
        debug(f"Token is not a valid JWT: {exc}")
        return TokenStatus.MALFORMED
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return TokenStatus.MALFORMED
    current = time.time() if now is None else now
    return TokenStatus.VALID if exp > current else TokenStatus.EXPIRED


def apply_login(
    config: GlobalConfig,
    backend: BackendKind,
    url: str,
    result: TokenResult,
    auth_info: Optional[AuthInfo] = None,
    ca_cert_path: Optional[str] = None,
) -> Context:
    """Store *result* in the context for its user and *url* and make it current.

    For cloud logins *auth_info* must list at least one environment. The
    previously selected environment is kept when it is still available,
    otherwise the first one is selected.

    Raises:
        NotFoundError: If a cloud user has no environments.
    """
    username = result.credentials.username
    name = context_name_for(username, url)
    existing = config.contexts.get(name)

    if backend == BackendKind.CLOUD:
        if auth_info is None or not auth_info.accounts:
            raise NotFoundError("no environment found for authenticated user")
        previous = existing.state.auth.account if existing and existing.state.auth else None
        ids = {account.id for account in auth_info.accounts}
        if previous is not None and previous.id in ids:
            auth_info.account = next(a for a in auth_info.accounts if a.id == previous.id)
        else:
            auth_info.account = auth_info.accounts[0]

    context = Context(
        name=name,
        backend=backend,
        platform=Platform(
            name=platform_name_for(url),
            server=url,
            ca_cert_path=ca_cert_path,
        ),
        credential=Credential(name=credential_name_for(username), username=username),
        state=ContextState(auth_token=result.token, auth=auth_info),
    )
    config.contexts[name] = context
    config.current_context = name
    return context


def logout(config: GlobalConfig) -> Context:
    """Forget the token and identity of the current context.

    Raises:
        NotFoundError: If no context is current.
    """
    context = config.get_current_context()
    if context is None:
        raise NotFoundError("no context selected; nothing to log out of")
    context.state = ContextState()
    return context


HandlerFactory = Callable[[BackendKind, str, Optional[Union[str, Path]]], TokenHandler]


class TokenUpdater:
    """Refresh a context's token from its saved netrc credentials.

    Args:
        netrc: Store holding the saved credentials.
        handler_factory: Builds the handler for ``(backend, url, ca_cert_path)``.
    """

    def __init__(self, netrc: NetrcHandler, handler_factory: HandlerFactory) -> None:
        self._netrc = netrc
        self._handler_factory = handler_factory

    def update_token(self, context: Context) -> str:
        """Mint a new token for *context* and store it there.

        Cloud users whose organization uses SSO are refreshed through their
        saved refresh token; everyone else re-sends the saved password.

        Raises:
            NotFoundError: If netrc holds no credentials for this context.
        """
        handler = self._handler_factory(
            context.backend, context.platform.server, context.platform.ca_cert_path
        )
        is_sso = handler.is_sso_user(context.credential.username)
        machine = self._netrc.get_credentials(context.backend, is_sso, context.name)
        if machine is None:
            raise NotFoundError(
                f"login credentials for context '{context.name}' not found in netrc file "
                f"{self._netrc.path}"
            )

        credentials = credentials_from_machine(machine)
        if credentials is None:
            raise NotFoundError(f"netrc machine {machine.name} has no login or secret")

        result = handler.authenticate(credentials)
        context.state.auth_token = result.token
        debug(
            "Token successfully updated with "
            + ("refresh token." if machine.is_sso else "netrc file credentials.")
        )
        return result.token

    def ensure_valid(self, context: Context) -> bool:
        """Refresh *context*'s token if it has expired. Returns True if it was refreshed."""
        status = check_token(context.state.auth_token)
        if status != TokenStatus.EXPIRED:
            return False
        self.update_token(context)
        return True
