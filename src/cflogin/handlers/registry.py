"""Strategy table mapping each backend kind to its token handler."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Union

from cflogin.auth.prompt import Prompt
from cflogin.auth.sso.flow import SSOFlow
from cflogin.handlers.base import TokenHandler
from cflogin.handlers.cloud import CloudTokenHandler
from cflogin.handlers.onprem import OnPremTokenHandler
from cflogin.models import BackendKind


def _cloud(
    url: str, prompt: Prompt, no_browser: bool, ca_cert_path: Optional[Union[str, Path]]
) -> TokenHandler:
    return CloudTokenHandler(url, SSOFlow(prompt), no_browser=no_browser)


def _onprem(
    url: str, prompt: Prompt, no_browser: bool, ca_cert_path: Optional[Union[str, Path]]
) -> TokenHandler:
    return OnPremTokenHandler(url, ca_cert_path=ca_cert_path)


_HANDLERS: dict[BackendKind, Callable[..., TokenHandler]] = {
    BackendKind.CLOUD: _cloud,
    BackendKind.ONPREM: _onprem,
}


def create_token_handler(
    backend: BackendKind,
    url: str,
    prompt: Prompt,
    no_browser: bool = False,
    ca_cert_path: Optional[Union[str, Path]] = None,
) -> TokenHandler:
    """Build the token handler for *backend* talking to *url*."""
    return _HANDLERS[backend](url, prompt, no_browser, ca_cert_path)
