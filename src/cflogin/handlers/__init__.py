"""Token handlers: turn resolved credentials into a backend bearer token.

One strategy exists per :class:`~cflogin.models.BackendKind`;
:func:`create_token_handler` picks it from a small table.
"""

from cflogin.handlers.base import TokenHandler, TokenResult
from cflogin.handlers.cloud import CloudTokenHandler
from cflogin.handlers.onprem import OnPremTokenHandler
from cflogin.handlers.registry import create_token_handler

__all__ = [
    "CloudTokenHandler",
    "OnPremTokenHandler",
    "TokenHandler",
    "TokenResult",
    "create_token_handler",
]
