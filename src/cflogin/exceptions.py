"""Exception hierarchy for cflogin.

All exceptions inherit from :class:`CfloginError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`cflogin.exit_codes`.
The top-level error handler in :func:`cflogin.app.main` catches
``CfloginError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    CfloginError (exit 1)
    +-- InvalidUsageError           (exit 2)
    +-- ConfigError                 (exit 1)
    |   +-- NetrcError              (exit 1)
    +-- AuthError                   (exit 3)
    |   +-- StateMismatchError      (exit 3)
    +-- NotFoundError               (exit 4)
    |   +-- NoCredentialsFoundError (exit 4)
    +-- ServerError                 (exit 5)
    +-- ConnectionError_            (exit 6)
    +-- AuthTimeoutError            (exit 8)
    +-- MalformedInputError         (exit 9)
"""

from cflogin.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_MALFORMED_INPUT,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_TIMEOUT,
)


class CfloginError(Exception):
    """Base exception for all cflogin errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`cflogin.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CfloginError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(CfloginError):
    """Raised for configuration problems (bad config JSON, unreadable CA certificate, unknown auth URL)."""

    exit_code = EXIT_GENERIC_FAILURE


class NetrcError(ConfigError):
    """Raised when the netrc file cannot be resolved, read, parsed or written."""


class AuthError(CfloginError):
    """Raised when authentication fails (rejected credentials, provider error, bad code)."""

    exit_code = EXIT_AUTH_FAILURE


class StateMismatchError(AuthError):
    """Raised when the state echoed back by the identity provider is missing or wrong.

    Kept distinct from :class:`AuthTimeoutError` so the user sees a
    security-relevant message instead of a generic timeout.
    """


class NotFoundError(CfloginError):
    """Raised when a credential source has nothing to offer, or a context is unknown."""

    exit_code = EXIT_NOT_FOUND


class NoCredentialsFoundError(NotFoundError):
    """Raised by the resolver once every credential source came back empty."""


class ServerError(CfloginError):
    """Raised when a backend returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(CfloginError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class AuthTimeoutError(CfloginError):
    """Raised when the browser callback is not received within the allowed window."""

    exit_code = EXIT_TIMEOUT


class MalformedInputError(CfloginError):
    """Raised for pasted input or provider responses that lack the expected shape."""

    exit_code = EXIT_MALFORMED_INPUT
