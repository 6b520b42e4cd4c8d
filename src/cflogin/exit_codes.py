"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cflogin.exceptions.CfloginError` subclass.
Shell wrappers can inspect the exit code to tell a rejected password from a
network failure without parsing stderr.

Example::

    $ cflogin auth login --url https://confluent.cloud
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- credentials were rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred, or the configuration is unusable."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed (bad credentials, rejected code or state)."""

EXIT_NOT_FOUND = 4
"""No credentials or no matching resource could be located."""

EXIT_SERVER_ERROR = 5
"""The remote backend returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_TIMEOUT = 8
"""The browser sign-on callback did not arrive in time."""

EXIT_MALFORMED_INPUT = 9
"""Pasted input or a provider response did not have the expected shape."""

EXIT_CANCELLED = 130
"""The user interrupted the command (Ctrl-C)."""
