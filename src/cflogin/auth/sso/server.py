"""Loopback HTTP listener that receives the identity provider's redirect.

The server runs ``serve_forever`` on a background thread and serves a single
route. Each connection is handled on its own daemon thread with a read
timeout, so a client that connects and never sends a request cannot stall
the listener or its shutdown.

The first request to that route settles a one-shot
:class:`~concurrent.futures.Future` with either the authorization code or an
error. A :class:`threading.Timer` races the callback and settles the same
future with :class:`~cflogin.exceptions.AuthTimeoutError`. Settling is
guarded so that whichever side loses the race becomes a no-op.

Whatever the outcome, :meth:`CallbackServer.shutdown` stops the serving
thread and closes the listening socket before
:meth:`CallbackServer.await_authorization_code` returns.
"""

from __future__ import annotations

import html
import threading
from concurrent.futures import Future
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from cflogin.auth.sso.state import (
    CALLBACK_PATH,
    LOCAL_CALLBACK_HOST,
    LOCAL_CALLBACK_PORT,
    AuthFlowState,
)
from cflogin.exceptions import AuthError, AuthTimeoutError, StateMismatchError
from cflogin.output import debug

DEFAULT_TIMEOUT = 30.0
REQUEST_TIMEOUT = 5.0

TIMEOUT_MESSAGE = (
    "timed out while waiting for browser authentication to occur; "
    "please try logging in again"
)
STATE_MISMATCH_MESSAGE = (
    "authentication callback URL either did not contain a state parameter in "
    "query string, or the state parameter was invalid; login will fail"
)
MISSING_CODE_MESSAGE = (
    "authentication callback URL did not contain code parameter in query "
    "string; login will fail"
)

_SUCCESS_PAGE = "Authentication complete. You may close this window and return to the CLI."
_FAILURE_PAGE = "Authentication failed. Return to the CLI for details."


class CallbackServer:
    """One-shot receiver for the ``/cli_callback`` redirect.

    Args:
        state: The flow whose ``state_nonce`` the callback must echo. On
            success its ``authorization_code`` is filled in.
        host: Interface to bind.
        port: Port to bind. The provider only redirects to the registered
            port, so this is fixed outside of tests.
        path: The only path that is served.
        timeout: Seconds to wait for the callback.
    """

    def __init__(
        self,
        state: AuthFlowState,
        host: str = LOCAL_CALLBACK_HOST,
        port: int = LOCAL_CALLBACK_PORT,
        path: str = CALLBACK_PATH,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._state = state
        self._host = host
        self._port = port
        self._path = path
        self._timeout = timeout

        self._result: Future[str] = Future()
        self._signal_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False

        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._timer: Optional[threading.Timer] = None

    @property
    def address(self) -> tuple[str, int]:
        """The bound ``(host, port)``; meaningful once started."""
        if self._httpd is None:
            return self._host, self._port
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Bind the listener and start serving on a daemon thread.

        Raises:
            AuthError: If the port cannot be bound.
        """
        try:
            self._httpd = ThreadingHTTPServer((self._host, self._port), self._make_handler())
        except OSError as exc:
            raise AuthError(
                f"unable to start local callback server on {self._host}:{self._port}: {exc}"
            ) from exc
        # Idle connections must not keep shutdown waiting.
        self._httpd.daemon_threads = True
        self._thread = threading.Thread(
            target=self._httpd.serve_forever,
            name="cflogin-sso-callback",
            daemon=True,
        )
        self._thread.start()
        debug(f"Listening for SSO callback on http://{self._host}:{self.address[1]}{self._path}")

    def await_authorization_code(self) -> str:
        """Block until the callback arrives or the timeout fires.

        The listener is always shut down before this returns or raises.

        Raises:
            AuthTimeoutError: If no callback arrived in time.
            StateMismatchError: If the callback's ``state`` was wrong.
            AuthError: If the callback carried no ``code``.
        """
        if self._httpd is None:
            raise AuthError("callback server was not started")
        self._timer = threading.Timer(self._timeout, self._expire)
        self._timer.daemon = True
        self._timer.start()
        try:
            return self._result.result()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop serving and close the listener. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
            if self._httpd is not None:
                self._httpd.shutdown()
                self._httpd.server_close()
            if self._thread is not None:
                self._thread.join()
        debug("SSO callback server stopped")

    # ------------------------------------------------------------------ #
    # Signalling
    # ------------------------------------------------------------------ #

    def _settle(self, code: Optional[str] = None, exc: Optional[BaseException] = None) -> bool:
        """Settle the one-shot result. Returns False if it was already settled."""
        with self._signal_lock:
            if self._result.done():
                return False
            if exc is not None:
                self._result.set_exception(exc)
            else:
                self._state.authorization_code = code or ""
                self._result.set_result(code or "")
            return True

    def _expire(self) -> None:
        if self._settle(exc=AuthTimeoutError(TIMEOUT_MESSAGE)):
            debug(f"No SSO callback after {self._timeout:g}s")
        self.shutdown()

    def _handle_callback(self, query: str) -> bool:
        """Validate the callback query and settle the result. Returns True on success."""
        params = parse_qs(query)
        state = params.get("state", [""])[0]
        code = params.get("code", [""])[0]

        if not self._state.matches_state(state):
            self._settle(exc=StateMismatchError(STATE_MISMATCH_MESSAGE))
            return False
        if "error" in params:
            description = params.get("error_description", [""])[0]
            debug(f"Identity provider error: {params['error'][0]} {description}")
            self._settle(exc=AuthError(f"identity provider returned an error: {params['error'][0]}"))
            return False
        if not code:
            self._settle(exc=AuthError(MISSING_CODE_MESSAGE))
            return False
        return self._settle(code=code)

    def _make_handler(self) -> type[BaseHTTPRequestHandler]:
        server = self

        class CallbackHandler(BaseHTTPRequestHandler):
            timeout = REQUEST_TIMEOUT

            def do_GET(self) -> None:
                parsed = urlparse(self.path)
                if parsed.path != server._path:
                    self._write_page(404, "Not found.")
                    return
                ok = server._handle_callback(parsed.query)
                self._write_page(200, _SUCCESS_PAGE if ok else _FAILURE_PAGE)

            def _write_page(self, status: int, body: str) -> None:
                payload = f"<html><body><h2>{html.escape(body)}</h2></body></html>".encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, format: str, *args: Any) -> None:
                # Suppress default logging
                pass

        return CallbackHandler
