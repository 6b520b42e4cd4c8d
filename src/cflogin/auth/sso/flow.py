"""Single sign-on with OAuth2 Authorization Code + PKCE.

:class:`SSOFlow` drives one sign-on attempt from start to finish:

1. Build a fresh :class:`~cflogin.auth.sso.state.AuthFlowState`.
2. Obtain the authorization code, either

   * **browser mode** -- start a :class:`~cflogin.auth.sso.server.CallbackServer`
     on loopback, open the system browser at the provider's authorize URL,
     and wait up to 30 seconds for the redirect; or
   * **no-browser mode** -- print the authorize URL and read back the
     ``{state}/{code}`` string the backend's callback page displays.

3. Exchange the code for an ID token and a refresh token.

:meth:`SSOFlow.refresh` skips steps 2 and 3 and trades a stored refresh
token for a new ID token.
"""

from __future__ import annotations

import webbrowser
from dataclasses import dataclass
from typing import Callable, Optional

from cflogin.auth.prompt import Prompt
from cflogin.auth.sso.server import DEFAULT_TIMEOUT, CallbackServer
from cflogin.auth.sso.state import LOCAL_CALLBACK_PORT, AuthFlowState
from cflogin.exceptions import AuthError, MalformedInputError, StateMismatchError
from cflogin.output import debug, info

PASTE_INSTRUCTIONS = (
    "Navigate to the following link in your browser to authenticate:\n"
    "{url}\n"
    "\n"
    "After authenticating in your browser, paste the code here:"
)


@dataclass(frozen=True)
class SSOTokens:
    """Result of a completed sign-on: the provider's ID token and refresh token."""

    id_token: str
    refresh_token: str


class SSOFlow:
    """Run the sign-on flow against the identity provider for a backend URL.

    Args:
        prompt: Terminal used in no-browser mode.
        open_browser: Opens a URL, returning False when no browser is available.
        callback_port: Loopback port for browser mode.
        timeout: Seconds to wait for the browser redirect.
    """

    def __init__(
        self,
        prompt: Prompt,
        open_browser: Callable[[str], bool] = webbrowser.open,
        callback_port: int = LOCAL_CALLBACK_PORT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._prompt = prompt
        self._open_browser = open_browser
        self._callback_port = callback_port
        self._timeout = timeout

    def login(
        self,
        auth_url: str,
        no_browser: bool = False,
        connection_name: Optional[str] = None,
    ) -> SSOTokens:
        """Sign in interactively and return the minted tokens.

        Args:
            auth_url: The backend URL; selects the identity provider.
            no_browser: Use the copy/paste exchange instead of a local listener.
            connection_name: Provider connection (the user's organization
                identity provider) to preselect on the login page.

        Raises:
            AuthTimeoutError: Browser mode, no redirect within the timeout.
            StateMismatchError: The echoed state did not match.
            MalformedInputError: Pasted input was not ``state/code``, or the
                token response lacked ``id_token``.
            AuthError: Any other rejection by the provider.
        """
        state = AuthFlowState.for_url(auth_url, no_browser, self._callback_port)
        url = state.authorization_url(connection_name)
        debug(f"Using identity provider {state.provider.name} ({state.provider.host})")

        if no_browser:
            self._read_pasted_code(state, url)
        else:
            self._await_browser_code(state, url)

        state.exchange_code()
        return SSOTokens(id_token=state.id_token, refresh_token=state.refresh_token)

    def refresh(self, auth_url: str, refresh_token: str) -> SSOTokens:
        """Trade *refresh_token* for a new ID token without user interaction."""
        state = AuthFlowState.for_url(auth_url, no_browser=False, callback_port=self._callback_port)
        state.refresh(refresh_token)
        return SSOTokens(id_token=state.id_token, refresh_token=state.refresh_token)

    def _await_browser_code(self, state: AuthFlowState, url: str) -> None:
        server = CallbackServer(state, port=self._callback_port, timeout=self._timeout)
        server.start()
        try:
            info("Opening your browser to complete sign-on...")
            if not self._open_browser(url):
                raise AuthError("unable to open web browser for authorization")
        except BaseException:
            server.shutdown()
            raise
        server.await_authorization_code()

    def _read_pasted_code(self, state: AuthFlowState, url: str) -> None:
        self._prompt.show(PASTE_INSTRUCTIONS.format(url=url))
        pasted = self._prompt.read_line("Code").strip()
        parts = pasted.split("/", 1)
        if len(parts) < 2:
            raise MalformedInputError("Pasted input had invalid format")
        echoed_state, code = parts
        if not state.matches_state(echoed_state):
            raise StateMismatchError(
                "authentication code either did not contain a state parameter or "
                "the state parameter was invalid; login will fail"
            )
        state.authorization_code = code
