"""cflogin -- token acquisition for a command-line client.

Resolves credentials from environment variables, a netrc file or an
interactive prompt, runs the single-sign-on flow (OAuth2 Authorization Code
with PKCE) when required, and exchanges the result for a bearer token against
either the cloud control plane or an on-premises metadata service.
"""

__version__ = "0.1.0"
