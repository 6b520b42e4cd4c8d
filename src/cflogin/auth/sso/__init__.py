"""Single sign-on: OAuth2 Authorization Code with PKCE."""

from cflogin.auth.sso.flow import SSOFlow, SSOTokens
from cflogin.auth.sso.state import AuthFlowState, provider_for_url

__all__ = ["AuthFlowState", "SSOFlow", "SSOTokens", "provider_for_url"]
