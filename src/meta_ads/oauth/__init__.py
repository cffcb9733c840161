"""OAuth module for Meta app authentication.

Provides the OAuth 2.0 Authorization Code flow with a local redirect
listener, the short-lived to long-lived token upgrade, and profile storage.

Usage:
    from meta_ads.oauth import CredentialStore, authenticate_profile

    with CredentialStore.open() as store:
        profile = await authenticate_profile(store, "default")
        # Long-lived token, valid for ~60 days
        token = profile.access_token
"""

from .errors import (
    OAuthError,
    ConfigurationError,
    PortInUseError,
    AuthorizationDeniedError,
    MissingCodeError,
    AuthorizationTimeoutError,
    ExchangeFailedError,
)
from .client import TokenExchanger, TokenResponse, build_authorization_url
from .storage import CredentialStore, Profile
from .server import AuthorizationAttempt, AttemptState, OAuthCallbackServer, launch_browser
from .session import authenticate_profile, finalize_session, logout_profile

__all__ = [
    "OAuthError",
    "ConfigurationError",
    "PortInUseError",
    "AuthorizationDeniedError",
    "MissingCodeError",
    "AuthorizationTimeoutError",
    "ExchangeFailedError",
    "TokenExchanger",
    "TokenResponse",
    "build_authorization_url",
    "CredentialStore",
    "Profile",
    "AuthorizationAttempt",
    "AttemptState",
    "OAuthCallbackServer",
    "launch_browser",
    "authenticate_profile",
    "finalize_session",
    "logout_profile",
]
