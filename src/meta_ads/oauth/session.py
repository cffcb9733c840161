"""Login and logout for stored profiles.

The full login is:
1. Look up the profile and its app credentials
2. Capture an authorization code via the browser (see server.py)
3. Exchange it for a short-lived token, then a long-lived one
4. Write the token and its expiry back to the store

Nothing is written to the store unless every step succeeds.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from .client import CALLBACK_PORT, TokenExchanger, TokenResponse
from .errors import ConfigurationError
from .server import AUTH_TIMEOUT_SECONDS, wait_for_authorization_code
from .storage import CredentialStore, Profile, now_ms

logger = logging.getLogger(__name__)


def resolve_profile(store: CredentialStore, name: str | None = None) -> Profile:
    """Fetch a profile that is ready to authenticate.

    Raises:
        ConfigurationError: If the profile is missing or lacks credentials
    """
    profile = store.get(name)
    if not profile:
        raise ConfigurationError(
            f"Profile \"{name}\" not found. Run 'meta-ads setup' first."
            if name
            else "No profile configured. Run 'meta-ads setup' first."
        )
    if not profile.client_id or not profile.client_secret:
        raise ConfigurationError(
            f"Profile \"{profile.name}\" is missing its App ID or App Secret. "
            "Run 'meta-ads setup' again."
        )
    return profile


def finalize_session(
    store: CredentialStore,
    profile: Profile,
    tokens: TokenResponse,
    issued_at_ms: int | None = None,
) -> Profile:
    """Stamp the token and its expiry onto ``profile`` and save it."""
    issued_at = now_ms() if issued_at_ms is None else issued_at_ms
    profile.set_token(tokens.access_token, issued_at + tokens.expires_in * 1000)
    store.save(profile)
    logger.info("Stored new token for profile %s", profile.name)
    return profile


async def authenticate_profile(
    store: CredentialStore,
    name: str | None = None,
    *,
    port: int = CALLBACK_PORT,
    timeout: float = AUTH_TIMEOUT_SECONDS,
    open_browser: bool = True,
    http_timeout: float = 30.0,
    clock: Callable[[], float] = time.monotonic,
    wall_clock: Callable[[], int] = now_ms,
    on_url: Callable[[str], None] | None = None,
    on_browser_failed: Callable[[], None] | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> Profile:
    """Run the complete login for a profile.

    Args:
        store: Open credential store
        name: Profile name (active profile when omitted)
        port: Callback server port
        timeout: Max seconds to wait for the browser redirect
        open_browser: Whether to auto-open the browser
        http_timeout: Timeout for each token request
        clock: Monotonic clock for the redirect deadline
        wall_clock: Milliseconds-since-epoch clock for the token expiry
        on_url: Receives the authorization URL to show the user
        on_browser_failed: Called if the browser could not be opened
        on_progress: Receives a short description of each step

    Returns:
        The saved profile with its new token

    Raises:
        OAuthError: Any subclass, if a step fails
    """
    profile = resolve_profile(store, name)
    logger.info("Authenticating profile %s", profile.name)

    code = await wait_for_authorization_code(
        profile.client_id,
        port=port,
        timeout=timeout,
        open_browser=open_browser,
        clock=clock,
        on_url=on_url,
        on_browser_failed=on_browser_failed,
    )
    captured_at = wall_clock()

    exchanger = TokenExchanger(profile.client_id, profile.client_secret, timeout=http_timeout)

    if on_progress:
        on_progress("Exchanging authorization code for access token...")
    short = await exchanger.exchange_code(code)

    if on_progress:
        on_progress("Getting long-lived access token...")
    tokens = await exchanger.get_long_lived_token(short.access_token)

    return finalize_session(store, profile, tokens, issued_at_ms=captured_at)


def logout_profile(store: CredentialStore, name: str | None = None) -> Profile:
    """Forget the token of a profile, keeping its app credentials.

    Raises:
        ConfigurationError: If the profile does not exist
    """
    profile = store.get(name)
    if not profile:
        raise ConfigurationError(
            f'Profile "{name}" not found.' if name else "No active profile found."
        )

    profile.clear_token()
    store.save(profile)
    logger.info("Cleared token for profile %s", profile.name)
    return profile
