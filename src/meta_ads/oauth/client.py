"""OAuth client for Meta (Facebook) apps.

Handles the token side of the Authorization Code flow:
1. Build the authorization URL for the login dialog
2. Exchange the authorization code for a short-lived token
3. Exchange the short-lived token for a long-lived token

Meta issues no refresh tokens; a long-lived token is simply replaced by
logging in again once it expires.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from .errors import ExchangeFailedError

logger = logging.getLogger(__name__)

GRAPH_API_VERSION = "v21.0"

# Meta OAuth endpoints
META_AUTH_URL = f"https://www.facebook.com/{GRAPH_API_VERSION}/dialog/oauth"
META_TOKEN_URL = f"https://graph.facebook.com/{GRAPH_API_VERSION}/oauth/access_token"

# Must match the redirect registered for the app in the Meta developer console
CALLBACK_PORT = 3000
CALLBACK_PATH = "/oauth/callback"
REDIRECT_URI = f"http://localhost:{CALLBACK_PORT}{CALLBACK_PATH}"

SCOPES = ("ads_management", "ads_read", "business_management")

# Used when the token endpoint omits expires_in (~60 days)
DEFAULT_EXPIRES_IN = 5183944


def build_authorization_url(client_id: str) -> str:
    """Build the Meta login dialog URL for ``client_id``."""
    params = {
        "client_id": client_id,
        "redirect_uri": REDIRECT_URI,
        "scope": ",".join(SCOPES),
        "response_type": "code",
    }
    return f"{META_AUTH_URL}?{urlencode(params)}"


@dataclass
class TokenResponse:
    """Token returned from the Meta token endpoint."""

    access_token: str
    expires_in: int  # seconds
    token_type: str = "bearer"

    @property
    def expires_in_days(self) -> int:
        return round(self.expires_in / 86400)


class TokenExchanger:
    """Performs the two token calls of the login flow.

    Usage:
        exchanger = TokenExchanger(client_id="123", client_secret="s3cret")

        short = await exchanger.exchange_code(code)
        long = await exchanger.get_long_lived_token(short.access_token)

        # or both in order
        long = await exchanger.exchange(code)

    Neither call retries; both are safe for the caller to repeat.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str = REDIRECT_URI,
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    async def exchange_code(self, code: str) -> TokenResponse:
        """Exchange an authorization code for a short-lived token.

        Raises:
            ExchangeFailedError: If Meta rejects the code
        """
        logger.debug("Exchanging authorization code for short-lived token")
        return await self._request_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "code": code,
            },
            failure="Failed to exchange code for token",
        )

    async def get_long_lived_token(self, short_lived_token: str) -> TokenResponse:
        """Upgrade a short-lived token to a long-lived one.

        Raises:
            ExchangeFailedError: If Meta rejects the token
        """
        logger.debug("Exchanging short-lived token for long-lived token")
        return await self._request_token(
            {
                "grant_type": "fb_exchange_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "fb_exchange_token": short_lived_token,
            },
            failure="Failed to get long-lived token",
        )

    async def exchange(self, code: str) -> TokenResponse:
        """Run the code exchange followed by the long-lived upgrade."""
        short = await self.exchange_code(code)
        return await self.get_long_lived_token(short.access_token)

    async def _request_token(self, params: dict[str, str], failure: str) -> TokenResponse:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(META_TOKEN_URL, params=params)

        body = response.text
        if not 200 <= response.status_code < 300:
            logger.warning("%s: HTTP %s", failure, response.status_code)
            raise ExchangeFailedError(
                f"{failure}: {body}",
                response_body=body,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise ExchangeFailedError(
                f"{failure}: response is not JSON",
                response_body=body,
                status_code=response.status_code,
            )

        return _parse_token_response(data, body, failure)


def _parse_token_response(data: Any, body: str, failure: str) -> TokenResponse:
    """Parse a token response from Meta.

    Raises:
        ExchangeFailedError: If access_token is missing or expires_in is not a number
    """
    if not isinstance(data, dict) or not data.get("access_token"):
        raise ExchangeFailedError(f"{failure}: missing access_token", response_body=body)

    # TODO: confirm against current Graph API docs whether expires_in can be omitted
    try:
        expires_in = int(data.get("expires_in") or DEFAULT_EXPIRES_IN)
    except (TypeError, ValueError):
        raise ExchangeFailedError(f"{failure}: invalid expires_in", response_body=body)

    return TokenResponse(
        access_token=data["access_token"],
        expires_in=expires_in,
        token_type=data.get("token_type", "bearer"),
    )
