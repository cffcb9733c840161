"""Meta Marketing API client - read-only wrapper over the Graph API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..oauth.client import GRAPH_API_VERSION
from ..oauth.storage import Profile

logger = logging.getLogger(__name__)

GRAPH_API_BASE = f"https://graph.facebook.com/{GRAPH_API_VERSION}"

# Graph API error code for an invalid or expired access token
INVALID_TOKEN_CODE = 190

ACCOUNT_LIST_FIELDS = "id,name,account_status,currency,timezone_name,balance"
ACCOUNT_FIELDS = f"{ACCOUNT_LIST_FIELDS},amount_spent,spend_cap"
CAMPAIGN_LIST_FIELDS = (
    "id,name,status,objective,daily_budget,lifetime_budget,"
    "start_time,stop_time,created_time,updated_time"
)
CAMPAIGN_FIELDS = f"{CAMPAIGN_LIST_FIELDS},bid_strategy,budget_remaining"
INSIGHT_FIELDS = "impressions,clicks,spend,ctr,cpc,cpm,reach,frequency,actions,conversions"
ACCOUNT_INSIGHT_FIELDS = f"{INSIGHT_FIELDS},cost_per_action_type"
AD_SET_LIST_FIELDS = (
    "id,name,status,daily_budget,lifetime_budget,billing_event,"
    "optimization_goal,targeting,start_time,end_time"
)
AD_SET_FIELDS = (
    "id,name,status,daily_budget,lifetime_budget,billing_event,optimization_goal,"
    "bid_amount,targeting,start_time,end_time,created_time,updated_time"
)
AD_LIST_FIELDS = "id,name,status,creative,created_time,updated_time"
AD_FIELDS = "id,name,status,creative,effective_status,tracking_specs,created_time,updated_time"


class MetaAPIError(Exception):
    """Base exception for Graph API errors."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class MetaAuthError(MetaAPIError):
    """Authentication error."""

    pass


class NotAuthenticatedError(MetaAuthError):
    """The profile has no access token yet."""

    def __init__(self, message: str = "Not authenticated. Run 'meta-ads auth' first."):
        super().__init__(message)


class MetaAdsClient:
    """Meta Marketing API client.

    Usage:
        async with MetaAdsClient.from_profile(profile) as api:
            accounts = await api.get_ad_accounts()
            campaigns = await api.get_campaigns("act_123")
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = GRAPH_API_BASE,
        timeout: float = 30.0,
    ):
        if not access_token:
            raise NotAuthenticatedError()

        self.access_token = access_token
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            params={"access_token": access_token},
            timeout=timeout,
        )

    @classmethod
    def from_profile(cls, profile: Profile, timeout: float = 30.0) -> "MetaAdsClient":
        """Create a client for a stored profile.

        Raises:
            NotAuthenticatedError: If the profile has no token
        """
        if not profile.access_token:
            raise NotAuthenticatedError()
        if profile.is_expired():
            logger.warning("Token for profile %s has expired", profile.name)
        return cls(profile.access_token, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a GET request with Graph API error handling."""
        logger.debug("GET %s %s", path, params or {})
        response = await self._client.get(path, params=params)

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {"raw_response": response.text[:500]}

            error = body.get("error") if isinstance(body, dict) else None
            if not isinstance(error, dict):
                error = {}
            message = error.get("message") or f"API error: {response.status_code}"

            if response.status_code == 401 or error.get("code") == INVALID_TOKEN_CODE:
                raise MetaAuthError(
                    f"{message}. Run 'meta-ads auth' to log in again.",
                    response.status_code,
                    body,
                )
            raise MetaAPIError(message, response.status_code, body)

        return response.json() if response.content else {}

    async def _get_list(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        return (await self._get(path, params)).get("data", [])

    # Me

    async def get_me(self) -> dict[str, Any]:
        return await self._get("/me", {"fields": "id,name,email"})

    # Ad accounts

    async def get_ad_accounts(self, limit: int = 50) -> list[dict[str, Any]]:
        """List ad accounts the token can access."""
        return await self._get_list(
            "/me/adaccounts", {"fields": ACCOUNT_LIST_FIELDS, "limit": limit}
        )

    async def get_ad_account(self, account_id: str) -> dict[str, Any]:
        return await self._get(f"/{account_id}", {"fields": ACCOUNT_FIELDS})

    async def get_account_insights(
        self, account_id: str, date_preset: str = "last_30d"
    ) -> dict[str, Any]:
        rows = await self._get_list(
            f"/{account_id}/insights",
            {"fields": ACCOUNT_INSIGHT_FIELDS, "date_preset": date_preset},
        )
        return rows[0] if rows else {}

    # Campaigns

    async def get_campaigns(self, account_id: str, limit: int = 50) -> list[dict[str, Any]]:
        """List campaigns of an ad account."""
        return await self._get_list(
            f"/{account_id}/campaigns", {"fields": CAMPAIGN_LIST_FIELDS, "limit": limit}
        )

    async def get_campaign(self, campaign_id: str) -> dict[str, Any]:
        return await self._get(f"/{campaign_id}", {"fields": CAMPAIGN_FIELDS})

    async def get_campaign_insights(
        self, campaign_id: str, date_preset: str = "last_30d"
    ) -> dict[str, Any]:
        """Aggregated insights for a campaign, or {} when there is no data."""
        rows = await self._get_list(
            f"/{campaign_id}/insights",
            {"fields": INSIGHT_FIELDS, "date_preset": date_preset},
        )
        return rows[0] if rows else {}

    # Ad sets

    async def get_ad_sets(self, campaign_id: str, limit: int = 50) -> list[dict[str, Any]]:
        return await self._get_list(
            f"/{campaign_id}/adsets", {"fields": AD_SET_LIST_FIELDS, "limit": limit}
        )

    async def get_ad_set(self, ad_set_id: str) -> dict[str, Any]:
        return await self._get(f"/{ad_set_id}", {"fields": AD_SET_FIELDS})

    # Ads

    async def get_ads(self, ad_set_id: str, limit: int = 50) -> list[dict[str, Any]]:
        return await self._get_list(
            f"/{ad_set_id}/ads", {"fields": AD_LIST_FIELDS, "limit": limit}
        )

    async def get_ad(self, ad_id: str) -> dict[str, Any]:
        return await self._get(f"/{ad_id}", {"fields": AD_FIELDS})

    # Debugging

    async def debug_token(self) -> dict[str, Any]:
        """Inspect the current access token (app, scopes, expiry)."""
        data = await self._get("/debug_token", {"input_token": self.access_token})
        return data.get("data", {})
