"""Meta Marketing API client module.

Usage:
    from meta_ads.api import MetaAdsClient

    async with MetaAdsClient.from_profile(profile) as api:
        accounts = await api.get_ad_accounts()
        campaign = await api.get_campaign("120200000000000")
"""

from .client import MetaAdsClient, MetaAPIError, MetaAuthError, NotAuthenticatedError

__all__ = ["MetaAdsClient", "MetaAPIError", "MetaAuthError", "NotAuthenticatedError"]
