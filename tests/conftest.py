"""Shared test fixtures for Meta Ads CLI test suite."""

import json
import socket
import time
from contextlib import contextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from meta_ads.oauth.storage import CredentialStore, Profile

# Sample values used across tests
SAMPLE_PROFILE_NAME = "default"
SAMPLE_CLIENT_ID = "123"
SAMPLE_CLIENT_SECRET = "s3cret"
SAMPLE_ACCOUNT_ID = "act_1234567890"
SAMPLE_CAMPAIGN_ID = "120200000000001"
SAMPLE_AD_SET_ID = "120200000000002"


# ============================================================================
# Mock Response Data
# ============================================================================

MOCK_AD_ACCOUNT = {
    "id": SAMPLE_ACCOUNT_ID,
    "name": "Test Account",
    "account_status": 1,
    "currency": "USD",
    "timezone_name": "America/New_York",
    "balance": "1234",
    "amount_spent": "500000",
    "spend_cap": "",
}

MOCK_CAMPAIGN = {
    "id": SAMPLE_CAMPAIGN_ID,
    "name": "Spring Sale",
    "status": "ACTIVE",
    "objective": "OUTCOME_SALES",
    "daily_budget": "5000",
    "start_time": "2024-03-01T10:00:00+0000",
}

MOCK_AD_SET = {
    "id": SAMPLE_AD_SET_ID,
    "name": "Lookalike US",
    "status": "PAUSED",
    "optimization_goal": "OFFSITE_CONVERSIONS",
    "daily_budget": "2500",
}

MOCK_INSIGHTS = {
    "impressions": "12500",
    "clicks": "340",
    "spend": "215.75",
    "ctr": "2.72",
    "cpc": "0.63",
    "cpm": "17.26",
}


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def store(tmp_path):
    """Open a CredentialStore in a temporary directory."""
    with CredentialStore.open(tmp_path) as s:
        yield s


@pytest.fixture
def profile():
    """Profile with app credentials only."""
    return Profile(
        name=SAMPLE_PROFILE_NAME,
        client_id=SAMPLE_CLIENT_ID,
        client_secret=SAMPLE_CLIENT_SECRET,
    )


@pytest.fixture
def saved_profile(store, profile):
    store.save(profile)
    return store.get(profile.name)


@pytest.fixture
def free_port():
    """A loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def mock_response():
    """Factory fixture to create mock HTTP responses."""
    def _create_response(data: Any, status_code: int = 200, text: str | None = None):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = data
        response.text = text if text is not None else json.dumps(data)
        response.content = response.text.encode()
        return response
    return _create_response


@pytest.fixture
def token_endpoint():
    """Patch httpx.AsyncClient so token requests return canned responses in order."""
    @contextmanager
    def _patch(*responses):
        with patch("httpx.AsyncClient") as MockAsyncClient:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(side_effect=list(responses))
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            MockAsyncClient.return_value = mock_client
            yield mock_client
    return _patch


@pytest.fixture
def mock_http_client():
    """Create a mock httpx.AsyncClient for the Graph API client."""
    client = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


# ============================================================================
# Helpers
# ============================================================================

def deliver_redirect(port: int, query: str = "", path: str = "/oauth/callback") -> httpx.Response:
    """Play the browser: hit the callback URL once the listener accepts connections."""
    url = f"http://127.0.0.1:{port}{path}"
    if query:
        url = f"{url}?{query}"

    for _ in range(200):
        try:
            return httpx.get(url, timeout=5.0, trust_env=False)
        except httpx.ConnectError:
            time.sleep(0.025)
    raise AssertionError(f"Callback listener on port {port} never came up")


def port_is_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind(("127.0.0.1", port))
        except OSError:
            return False
        return True


# ============================================================================
# CLI Testing Fixtures
# ============================================================================

@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_store_dir(tmp_path, monkeypatch):
    """Point the CLI at a temporary profile store."""
    monkeypatch.setenv("META_ADS_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("META_ADS_OPEN_BROWSER", "false")
    return tmp_path


@pytest.fixture
def cli_profile(cli_store_dir):
    """Store a profile where the CLI will find it."""
    with CredentialStore.open(cli_store_dir) as s:
        s.save(Profile(
            name=SAMPLE_PROFILE_NAME,
            client_id=SAMPLE_CLIENT_ID,
            client_secret=SAMPLE_CLIENT_SECRET,
            default_account_id=SAMPLE_ACCOUNT_ID,
        ))
    return cli_store_dir
