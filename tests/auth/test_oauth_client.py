"""Tests for the authorization URL and token exchange."""

from urllib.parse import parse_qs, urlparse

import pytest

from meta_ads.oauth.client import (
    DEFAULT_EXPIRES_IN,
    META_AUTH_URL,
    META_TOKEN_URL,
    REDIRECT_URI,
    TokenExchanger,
    TokenResponse,
    build_authorization_url,
)
from meta_ads.oauth.errors import ExchangeFailedError


class TestBuildAuthorizationUrl:
    """Tests for build_authorization_url."""

    @pytest.mark.parametrize("client_id", ["123", "987654321012345", "id with spaces&="])
    def test_exact_query_parameters(self, client_id):
        url = build_authorization_url(client_id)
        parsed = urlparse(url)

        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == META_AUTH_URL
        assert parse_qs(parsed.query) == {
            "client_id": [client_id],
            "redirect_uri": ["http://localhost:3000/oauth/callback"],
            "scope": ["ads_management,ads_read,business_management"],
            "response_type": ["code"],
        }

    def test_deterministic(self):
        assert build_authorization_url("123") == build_authorization_url("123")


class TestTokenResponse:
    def test_expires_in_days(self):
        assert TokenResponse(access_token="t", expires_in=5184000).expires_in_days == 60


class TestTokenExchanger:
    """Tests for TokenExchanger class."""

    @pytest.fixture
    def exchanger(self):
        return TokenExchanger(client_id="123", client_secret="s3cret")

    @pytest.mark.asyncio
    async def test_exchange_code_success(self, exchanger, token_endpoint, mock_response):
        """Should send the code with the app credentials and redirect URI."""
        with token_endpoint(mock_response({"access_token": "short", "expires_in": 3600})) as client:
            tokens = await exchanger.exchange_code("ABC")

        assert tokens.access_token == "short"
        assert tokens.expires_in == 3600

        args, kwargs = client.get.call_args
        assert args[0] == META_TOKEN_URL
        assert kwargs["params"] == {
            "client_id": "123",
            "client_secret": "s3cret",
            "redirect_uri": REDIRECT_URI,
            "code": "ABC",
        }

    @pytest.mark.asyncio
    async def test_exchange_code_failure_keeps_body(self, exchanger, token_endpoint, mock_response):
        """Should raise ExchangeFailedError with the raw response body."""
        body = '{"error": {"message": "Invalid verification code format.", "code": 100}}'
        with token_endpoint(mock_response({}, status_code=400, text=body)):
            with pytest.raises(ExchangeFailedError) as exc_info:
                await exchanger.exchange_code("bad")

        assert exc_info.value.response_body == body
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "exchange_failed"
        assert "Invalid verification code format" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_expires_in_uses_default(self, exchanger, token_endpoint, mock_response):
        with token_endpoint(mock_response({"access_token": "short"})):
            tokens = await exchanger.exchange_code("ABC")

        assert tokens.expires_in == DEFAULT_EXPIRES_IN == 5183944

    @pytest.mark.asyncio
    async def test_missing_access_token_fails(self, exchanger, token_endpoint, mock_response):
        with token_endpoint(mock_response({"token_type": "bearer"})):
            with pytest.raises(ExchangeFailedError) as exc_info:
                await exchanger.exchange_code("ABC")

        assert "access_token" in str(exc_info.value)
        assert exc_info.value.response_body == '{"token_type": "bearer"}'

    @pytest.mark.asyncio
    async def test_non_json_success_fails(self, exchanger, token_endpoint, mock_response):
        response = mock_response(None, text="<html>oops</html>")
        response.json.side_effect = ValueError("not json")

        with token_endpoint(response):
            with pytest.raises(ExchangeFailedError) as exc_info:
                await exchanger.exchange_code("ABC")

        assert exc_info.value.response_body == "<html>oops</html>"

    @pytest.mark.asyncio
    async def test_get_long_lived_token(self, exchanger, token_endpoint, mock_response):
        with token_endpoint(mock_response({"access_token": "long", "expires_in": 5184000})) as client:
            tokens = await exchanger.get_long_lived_token("short")

        assert tokens.access_token == "long"
        assert tokens.expires_in == 5184000
        assert client.get.call_args.kwargs["params"] == {
            "grant_type": "fb_exchange_token",
            "client_id": "123",
            "client_secret": "s3cret",
            "fb_exchange_token": "short",
        }

    @pytest.mark.asyncio
    async def test_get_long_lived_token_failure(self, exchanger, token_endpoint, mock_response):
        with token_endpoint(mock_response({}, status_code=500, text="upstream down")):
            with pytest.raises(ExchangeFailedError) as exc_info:
                await exchanger.get_long_lived_token("short")

        assert exc_info.value.response_body == "upstream down"
        assert "long-lived" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_exchange_runs_both_steps_in_order(self, exchanger, token_endpoint, mock_response):
        with token_endpoint(
            mock_response({"access_token": "short", "expires_in": 3600}),
            mock_response({"access_token": "long", "expires_in": 5184000}),
        ) as client:
            tokens = await exchanger.exchange("ABC")

        assert tokens.access_token == "long"
        first, second = client.get.call_args_list
        assert first.kwargs["params"]["code"] == "ABC"
        assert second.kwargs["params"]["fb_exchange_token"] == "short"

    @pytest.mark.asyncio
    async def test_exchange_stops_after_failed_code_exchange(
        self, exchanger, token_endpoint, mock_response
    ):
        with token_endpoint(mock_response({}, status_code=400, text="bad code")) as client:
            with pytest.raises(ExchangeFailedError):
                await exchanger.exchange("ABC")

        assert client.get.call_count == 1

    @pytest.mark.asyncio
    async def test_non_numeric_expires_in_fails(self, exchanger, token_endpoint, mock_response):
        with token_endpoint(mock_response({"access_token": "short", "expires_in": "soon"})):
            with pytest.raises(ExchangeFailedError) as exc_info:
                await exchanger.exchange_code("ABC")

        assert "expires_in" in str(exc_info.value)
        assert exc_info.value.response_body == '{"access_token": "short", "expires_in": "soon"}'
