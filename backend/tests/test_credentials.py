"""Tests for the supplier credential providers."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import httpx
import pytest

from storefront.core.exceptions import SupplierAuthError
from storefront.suppliers.credentials import (
    ConfigStoreCredentialProvider,
    OAuthClientCredentialsProvider,
    StaticCredentialProvider,
    clean_stored_string,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeConfigStore:
    """Stand-in for ConfigService.get_value that counts lookups."""

    def __init__(self, values: Dict[str, Any]):
        self.values = values
        self.lookups: List[str] = []

    async def get_value(self, key: str, default: Any = None) -> Any:
        self.lookups.append(key)
        return self.values.get(key, default)


def config_provider(store: FakeConfigStore) -> ConfigStoreCredentialProvider:
    return ConfigStoreCredentialProvider(
        supplier="syscom",
        config_service=store,
        token_key="syscom_api_token",
        expires_key="syscom_token_expires_at",
        now=lambda: NOW,
    )


class TestCleanStoredString:

    @pytest.mark.parametrize(
        "value,expected",
        [
            ('"abc"', "abc"),
            ('\\"abc\\"', "abc"),
            ("  abc  ", "abc"),
            (None, ""),
            ("", ""),
        ],
    )
    def test_strips_quotes_and_whitespace(self, value, expected):
        assert clean_stored_string(value) == expected


class TestStaticCredentialProvider:

    async def test_returns_token(self):
        assert await StaticCredentialProvider("tecnosinergia", "key").get_token() == "key"

    async def test_empty_token_raises(self):
        with pytest.raises(SupplierAuthError):
            await StaticCredentialProvider("tecnosinergia", "  ").get_token()


class TestConfigStoreCredentialProvider:

    async def test_reads_and_caches_token(self):
        store = FakeConfigStore({
            "syscom_api_token": '"stored-token"',
            "syscom_token_expires_at": (NOW + timedelta(days=200)).isoformat(),
        })
        provider = config_provider(store)

        assert await provider.get_token() == "stored-token"
        assert await provider.get_token() == "stored-token"
        assert store.lookups.count("syscom_api_token") == 1

    async def test_invalidate_forces_reload(self):
        store = FakeConfigStore({
            "syscom_api_token": "stored-token",
            "syscom_token_expires_at": "2027-06-01T00:00:00Z",
        })
        provider = config_provider(store)

        await provider.get_token()
        provider.invalidate()
        await provider.get_token()

        assert store.lookups.count("syscom_api_token") == 2

    async def test_expired_token_raises(self):
        store = FakeConfigStore({
            "syscom_api_token": "stored-token",
            "syscom_token_expires_at": (NOW - timedelta(days=1)).isoformat(),
        })

        with pytest.raises(SupplierAuthError, match="expired"):
            await config_provider(store).get_token()

    async def test_missing_token_raises(self):
        store = FakeConfigStore({"syscom_token_expires_at": "2027-06-01T00:00:00Z"})

        with pytest.raises(SupplierAuthError):
            await config_provider(store).get_token()

    async def test_invalid_expiry_raises(self):
        store = FakeConfigStore({
            "syscom_api_token": "stored-token",
            "syscom_token_expires_at": "next tuesday",
        })

        with pytest.raises(SupplierAuthError, match="invalid token expiry"):
            await config_provider(store).get_token()

    async def test_naive_expiry_is_treated_as_utc(self):
        store = FakeConfigStore({
            "syscom_api_token": "stored-token",
            "syscom_token_expires_at": "2026-11-01T00:00:00",
        })

        assert await config_provider(store).get_token() == "stored-token"


class TestOAuthClientCredentialsProvider:

    def make_provider(self, handler, now) -> OAuthClientCredentialsProvider:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return OAuthClientCredentialsProvider(
            supplier="syscom",
            http_client=client,
            token_url="https://syscom.test/oauth/token",
            client_id="client",
            client_secret="secret",
            refresh_margin_seconds=300,
            now=now,
        )

    async def test_requests_and_caches_token(self):
        requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"access_token": "oauth-token", "expires_in": 3600})

        provider = self.make_provider(handler, now=lambda: NOW)

        assert await provider.get_token() == "oauth-token"
        assert await provider.get_token() == "oauth-token"
        assert len(requests) == 1
        assert b"grant_type=client_credentials" in requests[0].content

    async def test_refreshes_before_expiry(self):
        clock = {"now": NOW}
        tokens = iter(["first", "second"])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"access_token": next(tokens), "expires_in": 3600})

        provider = self.make_provider(handler, now=lambda: clock["now"])

        assert await provider.get_token() == "first"
        # Inside the refresh margin
        clock["now"] = NOW + timedelta(seconds=3400)
        assert await provider.get_token() == "second"

    async def test_rejected_grant_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_client"})

        provider = self.make_provider(handler, now=lambda: NOW)

        with pytest.raises(SupplierAuthError, match="HTTP 400"):
            await provider.get_token()

    async def test_transport_failure_is_not_an_auth_error(self):
        attempts: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("name resolution failed", request=request)

        provider = self.make_provider(handler, now=lambda: NOW)

        with pytest.raises(httpx.TransportError):
            await provider.get_token()
        assert len(attempts) == 1

    async def test_malformed_token_body_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token_type": "bearer"})

        provider = self.make_provider(handler, now=lambda: NOW)

        with pytest.raises(SupplierAuthError, match="no access_token"):
            await provider.get_token()

    async def test_missing_client_credentials_raise(self):
        provider = OAuthClientCredentialsProvider(
            supplier="syscom",
            http_client=httpx.AsyncClient(),
            token_url="https://syscom.test/oauth/token",
            client_id="",
            client_secret="",
        )

        with pytest.raises(SupplierAuthError):
            await provider.get_token()
