"""Tests for authentication providers."""

import base64
import hashlib
import hmac
import time
from unittest.mock import AsyncMock

import pytest

from fulfillment_bridge.core.auth import (
    APIKeyAuth,
    BasicAuth,
    OAuth2ClientCredentials,
    SignedParamsAuth,
    TokenInfo,
    create_auth_provider,
    has_credentials,
)


class TestTokenInfo:
    def test_not_expired_when_zero(self):
        token = TokenInfo(access_token="abc", expires_at=0.0)
        assert not token.is_expired

    def test_expired_when_past(self):
        token = TokenInfo(access_token="abc", expires_at=1.0)
        assert token.is_expired

    def test_not_expired_when_future(self):
        token = TokenInfo(access_token="abc", expires_at=time.time() + 3600)
        assert not token.is_expired


class TestBasicAuth:
    @pytest.mark.asyncio
    async def test_acquire_token(self):
        auth = BasicAuth("user", "pass")
        token = await auth.acquire_token()
        assert token.token_type == "Basic"
        expected = base64.b64encode(b"user:pass").decode()
        assert token.access_token == expected

    @pytest.mark.asyncio
    async def test_auth_header(self):
        auth = BasicAuth("user", "pass")
        token = await auth.get_token()
        header = auth.auth_header(token)
        assert header["Authorization"].startswith("Basic ")


class TestAPIKeyAuth:
    @pytest.mark.asyncio
    async def test_bearer_by_default(self):
        auth = APIKeyAuth("pf-token")
        header = auth.auth_header(await auth.get_token())
        assert header == {"Authorization": "Bearer pf-token"}

    @pytest.mark.asyncio
    async def test_bare_key_header(self):
        auth = APIKeyAuth("shpat_123", header_name="X-Shopify-Access-Token", prefix="")
        header = auth.auth_header(await auth.get_token())
        assert header == {"X-Shopify-Access-Token": "shpat_123"}


class TestOAuth2ClientCredentials:
    @pytest.mark.asyncio
    async def test_acquire_and_cache(self):
        auth = OAuth2ClientCredentials("https://auth.example.com/token", "cid", "csecret", scope="orders")
        auth._post_token = AsyncMock(return_value={"access_token": "at-1", "expires_in": 3600})

        first = await auth.get_token()
        second = await auth.get_token()

        assert first is second
        assert first.access_token == "at-1"
        payload = auth._post_token.call_args.args[0]
        assert payload["grant_type"] == "client_credentials"
        assert payload["scope"] == "orders"
        auth._post_token.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_expired_token(self):
        auth = OAuth2ClientCredentials("https://auth.example.com/token", "cid", "csecret")
        auth._cached = TokenInfo(access_token="old", expires_at=1.0, refresh_token="rt-1")
        auth._post_token = AsyncMock(return_value={"access_token": "new", "expires_in": 60})

        token = await auth.get_token()

        assert token.access_token == "new"
        assert token.refresh_token == "rt-1"
        assert auth._post_token.call_args.args[0]["grant_type"] == "refresh_token"


class TestSignedParamsAuth:
    def test_signature_over_path_and_sorted_params(self):
        auth = SignedParamsAuth("app", "secret", "tok")
        expected = hmac.new(b"secret", b"param2/1/x/appa1b2", hashlib.sha1).hexdigest().upper()
        assert auth.sign("param2/1/x/app", {"b": "2", "a": "1"}) == expected

    def test_signed_params_adds_token_and_signature(self):
        auth = SignedParamsAuth("app", "secret", "tok")
        signed = auth.signed_params("param2/1/x/app", {"q": "cable"})
        assert signed["access_token"] == "tok"
        assert signed["q"] == "cable"
        assert "_aop_timestamp" in signed
        unsigned = {k: v for k, v in signed.items() if k != "_aop_signature"}
        assert signed["_aop_signature"] == auth.sign("param2/1/x/app", unsigned)

    def test_no_headers(self):
        auth = SignedParamsAuth("app", "secret")
        assert auth.auth_header(TokenInfo(access_token="")) == {}


class TestHasCredentials:
    @pytest.mark.parametrize(
        "auth_config,expected",
        [
            ({"type": "api_key", "api_key": "k"}, True),
            ({"type": "api_key", "api_key": ""}, False),
            ({"type": "basic", "username": "u"}, False),
            ({"type": "signed_params", "app_key": "k", "app_secret": "s"}, True),
            ({}, False),
            ({"type": "kerberos", "ticket": "t"}, False),
        ],
    )
    def test_required_fields(self, auth_config, expected):
        assert has_credentials(auth_config) is expected


class TestCreateAuthProvider:
    def test_basic(self):
        provider = create_auth_provider({
            "type": "basic",
            "username": "u",
            "password": "p",
        })
        assert isinstance(provider, BasicAuth)

    def test_api_key(self):
        provider = create_auth_provider({
            "type": "api_key",
            "api_key": "k",
        })
        assert isinstance(provider, APIKeyAuth)

    def test_signed_params(self):
        provider = create_auth_provider({
            "type": "signed_params",
            "app_key": "k",
            "app_secret": "s",
        })
        assert isinstance(provider, SignedParamsAuth)
        assert provider.app_key == "k"

    def test_oauth2(self):
        provider = create_auth_provider({
            "type": "oauth2_client_credentials",
            "token_url": "https://auth.example.com/token",
            "client_id": "c",
            "client_secret": "s",
        })
        assert isinstance(provider, OAuth2ClientCredentials)

    def test_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown auth type"):
            create_auth_provider({"type": "kerberos"})
