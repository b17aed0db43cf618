"""
Authentication handlers for supplier APIs.

Suppliers authenticate with static API keys (most dropship catalogs),
OAuth 2.0 client credentials (B2B portals), HTTP basic auth, or signed
request parameters (Alibaba open platform).  Each adapter picks the
strategy named in its profile and this module manages the token
lifecycle (acquisition, caching, refresh).
"""

from __future__ import annotations

import abc
import base64
import hashlib
import hmac
import time
from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass
class TokenInfo:
    """Cached token with expiry tracking."""

    access_token: str
    token_type: str = "Bearer"
    expires_at: float = 0.0  # epoch seconds; 0 → never expires
    refresh_token: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_expired(self) -> bool:
        if self.expires_at == 0.0:
            return False
        return time.time() >= (self.expires_at - 30)  # 30-second buffer


class AuthProvider(abc.ABC):
    """Base class for all auth strategies."""

    _cached: TokenInfo | None = None

    @abc.abstractmethod
    async def acquire_token(self) -> TokenInfo:
        """Obtain a fresh token (or credentials wrapper)."""

    async def refresh_token(self, token: TokenInfo) -> TokenInfo:
        """Refresh an expired token; strategies without refresh re-acquire."""
        return await self.acquire_token()

    async def get_token(self) -> TokenInfo:
        """Return a valid token, refreshing if necessary."""
        if self._cached is None or self._cached.is_expired:
            if self._cached and self._cached.refresh_token:
                self._cached = await self.refresh_token(self._cached)
            else:
                self._cached = await self.acquire_token()
        return self._cached

    def auth_header(self, token: TokenInfo) -> dict[str, str]:
        return {"Authorization": f"{token.token_type} {token.access_token}"}


# ── Concrete strategies ─────────────────────────────────────────────────


class OAuth2ClientCredentials(AuthProvider):
    """Standard OAuth 2.0 client-credentials flow."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str = "",
        extra_params: dict[str, str] | None = None,
    ) -> None:
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.extra_params = extra_params or {}
        self._cached = None

    async def _post_token(self, payload: dict[str, str]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=30.0) as client:
            resp = await client.post(self.token_url, data=payload)
            resp.raise_for_status()
            return resp.json()

    async def acquire_token(self) -> TokenInfo:
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **self.extra_params,
        }
        if self.scope:
            payload["scope"] = self.scope

        body = await self._post_token(payload)
        return TokenInfo(
            access_token=body["access_token"],
            token_type=body.get("token_type", "Bearer"),
            expires_at=time.time() + body.get("expires_in", 3600),
            refresh_token=body.get("refresh_token"),
        )

    async def refresh_token(self, token: TokenInfo) -> TokenInfo:
        if not token.refresh_token:
            return await self.acquire_token()

        body = await self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": token.refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
        )
        return TokenInfo(
            access_token=body["access_token"],
            token_type=body.get("token_type", "Bearer"),
            expires_at=time.time() + body.get("expires_in", 3600),
            refresh_token=body.get("refresh_token", token.refresh_token),
        )


class BasicAuth(AuthProvider):
    """HTTP Basic authentication (username + password encoded as a token)."""

    def __init__(self, username: str, password: str) -> None:
        self._token_value = base64.b64encode(
            f"{username}:{password}".encode()
        ).decode()
        self._cached = None

    async def acquire_token(self) -> TokenInfo:
        return TokenInfo(access_token=self._token_value, token_type="Basic")


class APIKeyAuth(AuthProvider):
    """Static API key sent in a header (bearer token by default)."""

    def __init__(self, api_key: str, header_name: str = "Authorization", prefix: str = "Bearer") -> None:
        self._api_key = api_key
        self._header_name = header_name
        self._prefix = prefix
        self._cached = None

    async def acquire_token(self) -> TokenInfo:
        return TokenInfo(access_token=self._api_key, token_type=self._prefix)

    def auth_header(self, token: TokenInfo) -> dict[str, str]:
        if not self._prefix:
            return {self._header_name: token.access_token}
        return {self._header_name: f"{self._prefix} {token.access_token}"}


class SignedParamsAuth(AuthProvider):
    """
    Request signing used by the Alibaba open platform.

    Nothing goes in the headers; instead every request carries the access
    token plus an HMAC-SHA1 signature over the API path and the sorted
    parameters, keyed with the app secret.
    """

    def __init__(self, app_key: str, app_secret: str, access_token: str = "") -> None:
        self.app_key = app_key
        self.app_secret = app_secret
        self.access_token = access_token
        self._cached = None

    async def acquire_token(self) -> TokenInfo:
        return TokenInfo(access_token=self.access_token, token_type="")

    def auth_header(self, token: TokenInfo) -> dict[str, str]:
        return {}

    def sign(self, api_path: str, params: dict[str, Any]) -> str:
        flat = "".join(f"{key}{params[key]}" for key in sorted(params))
        digest = hmac.new(
            self.app_secret.encode(), f"{api_path}{flat}".encode(), hashlib.sha1
        ).hexdigest()
        return digest.upper()

    def signed_params(self, api_path: str, params: dict[str, Any]) -> dict[str, Any]:
        out = {
            **params,
            "access_token": self.access_token,
            "_aop_timestamp": str(int(time.time() * 1000)),
        }
        out["_aop_signature"] = self.sign(api_path, out)
        return out


# Fields that must be non-empty for a profile to count as configured.
REQUIRED_AUTH_FIELDS: dict[str, tuple[str, ...]] = {
    "api_key": ("api_key",),
    "basic": ("username", "password"),
    "oauth2_client_credentials": ("token_url", "client_id", "client_secret"),
    "signed_params": ("app_key", "app_secret"),
}


def has_credentials(auth_config: dict[str, Any]) -> bool:
    required = REQUIRED_AUTH_FIELDS.get(str(auth_config.get("type", "")).lower())
    if required is None:
        return False
    return all(auth_config.get(key) for key in required)


def create_auth_provider(auth_config: dict[str, Any]) -> AuthProvider:
    """Factory that builds the right AuthProvider from a config dict."""
    auth_type = auth_config.get("type", "").lower()

    if auth_type == "oauth2_client_credentials":
        return OAuth2ClientCredentials(
            token_url=auth_config["token_url"],
            client_id=auth_config["client_id"],
            client_secret=auth_config["client_secret"],
            scope=auth_config.get("scope", ""),
            extra_params=auth_config.get("extra_params", {}),
        )
    elif auth_type == "basic":
        return BasicAuth(
            username=auth_config["username"],
            password=auth_config["password"],
        )
    elif auth_type == "api_key":
        return APIKeyAuth(
            api_key=auth_config["api_key"],
            header_name=auth_config.get("header_name", "Authorization"),
            prefix=auth_config.get("prefix", "Bearer"),
        )
    elif auth_type == "signed_params":
        return SignedParamsAuth(
            app_key=auth_config["app_key"],
            app_secret=auth_config["app_secret"],
            access_token=auth_config.get("access_token", ""),
        )
    else:
        raise ValueError(f"Unknown auth type: {auth_type!r}")
