"""
Configuration management for Fulfillment Bridge.

Loads supplier profiles from a YAML/JSON config file or environment
variables.  Each profile names the supplier system, its credentials, its
settlement terms and adapter-specific options.

Default config location: ~/.fulfillment-bridge/config.yaml
Override with FULFILLMENT_BRIDGE_CONFIG env var.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

from fulfillment_bridge.core.auth import has_credentials
from fulfillment_bridge.core.settlement import DEFAULT_NET_TERMS_DAYS


DEFAULT_CONFIG_DIR = Path.home() / ".fulfillment-bridge"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_CONFIG_PATH = "FULFILLMENT_BRIDGE_CONFIG"
ENV_PREFIX = "FB_"

# well-known suppliers registered from plain environment variables when no
# config file exists: profile name -> (auth type, {env var: auth field})
WELL_KNOWN_SUPPLIERS: dict[str, tuple[str, dict[str, str]]] = {
    "printful": ("api_key", {"PRINTFUL_API_KEY": "api_key"}),
    "spocket": ("api_key", {"SPOCKET_API_KEY": "api_key"}),
    "dsers": ("api_key", {"DSERS_API_KEY": "api_key"}),
    "alibaba": (
        "signed_params",
        {
            "ALIBABA_API_KEY": "app_key",
            "ALIBABA_APP_SECRET": "app_secret",
            "ALIBABA_ACCESS_TOKEN": "access_token",
        },
    ),
}


def _load_file(path: Path) -> dict[str, Any]:
    text = path.read_text()
    if path.suffix == ".json":
        return json.loads(text) or {}
    return yaml.safe_load(text) or {}


def _env_overrides() -> dict[str, str]:
    """Collect FB_* environment variables."""
    return {
        k[len(ENV_PREFIX) :]: v
        for k, v in os.environ.items()
        if k.startswith(ENV_PREFIX)
    }


def _override_fields(auth_type: str) -> dict[str, str]:
    """Env suffix -> auth field for one auth type."""
    if auth_type == "signed_params":
        return {
            "API_KEY": "app_key",
            "API_SECRET": "app_secret",
            "ACCESS_TOKEN": "access_token",
        }
    return {
        "API_KEY": "api_key",
        "API_SECRET": "api_secret",
        "ACCESS_TOKEN": "access_token",
        "CLIENT_ID": "client_id",
        "CLIENT_SECRET": "client_secret",
        "USERNAME": "username",
        "PASSWORD": "password",
        "TOKEN_URL": "token_url",
    }


class Settings:
    """The ``defaults:`` block."""

    def __init__(self, raw: dict[str, Any] | None = None) -> None:
        raw = raw or {}
        self.timeout = float(raw.get("timeout", 30))
        self.net_terms_days = int(raw.get("net_terms_days", DEFAULT_NET_TERMS_DAYS))
        self.search_all_limit = int(raw.get("search_all_limit", 50))
        self.health_timeout = float(raw.get("health_timeout", 10))
        self.health_concurrency = int(raw.get("health_concurrency", 4))


class SupplierProfile:
    """A single supplier connection definition."""

    def __init__(self, name: str, raw: dict[str, Any]) -> None:
        self.name = name
        self.system: str = raw.get("system", name)
        self.auth: dict[str, Any] = raw.get("auth") or {}
        self.base_url: str = raw.get("base_url", "")
        self.settlement: dict[str, Any] | None = raw.get("settlement")
        self.timeout: float | None = float(raw["timeout"]) if raw.get("timeout") else None
        self.options: dict[str, Any] = raw.get("options") or {}

    @property
    def has_credentials(self) -> bool:
        return has_credentials(self.auth)

    def to_adapter_config(self, settings: Settings | None = None) -> dict[str, Any]:
        settings = settings or Settings()
        return {
            **self.options,
            "name": self.name,
            "system": self.system,
            "auth": self.auth,
            "base_url": self.base_url,
            "settlement": self.settlement,
            "timeout": self.timeout or settings.timeout,
            "net_terms_days": settings.net_terms_days,
        }


class Config:
    """Top-level configuration container."""

    def __init__(self, raw: dict[str, Any] | None = None) -> None:
        self._raw = raw or {}
        self.settings = Settings(self._raw.get("defaults"))
        self.storefront: dict[str, Any] | None = self._raw.get("storefront") or None
        self.profiles: dict[str, SupplierProfile] = {}
        self._parse()

    def _parse(self) -> None:
        for name, defn in (self._raw.get("suppliers") or {}).items():
            self.profiles[name] = SupplierProfile(name, defn or {})

    def get_profile(self, name: str) -> SupplierProfile:
        if name not in self.profiles:
            raise KeyError(
                f"Supplier profile {name!r} not found. "
                f"Available: {list(self.profiles.keys())}"
            )
        return self.profiles[name]

    def list_profiles(self) -> list[dict[str, Any]]:
        return [
            {"name": p.name, "system": p.system, "enabled": p.has_credentials}
            for p in self.profiles.values()
        ]

    @staticmethod
    def _apply_env(raw: dict[str, Any], env: dict[str, str]) -> None:
        """Apply FB_<PROFILE>_* overrides onto the raw ``suppliers`` block."""
        for profile_name, profile in (raw.get("suppliers") or {}).items():
            if profile is None:
                profile = raw["suppliers"][profile_name] = {}
            prefix = profile_name.upper()
            auth = profile.setdefault("auth", {})
            for suffix, field in _override_fields(str(auth.get("type", "")).lower()).items():
                if f"{prefix}_{suffix}" in env:
                    auth[field] = env[f"{prefix}_{suffix}"]
            if f"{prefix}_BASE_URL" in env:
                profile["base_url"] = env[f"{prefix}_BASE_URL"]

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Config":
        """
        Load configuration from file, with env-var overrides applied.

        Resolution order:
        1. Explicit *path* argument
        2. FULFILLMENT_BRIDGE_CONFIG env var
        3. ~/.fulfillment-bridge/config.yaml

        With no file at all, falls back to ``from_environment()``.
        """
        if path is None:
            path = os.environ.get(ENV_CONFIG_PATH, str(DEFAULT_CONFIG_FILE))
        path = Path(path)

        if not path.exists():
            return cls.from_environment()

        raw = _load_file(path)
        cls._apply_env(raw, _env_overrides())
        return cls(raw)

    @classmethod
    def from_environment(cls, environ: dict[str, str] | None = None) -> "Config":
        """
        Build a config for the well-known suppliers from plain env vars
        (PRINTFUL_API_KEY, SPOCKET_API_KEY, DSERS_API_KEY and the ALIBABA_*
        trio).  Suppliers without credentials are still listed, disabled.
        """
        env = os.environ if environ is None else environ
        suppliers: dict[str, Any] = {}
        for name, (auth_type, fields) in WELL_KNOWN_SUPPLIERS.items():
            auth: dict[str, Any] = {"type": auth_type}
            for var, field in fields.items():
                if env.get(var):
                    auth[field] = env[var]
            suppliers[name] = {"system": name, "auth": auth}
        if env.get("PRINTFUL_STORE_ID"):
            suppliers["printful"]["options"] = {"store_id": env["PRINTFUL_STORE_ID"]}

        raw: dict[str, Any] = {"suppliers": suppliers}
        if env.get("SHOPIFY_DOMAIN") and env.get("SHOPIFY_ACCESS_TOKEN"):
            raw["storefront"] = {
                "system": "shopify",
                "base_url": f"https://{env['SHOPIFY_DOMAIN']}",
                "auth": {"type": "api_key", "api_key": env["SHOPIFY_ACCESS_TOKEN"]},
            }
        cls._apply_env(
            raw,
            {k[len(ENV_PREFIX) :]: v for k, v in env.items() if k.startswith(ENV_PREFIX)},
        )
        return cls(raw)

    @staticmethod
    def generate_template() -> str:
        """Return a YAML template users can fill in."""
        return """\
# Fulfillment Bridge configuration
# Place this file at ~/.fulfillment-bridge/config.yaml
# or set FULFILLMENT_BRIDGE_CONFIG=/path/to/config.yaml
#
# Credentials can also be supplied via environment variables:
#   FB_<PROFILE_NAME>_API_KEY, FB_<PROFILE_NAME>_API_SECRET, etc.

defaults:
  timeout: 30
  net_terms_days: 30
  search_all_limit: 50
  health_timeout: 10
  health_concurrency: 4

storefront:
  system: shopify
  base_url: https://my-shop.myshopify.com
  sku_prefix: fb
  auth:
    type: api_key
    api_key: YOUR_ADMIN_API_TOKEN

suppliers:
  printful:
    system: printful
    auth:
      type: api_key
      api_key: YOUR_PRINTFUL_TOKEN
    settlement:
      type: prepaid
    options:
      store_id: "123456"

  spocket:
    system: spocket
    auth:
      type: api_key
      api_key: YOUR_SPOCKET_KEY

  dsers:
    system: dsers
    auth:
      type: api_key
      api_key: YOUR_DSERS_KEY
    options:
      static_shipping:
        cost: "15.99"
        estimated_delivery: 7-15 days

  alibaba:
    system: alibaba
    auth:
      type: signed_params
      app_key: YOUR_APP_KEY
      app_secret: YOUR_APP_SECRET
      access_token: YOUR_ACCESS_TOKEN
    settlement:
      type: net_terms
      days: 30

  local_cod:
    system: cod
    base_url: https://partner.example.com/api
    auth:
      type: api_key
      api_key: YOUR_PARTNER_KEY
    settlement:
      type: cash_on_delivery

  boutique:
    system: consignment
    base_url: https://consign.example.com/api
    auth:
      type: basic
      username: YOUR_USERNAME
      password: YOUR_PASSWORD
    options:
      agreement_id: AGR-001
"""
