"""
Base provider interface that every supplier adapter implements.

Each adapter translates the uniform fulfillment contract into one
supplier's REST API: its endpoints, payload shapes, status vocabulary and
authentication.  Not every supplier offers every operation; an adapter
advertises what it can do through ``capabilities`` and the engines check
that before calling.
"""

from __future__ import annotations

import abc
import re
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from fulfillment_bridge.core.auth import AuthProvider, create_auth_provider, has_credentials
from fulfillment_bridge.core.errors import (
    ProviderUnavailableError,
    TransportError,
    error_from_response,
)
from fulfillment_bridge.core.models import (
    ALL_CAPABILITIES,
    CancelResult,
    Capability,
    CatalogItem,
    CatalogQuery,
    HealthProbe,
    InventoryUpdate,
    OrderRequest,
    OrderStatus,
    RawOrder,
    ShippingQuote,
)
from fulfillment_bridge.core.settlement import (
    DEFAULT_NET_TERMS_DAYS,
    Prepaid,
    SettlementTerms,
    describe_terms,
    terms_from_config,
)

DEFAULT_TIMEOUT = 30.0

_MONEY_RE = re.compile(r"-?\d+(?:\.\d+)?")
# thousands separators between digits: "1,299.00", "1 299.00"
_GROUPING_RE = re.compile(r"(?<=\d)[,_\s](?=\d{3}\b)")


def parse_money(value: Any) -> Decimal:
    """Parse supplier price fields such as ``"12.50"``, ``12.5``, ``"¥12.50"`` or ``"1,299.00"``."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    match = _MONEY_RE.search(_GROUPING_RE.sub("", str(value)))
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return Decimal("0")


class BaseProvider(abc.ABC):
    """Abstract base class for all supplier adapters."""

    system_name: str = "generic"
    capabilities: frozenset[Capability] = ALL_CAPABILITIES
    default_settlement: SettlementTerms = Prepaid()
    # supplier status word (lower-case) → canonical status
    status_map: dict[str, OrderStatus] = {}
    static_shipping_cost: Decimal = Decimal("0")
    static_delivery_estimate: str = "unknown"

    def __init__(self, config: dict[str, Any]) -> None:
        self._config = config
        self._name: str = config.get("name") or self.system_name
        self._enabled = has_credentials(config.get("auth", {}))
        self._timeout = float(config.get("timeout") or DEFAULT_TIMEOUT)
        self._settlement = (
            terms_from_config(
                config.get("settlement"),
                int(config.get("net_terms_days", DEFAULT_NET_TERMS_DAYS)),
            )
            or self.default_settlement
        )
        static = config.get("static_shipping") or {}
        self._static_cost = parse_money(static.get("cost", self.static_shipping_cost))
        self._static_eta = static.get("estimated_delivery", self.static_delivery_estimate)

    @property
    def name(self) -> str:
        return self._name

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def settlement(self) -> SettlementTerms:
        return self._settlement

    @property
    def timeout(self) -> float:
        return self._timeout

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    # -- catalog ----------------------------------------------------------

    @abc.abstractmethod
    async def search_catalog(self, query: CatalogQuery) -> list[CatalogItem]:
        """Best-effort search; an empty list when nothing matches."""

    @abc.abstractmethod
    async def get_item(self, external_id: str) -> CatalogItem:
        """Fetch one catalog item; ``ProductNotFoundError`` if it does not exist."""

    # -- orders -----------------------------------------------------------

    @abc.abstractmethod
    async def create_order(self, request: OrderRequest) -> RawOrder:
        """Submit an order.  The adapter does not deduplicate resubmissions."""

    @abc.abstractmethod
    async def get_order_status(self, external_order_id: str) -> RawOrder:
        """Read-only refresh of an existing order."""

    async def cancel_order(self, external_order_id: str) -> CancelResult:
        raise NotImplementedError(f"{self.system_name} does not support cancellation")

    # -- inventory --------------------------------------------------------

    async def update_inventory(self, updates: list[InventoryUpdate]) -> dict[str, str]:
        """
        Push quantities for previously imported variants in one batch.

        Returns the variants the supplier rejected, mapped to a reason; an
        empty dict means every update was applied.
        """
        raise NotImplementedError(f"{self.system_name} does not accept inventory updates")

    # -- shipping / health -----------------------------------------------

    async def quote_shipping(self, request: OrderRequest) -> ShippingQuote:
        """Static estimate for suppliers without a live rate API."""
        return ShippingQuote(
            provider=self.name,
            cost=self._static_cost,
            estimated_delivery=self._static_eta,
            live=False,
        )

    @abc.abstractmethod
    async def check_health(self) -> HealthProbe:
        """Lightweight connectivity and credential check."""

    async def close(self) -> None:
        """Release network resources."""

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "system": self.system_name,
            "enabled": self.enabled,
            "capabilities": sorted(c.value for c in self.capabilities),
            "settlement": describe_terms(self.settlement),
        }


class HTTPProvider(BaseProvider):
    """Shared httpx plumbing for suppliers that expose a JSON REST API."""

    default_base_url: str = ""

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self._base_url: str = (config.get("base_url") or self.default_base_url).rstrip("/")
        self._auth: AuthProvider | None = (
            create_auth_provider(config["auth"]) if self.enabled else None
        )
        self._client: httpx.AsyncClient | None = None

    def _extra_headers(self) -> dict[str, str]:
        return {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            if self._auth is None:
                raise ProviderUnavailableError(
                    f"Provider {self.name!r} has no credentials configured", self.name
                )
            token = await self._auth.get_token()
            headers = self._auth.auth_header(token)
            headers["Accept"] = "application/json"
            headers["Content-Type"] = "application/json"
            headers.update(self._extra_headers())
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request; raise a taxonomy error for any failed response."""
        client = await self._get_client()
        try:
            resp = await client.request(
                method.upper(), path, params=params, json=json, data=data, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"{method.upper()} {path} on {self.name} timed out; supplier outcome unknown",
                self.name,
            ) from exc
        except httpx.TransportError as exc:
            raise TransportError(
                f"{method.upper()} {path} on {self.name} failed: {exc}", self.name
            ) from exc
        if resp.status_code >= 400:
            raise error_from_response(self.name, resp)
        return resp

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await self._request(method, path, **kwargs)
        if resp.status_code == 204:
            return {}
        return resp.json()

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
