"""
Boundary with the storefront that sells imported items.

Items go out to the storefront with a SKU of ``<prefix>-<supplier variant
id>`` so that orders coming back in can be matched to supplier variants by
SKU alone; line items without the prefix belong to someone else and are
dropped on ingestion.
"""

from __future__ import annotations

import abc
import logging
from typing import Any

import httpx

from fulfillment_bridge.core.auth import AuthProvider, create_auth_provider
from fulfillment_bridge.core.errors import TransportError, error_from_response
from fulfillment_bridge.core.models import Address, CatalogItem, Contact, LineItem, OrderRequest

logger = logging.getLogger(__name__)

DEFAULT_SKU_PREFIX = "fb"
SHOPIFY_API_VERSION = "2023-10"


class StorefrontTarget(abc.ABC):
    name: str = "storefront"

    @abc.abstractmethod
    async def sync_item_out(self, item: CatalogItem) -> str:
        """Publish *item* and return the storefront's id for it."""

    @abc.abstractmethod
    def ingest_storefront_order(self, raw: dict[str, Any]) -> OrderRequest:
        """Turn a storefront order payload into an order request for suppliers."""

    async def close(self) -> None:
        """Release network resources."""


class ShopifyStorefront(StorefrontTarget):
    """Shopify Admin REST API target."""

    name = "shopify"

    def __init__(
        self,
        config: dict[str, Any],
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = config["base_url"].rstrip("/")
        self._api_version = config.get("api_version", SHOPIFY_API_VERSION)
        self._prefix = config.get("sku_prefix", DEFAULT_SKU_PREFIX)
        auth_config = {
            "type": "api_key",
            "header_name": "X-Shopify-Access-Token",
            "prefix": "",
            **(config.get("auth") or {}),
        }
        self._auth: AuthProvider = create_auth_provider(auth_config)
        self._timeout = float(config.get("timeout", 30))
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def sku_prefix(self) -> str:
        return self._prefix

    def sku_for(self, variant_id: str) -> str:
        return f"{self._prefix}-{variant_id}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            token = await self._auth.get_token()
            headers = self._auth.auth_header(token)
            headers["Content-Type"] = "application/json"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _product_payload(self, item: CatalogItem) -> dict[str, Any]:
        if item.variants:
            variants = [
                {
                    "price": str(item.price + v.price_delta),
                    "sku": self.sku_for(v.external_id),
                    "inventory_management": None,
                    "inventory_policy": "continue",
                    **{f"option{i}": value for i, value in enumerate(v.attributes.values(), 1) if i <= 3},
                }
                for v in item.variants
            ]
        else:
            variants = [
                {
                    "price": str(item.price),
                    "sku": self.sku_for(item.external_id),
                    "inventory_management": None,
                    "inventory_policy": "continue",
                }
            ]
        return {
            "title": item.name,
            "body_html": item.description,
            "vendor": item.provider,
            "product_type": item.category,
            "variants": variants,
            "images": [{"src": src} for src in item.images],
            "metafields": [
                {
                    "namespace": self._prefix,
                    "key": "product_id",
                    "value": item.external_id,
                    "type": "single_line_text_field",
                }
            ],
        }

    async def sync_item_out(self, item: CatalogItem) -> str:
        client = await self._get_client()
        path = f"/admin/api/{self._api_version}/products.json"
        try:
            resp = await client.post(path, json={"product": self._product_payload(item)})
        except httpx.TransportError as exc:
            raise TransportError(f"POST {path} on {self.name} failed: {exc}", self.name) from exc
        if resp.status_code >= 400:
            raise error_from_response(self.name, resp)
        product = resp.json().get("product") or {}
        logger.info("Published %s/%s to Shopify as %s", item.provider, item.external_id, product.get("id"))
        return str(product.get("id", ""))

    def ingest_storefront_order(self, raw: dict[str, Any]) -> OrderRequest:
        marker = f"{self._prefix}-"
        items = [
            LineItem(variant_id=str(li["sku"])[len(marker):], quantity=int(li.get("quantity", 1)))
            for li in raw.get("line_items") or []
            if str(li.get("sku") or "").startswith(marker)
        ]
        skipped = len(raw.get("line_items") or []) - len(items)
        if skipped:
            logger.debug("Ignoring %d non-supplier line items on order %s", skipped, raw.get("id"))

        ship = raw.get("shipping_address") or {}
        customer = raw.get("customer") or {}
        customer_name = " ".join(
            filter(None, [customer.get("first_name"), customer.get("last_name")])
        )
        order_id = str(raw.get("id", "")) or None
        return OrderRequest(
            items=items,
            shipping_address=Address(
                name=ship.get("name", ""),
                line1=ship.get("address1", ""),
                line2=ship.get("address2") or "",
                city=ship.get("city", ""),
                region=ship.get("province_code") or ship.get("province", ""),
                postal_code=ship.get("zip", ""),
                country=ship.get("country_code") or ship.get("country", ""),
            ),
            contact=Contact(
                name=customer_name or ship.get("name", ""),
                email=raw.get("email") or customer.get("email", ""),
                phone=raw.get("phone") or ship.get("phone") or "",
            ),
            notes=raw.get("note") or "",
            internal_order_id=order_id,
            idempotency_key=f"{self.name}-{order_id}" if order_id else None,
        )

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


STOREFRONT_REGISTRY: dict[str, type] = {
    "shopify": ShopifyStorefront,
}


def create_storefront(config: dict[str, Any]) -> StorefrontTarget:
    system = config.get("system", "shopify")
    cls = STOREFRONT_REGISTRY.get(system)
    if cls is None:
        raise ValueError(f"Unknown storefront system: {system!r}")
    return cls(config)
