"""
Partner API adapter: suppliers that expose the conventional partner REST
surface used by regional wholesalers and distribution partners.

    GET    /v1/catalog/search?q=&category=&page=&per_page=
    GET    /v1/catalog/items/{id}
    POST   /v1/orders
    GET    /v1/orders/{id}
    POST   /v1/orders/{id}/cancel
    POST   /v1/inventory          {"updates": [{"variant_id", "quantity"}]}
    POST   /v1/shipping/quote
    GET    /v1/ping

The cash-on-delivery and consignment adapters specialise this class with
their own order payloads and status vocabularies.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fulfillment_bridge.core.adapter import HTTPProvider, parse_money
from fulfillment_bridge.core.errors import HealthCheckFailure, ProductNotFoundError, SupplierError
from fulfillment_bridge.core.models import (
    CancelResult,
    CatalogItem,
    CatalogQuery,
    HealthProbe,
    HealthStatus,
    InventoryUpdate,
    OrderRequest,
    OrderStatus,
    RawOrder,
    ShippingQuote,
    Variant,
)


def parse_datetime(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class PartnerAPIAdapter(HTTPProvider):
    """Base adapter for suppliers speaking the partner REST surface."""

    system_name = "partner"
    api_prefix = "/v1"
    status_map = {
        "received": OrderStatus.PENDING_ACCEPTANCE,
        "pending": OrderStatus.PENDING_ACCEPTANCE,
        "accepted": OrderStatus.ACCEPTED,
        "declined": OrderStatus.REJECTED,
        "rejected": OrderStatus.REJECTED,
        "picking": OrderStatus.IN_FULFILLMENT,
        "packed": OrderStatus.IN_FULFILLMENT,
        "shipped": OrderStatus.SHIPPED,
        "in_transit": OrderStatus.SHIPPED,
        "delivered": OrderStatus.DELIVERED,
        "cancelled": OrderStatus.CANCELLED,
    }

    def _path(self, suffix: str) -> str:
        return f"{self.api_prefix}{suffix}"

    # -- transforms -------------------------------------------------------

    def _to_item(self, raw: dict[str, Any]) -> CatalogItem:
        return CatalogItem(
            external_id=str(raw.get("id", "")),
            name=raw.get("name", ""),
            description=raw.get("description", ""),
            price=parse_money(raw.get("price")),
            currency=raw.get("currency", "USD"),
            category=raw.get("category", ""),
            images=tuple(raw.get("images") or ()),
            variants=tuple(
                Variant(
                    external_id=str(v.get("id", "")),
                    attributes={str(k): str(val) for k, val in (v.get("attributes") or {}).items()},
                    price_delta=parse_money(v.get("price_delta")),
                    sku=v.get("sku", ""),
                )
                for v in raw.get("variants") or []
            ),
            provider=self.name,
        )

    def _to_raw_order(self, raw: dict[str, Any]) -> RawOrder:
        return RawOrder(
            external_order_id=str(raw.get("id", "")),
            raw_status=raw.get("status", ""),
            tracking_number=raw.get("tracking_number"),
            tracking_url=raw.get("tracking_url"),
            created_at=parse_datetime(raw.get("created_at")),
            cost=parse_money(raw["total"]) if raw.get("total") is not None else None,
            details={k: raw[k] for k in ("reason", "note") if raw.get(k)},
        )

    def _order_payload(self, request: OrderRequest) -> dict[str, Any]:
        addr = request.shipping_address
        return {
            "reference": request.internal_order_id,
            "lines": [
                {
                    "variant_id": item.variant_id,
                    "quantity": item.quantity,
                    "unit_price": str(item.unit_price) if item.unit_price is not None else None,
                }
                for item in request.items
            ],
            "ship_to": {
                "name": addr.name,
                "address_line1": addr.line1,
                "address_line2": addr.line2,
                "city": addr.city,
                "region": addr.region,
                "postal_code": addr.postal_code,
                "country": addr.country,
            },
            "contact": {
                "name": request.contact.name,
                "email": request.contact.email,
                "phone": request.contact.phone,
            },
            "notes": request.notes,
            "shipping_method": request.shipping_method,
        }

    # -- catalog ----------------------------------------------------------

    async def search_catalog(self, query: CatalogQuery) -> list[CatalogItem]:
        params: dict[str, Any] = {"q": query.keyword, "page": query.page, "per_page": query.limit}
        if query.category:
            params["category"] = query.category
        if query.min_price is not None:
            params["min_price"] = str(query.min_price)
        if query.max_price is not None:
            params["max_price"] = str(query.max_price)
        body = await self._json("GET", self._path("/catalog/search"), params=params)
        return [self._to_item(raw) for raw in body.get("items") or []]

    async def get_item(self, external_id: str) -> CatalogItem:
        try:
            body = await self._json("GET", self._path(f"/catalog/items/{external_id}"))
        except SupplierError as exc:
            if exc.status_code == 404:
                raise ProductNotFoundError(self.name, external_id) from exc
            raise
        return self._to_item(body.get("item") or body)

    # -- orders -----------------------------------------------------------

    async def create_order(self, request: OrderRequest) -> RawOrder:
        headers = {"Idempotency-Key": request.idempotency_key} if request.idempotency_key else None
        body = await self._json(
            "POST", self._path("/orders"), json=self._order_payload(request), headers=headers
        )
        return self._to_raw_order(body.get("order") or body)

    async def get_order_status(self, external_order_id: str) -> RawOrder:
        body = await self._json("GET", self._path(f"/orders/{external_order_id}"))
        return self._to_raw_order(body.get("order") or body)

    async def cancel_order(self, external_order_id: str) -> CancelResult:
        try:
            body = await self._json("POST", self._path(f"/orders/{external_order_id}/cancel"))
        except SupplierError as exc:
            return CancelResult(self.name, external_order_id, False, exc.message)
        cancelled = bool(body.get("cancelled", True))
        return CancelResult(
            self.name,
            external_order_id,
            cancelled,
            body.get("message") or ("Order cancelled" if cancelled else "Cancellation refused"),
        )

    # -- inventory --------------------------------------------------------

    async def update_inventory(self, updates: list[InventoryUpdate]) -> dict[str, str]:
        body = await self._json(
            "POST",
            self._path("/inventory"),
            json={"updates": [{"variant_id": u.variant_id, "quantity": u.quantity} for u in updates]},
        )
        return {
            str(r.get("variant_id")): r.get("reason") or "rejected by supplier"
            for r in body.get("rejected") or []
        }

    # -- shipping / health -----------------------------------------------

    async def quote_shipping(self, request: OrderRequest) -> ShippingQuote:
        payload = self._order_payload(request)
        body = await self._json(
            "POST",
            self._path("/shipping/quote"),
            json={"lines": payload["lines"], "ship_to": payload["ship_to"]},
        )
        if body.get("cost") is None:
            return await super().quote_shipping(request)
        return ShippingQuote(
            self.name,
            parse_money(body["cost"]),
            body.get("estimated_delivery") or self._static_eta,
            live=True,
        )

    async def check_health(self) -> HealthProbe:
        try:
            body = await self._json("GET", self._path("/ping"))
        except Exception as exc:
            raise HealthCheckFailure(str(exc), self.name) from exc
        if body.get("degraded"):
            return HealthProbe(HealthStatus.DEGRADED, body.get("message", "degraded"))
        return HealthProbe(HealthStatus.HEALTHY, body.get("message", "ok"))
