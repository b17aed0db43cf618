"""
DSers adapter: AliExpress dropship catalog, prepaid settlement.

DSers has no bulk inventory endpoint; updates go out one variant at a time,
in the order given, to stay inside its rate limits.
"""

from __future__ import annotations

from decimal import Decimal
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
from fulfillment_bridge.core.settlement import Prepaid


class DSersAdapter(HTTPProvider):
    """Adapter for the DSers REST API."""

    system_name = "dsers"
    default_base_url = "https://api.dsers.com/v1"
    default_settlement = Prepaid()
    static_shipping_cost = Decimal("15.99")
    static_delivery_estimate = "7-15 days"
    status_map = {
        "pending": OrderStatus.PENDING_ACCEPTANCE,
        "awaiting_order": OrderStatus.PENDING_ACCEPTANCE,
        "awaiting_payment": OrderStatus.PENDING_ACCEPTANCE,
        "placed": OrderStatus.ACCEPTED,
        "awaiting_shipment": OrderStatus.IN_FULFILLMENT,
        "shipped": OrderStatus.SHIPPED,
        "completed": OrderStatus.DELIVERED,
        "canceled": OrderStatus.CANCELLED,
        "failed": OrderStatus.REJECTED,
    }

    def _to_item(self, raw: dict[str, Any]) -> CatalogItem:
        price = parse_money(raw.get("price"))
        return CatalogItem(
            external_id=str(raw.get("product_id", "")),
            name=raw.get("title", ""),
            description=raw.get("description") or "",
            price=price,
            images=tuple(raw.get("images") or ()),
            variants=tuple(
                Variant(
                    external_id=str(v.get("variant_id", "")),
                    attributes={str(k): str(val) for k, val in (v.get("options") or {}).items()},
                    price_delta=parse_money(v.get("price")) - price if v.get("price") else Decimal("0"),
                    sku=v.get("sku") or "",
                )
                for v in raw.get("variants") or []
            ),
            category=raw.get("category") or "",
            provider=self.name,
        )

    def _to_raw_order(self, raw: dict[str, Any]) -> RawOrder:
        return RawOrder(
            external_order_id=str(raw.get("dsers_order_id") or raw.get("order_id") or ""),
            raw_status=raw.get("status", ""),
            tracking_number=raw.get("tracking_number"),
            tracking_url=raw.get("tracking_url"),
            cost=parse_money(raw["cost"]) if raw.get("cost") is not None else None,
        )

    async def search_catalog(self, query: CatalogQuery) -> list[CatalogItem]:
        params: dict[str, Any] = {"keyword": query.keyword, "page": query.page, "limit": query.limit}
        if query.category:
            params["category"] = query.category
        body = await self._json("GET", "/products", params=params)
        items = [self._to_item(raw) for raw in body.get("products") or []]
        return [i for i in items if query.matches_price(i.price)]

    async def get_item(self, external_id: str) -> CatalogItem:
        try:
            body = await self._json("GET", f"/products/{external_id}")
        except SupplierError as exc:
            if exc.status_code == 404:
                raise ProductNotFoundError(self.name, external_id) from exc
            raise
        return self._to_item(body.get("product") or body)

    async def create_order(self, request: OrderRequest) -> RawOrder:
        addr = request.shipping_address
        payload = {
            "products": [{"variant_id": i.variant_id, "quantity": i.quantity} for i in request.items],
            "shipping_address": addr.to_dict(),
            "customer_info": request.contact.to_dict(),
            "notes": request.notes,
        }
        if request.idempotency_key:
            payload["client_order_id"] = request.idempotency_key
        body = await self._json("POST", "/orders", json=payload)
        return self._to_raw_order(body)

    async def get_order_status(self, external_order_id: str) -> RawOrder:
        body = await self._json("GET", f"/orders/{external_order_id}")
        return self._to_raw_order(body.get("order") or body)

    async def cancel_order(self, external_order_id: str) -> CancelResult:
        try:
            await self._json("PUT", f"/orders/{external_order_id}/cancel")
        except SupplierError as exc:
            return CancelResult(self.name, external_order_id, False, exc.message)
        return CancelResult(self.name, external_order_id, True, "Order canceled")

    async def update_inventory(self, updates: list[InventoryUpdate]) -> dict[str, str]:
        rejected: dict[str, str] = {}
        for update in updates:
            try:
                await self._json(
                    "PUT", f"/inventory/{update.variant_id}", json={"quantity": update.quantity}
                )
            except SupplierError as exc:
                rejected[update.variant_id] = exc.message
        return rejected

    async def quote_shipping(self, request: OrderRequest) -> ShippingQuote:
        body = await self._json(
            "POST",
            "/shipping/calculate",
            json={
                "items": [i.to_dict() for i in request.items],
                "destination": request.shipping_address.to_dict(),
            },
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
            await self._json("GET", "/account")
        except Exception as exc:
            raise HealthCheckFailure(str(exc), self.name) from exc
        return HealthProbe(HealthStatus.HEALTHY, "connection active")
