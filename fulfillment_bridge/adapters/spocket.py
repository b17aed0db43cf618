"""
Spocket adapter: US/EU dropship catalog, prepaid settlement.

Orders are paid from the retailer's card on file when Spocket confirms
them, so acceptance implies payment.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from fulfillment_bridge.adapters.partner import parse_datetime
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


class SpocketAdapter(HTTPProvider):
    """Adapter for the Spocket REST API."""

    system_name = "spocket"
    default_base_url = "https://api.spocket.co/v1"
    default_settlement = Prepaid()
    static_shipping_cost = Decimal("12.99")
    static_delivery_estimate = "5-7 business days"
    status_map = {
        "pending": OrderStatus.PENDING_ACCEPTANCE,
        "awaiting_payment": OrderStatus.PENDING_ACCEPTANCE,
        "paid": OrderStatus.ACCEPTED,
        "processing": OrderStatus.IN_FULFILLMENT,
        "shipped": OrderStatus.SHIPPED,
        "delivered": OrderStatus.DELIVERED,
        "cancelled": OrderStatus.CANCELLED,
        "refunded": OrderStatus.CANCELLED,
        "declined": OrderStatus.REJECTED,
    }

    def _to_item(self, raw: dict[str, Any]) -> CatalogItem:
        price = parse_money(raw.get("price") or raw.get("cost"))
        return CatalogItem(
            external_id=str(raw.get("id", "")),
            name=raw.get("title", ""),
            description=raw.get("description") or "",
            price=price,
            images=tuple(img.get("src", "") if isinstance(img, dict) else str(img) for img in raw.get("images") or []),
            variants=tuple(
                Variant(
                    external_id=str(v.get("id", "")),
                    attributes={o.get("name", ""): str(o.get("value", "")) for o in v.get("options") or []},
                    price_delta=parse_money(v.get("price")) - price if v.get("price") else Decimal("0"),
                    sku=v.get("sku") or "",
                )
                for v in raw.get("variants") or []
            ),
            category=raw.get("category") or "",
            currency=raw.get("currency", "USD"),
            provider=self.name,
        )

    def _to_raw_order(self, raw: dict[str, Any]) -> RawOrder:
        return RawOrder(
            external_order_id=str(raw.get("id", "")),
            raw_status=raw.get("status", ""),
            tracking_number=raw.get("tracking_number"),
            tracking_url=raw.get("tracking_url"),
            created_at=parse_datetime(raw.get("created_at")),
            cost=parse_money(raw["total_cost"]) if raw.get("total_cost") is not None else None,
        )

    async def search_catalog(self, query: CatalogQuery) -> list[CatalogItem]:
        params: dict[str, Any] = {"search": query.keyword, "page": query.page, "per_page": query.limit}
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
        first, _, last = addr.name.partition(" ")
        payload = {
            "line_items": [{"variant_id": i.variant_id, "quantity": i.quantity} for i in request.items],
            "shipping_address": {
                "first_name": first,
                "last_name": last,
                "address1": addr.line1,
                "address2": addr.line2,
                "city": addr.city,
                "province": addr.region,
                "zip": addr.postal_code,
                "country_code": addr.country,
                "phone": request.contact.phone,
            },
            "email": request.contact.email,
            "note": request.notes,
        }
        headers = {"Idempotency-Key": request.idempotency_key} if request.idempotency_key else None
        body = await self._json("POST", "/orders", json=payload, headers=headers)
        return self._to_raw_order(body.get("order") or body)

    async def get_order_status(self, external_order_id: str) -> RawOrder:
        body = await self._json("GET", f"/orders/{external_order_id}")
        return self._to_raw_order(body.get("order") or body)

    async def cancel_order(self, external_order_id: str) -> CancelResult:
        try:
            await self._json("POST", f"/orders/{external_order_id}/cancel")
        except SupplierError as exc:
            return CancelResult(self.name, external_order_id, False, exc.message)
        return CancelResult(self.name, external_order_id, True, "Order cancelled")

    async def update_inventory(self, updates: list[InventoryUpdate]) -> dict[str, str]:
        body = await self._json(
            "PUT",
            "/inventory/bulk",
            json={"variants": [{"id": u.variant_id, "inventory_quantity": u.quantity} for u in updates]},
        )
        return {str(e.get("id")): e.get("message", "rejected") for e in body.get("errors") or []}

    async def quote_shipping(self, request: OrderRequest) -> ShippingQuote:
        body = await self._json(
            "POST",
            "/shipping/rates",
            json={
                "country_code": request.shipping_address.country,
                "line_items": [{"variant_id": i.variant_id, "quantity": i.quantity} for i in request.items],
            },
        )
        rate = (body.get("rates") or [None])[0]
        if not rate:
            return await super().quote_shipping(request)
        return ShippingQuote(
            self.name,
            parse_money(rate.get("price")),
            rate.get("delivery_time") or self._static_eta,
            live=True,
        )

    async def check_health(self) -> HealthProbe:
        try:
            body = await self._json("GET", "/products/count")
        except Exception as exc:
            raise HealthCheckFailure(str(exc), self.name) from exc
        return HealthProbe(HealthStatus.HEALTHY, f"{body.get('count', 0)} products available")
