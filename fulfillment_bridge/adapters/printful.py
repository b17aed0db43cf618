"""
Printful adapter: print-on-demand supplier, prepaid settlement.

Printful has no catalog search endpoint, so search pulls the product list
and filters it locally.  Orders are charged when they are confirmed, and
stock is never tracked (every item is printed on demand), so the adapter
does not take inventory updates.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fulfillment_bridge.core.adapter import HTTPProvider, parse_money
from fulfillment_bridge.core.errors import HealthCheckFailure, ProductNotFoundError, SupplierError
from fulfillment_bridge.core.models import (
    Capability,
    CancelResult,
    CatalogItem,
    CatalogQuery,
    HealthProbe,
    HealthStatus,
    OrderRequest,
    OrderStatus,
    RawOrder,
    ShippingQuote,
    Variant,
)
from fulfillment_bridge.core.settlement import Prepaid


_STATUS_MAP = {
    "draft": OrderStatus.CREATED,
    "pending": OrderStatus.PENDING_ACCEPTANCE,
    "failed": OrderStatus.REJECTED,
    "canceled": OrderStatus.CANCELLED,
    "cancelled": OrderStatus.CANCELLED,
    "onhold": OrderStatus.ACCEPTED,
    "inprocess": OrderStatus.IN_FULFILLMENT,
    "partial": OrderStatus.IN_FULFILLMENT,
    "fulfilled": OrderStatus.SHIPPED,
    "shipped": OrderStatus.SHIPPED,
    "delivered": OrderStatus.DELIVERED,
}


def _timestamp(value: Any) -> datetime | None:
    if isinstance(value, (int, float)) and value > 0:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


class PrintfulAdapter(HTTPProvider):
    """Adapter for the Printful REST API."""

    system_name = "printful"
    default_base_url = "https://api.printful.com"
    capabilities = frozenset(
        {
            Capability.SEARCH,
            Capability.IMPORT,
            Capability.ORDER_CREATE,
            Capability.ORDER_STATUS,
            Capability.ORDER_CANCEL,
            Capability.SHIPPING_QUOTE,
        }
    )
    default_settlement = Prepaid()
    status_map = _STATUS_MAP
    static_shipping_cost = Decimal("4.99")
    static_delivery_estimate = "7-14 days"

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self._store_id: str = str(config.get("store_id", "") or "")

    def _extra_headers(self) -> dict[str, str]:
        return {"X-PF-Store-Id": self._store_id} if self._store_id else {}

    # -- transforms -------------------------------------------------------

    def _to_item(self, product: dict[str, Any], variants: list[dict[str, Any]] | None = None) -> CatalogItem:
        raw_variants = variants or product.get("variants") or []
        base_price = parse_money(product.get("price"))
        if not base_price and raw_variants:
            # catalog products carry prices on variants only
            base_price = min(parse_money(v.get("price")) for v in raw_variants)

        parsed = []
        for v in raw_variants:
            price = parse_money(v.get("price"))
            parsed.append(
                Variant(
                    external_id=str(v.get("id", "")),
                    attributes={k: str(v[k]) for k in ("size", "color") if v.get(k)},
                    price_delta=price - base_price if price else Decimal("0"),
                    sku=v.get("sku") or "",
                )
            )
        return CatalogItem(
            external_id=str(product.get("id", "")),
            name=product.get("title") or product.get("name") or "",
            description=product.get("description") or "",
            price=base_price,
            images=tuple(filter(None, [product.get("image")])),
            variants=tuple(parsed),
            category=product.get("type_name") or "Custom Products",
            currency=product.get("currency", "USD"),
            provider=self.name,
        )

    def _to_raw_order(self, order: dict[str, Any]) -> RawOrder:
        shipments = order.get("shipments") or []
        costs = order.get("costs") or {}
        return RawOrder(
            external_order_id=str(order.get("id", "")),
            raw_status=order.get("status", ""),
            tracking_number=shipments[0].get("tracking_number") if shipments else None,
            tracking_url=shipments[0].get("tracking_url") if shipments else None,
            created_at=_timestamp(order.get("created")),
            cost=parse_money(costs.get("total")) if costs.get("total") else None,
            details={"external_id": order.get("external_id")},
        )

    # -- catalog ----------------------------------------------------------

    async def search_catalog(self, query: CatalogQuery) -> list[CatalogItem]:
        body = await self._json("GET", "/products")
        products = body.get("result") or []

        keyword = query.keyword.lower()
        if keyword:
            products = [
                p for p in products
                if keyword in (p.get("title") or "").lower()
                or keyword in (p.get("description") or "").lower()
            ]
        if query.category:
            category = query.category.lower()
            products = [p for p in products if category in (p.get("type_name") or "").lower()]

        items = [self._to_item(p) for p in products]
        items = [i for i in items if query.matches_price(i.price)]

        start = (query.page - 1) * query.limit
        return items[start : start + query.limit]

    async def get_item(self, external_id: str) -> CatalogItem:
        try:
            body = await self._json("GET", f"/products/{external_id}")
        except SupplierError as exc:
            if exc.status_code == 404:
                raise ProductNotFoundError(self.name, external_id) from exc
            raise
        result = body.get("result") or {}
        product = result.get("product") or result
        return self._to_item(product, result.get("variants"))

    # -- orders -----------------------------------------------------------

    def _order_payload(self, request: OrderRequest) -> dict[str, Any]:
        addr = request.shipping_address
        return {
            "external_id": request.idempotency_key or f"order_{int(time.time() * 1000)}",
            "shipping": request.shipping_method or "STANDARD",
            "recipient": {
                "name": addr.name,
                "address1": addr.line1,
                "address2": addr.line2,
                "city": addr.city,
                "state_code": addr.region,
                "country_code": addr.country,
                "zip": addr.postal_code,
                "phone": request.contact.phone,
                "email": request.contact.email,
            },
            "items": [
                {
                    "sync_variant_id": item.variant_id,
                    "quantity": item.quantity,
                    **({"retail_price": f"{item.unit_price:.2f}"} if item.unit_price is not None else {}),
                }
                for item in request.items
            ],
            "packing_slip": {"message": request.notes} if request.notes else None,
        }

    async def create_order(self, request: OrderRequest) -> RawOrder:
        payload = self._order_payload(request)
        if payload["packing_slip"] is None:
            del payload["packing_slip"]
        body = await self._json("POST", "/orders", params={"confirm": "true"}, json=payload)
        return self._to_raw_order(body.get("result") or {})

    async def get_order_status(self, external_order_id: str) -> RawOrder:
        body = await self._json("GET", f"/orders/{external_order_id}")
        return self._to_raw_order(body.get("result") or {})

    async def cancel_order(self, external_order_id: str) -> CancelResult:
        try:
            await self._json("DELETE", f"/orders/{external_order_id}")
        except SupplierError as exc:
            return CancelResult(self.name, external_order_id, False, exc.message)
        return CancelResult(self.name, external_order_id, True, "Order canceled")

    # -- shipping / health -----------------------------------------------

    async def quote_shipping(self, request: OrderRequest) -> ShippingQuote:
        addr = request.shipping_address
        body = await self._json(
            "POST",
            "/shipping/rates",
            json={
                "recipient": {
                    "address1": addr.line1,
                    "city": addr.city,
                    "country_code": addr.country,
                    "state_code": addr.region,
                    "zip": addr.postal_code,
                },
                "items": [
                    {"variant_id": i.variant_id, "quantity": i.quantity} for i in request.items
                ],
            },
        )
        rates = body.get("result") or []
        if not rates:
            return await super().quote_shipping(request)
        rate = rates[0]
        low, high = rate.get("minDeliveryDays"), rate.get("maxDeliveryDays")
        eta = f"{low}-{high} days" if low and high else self._static_eta
        return ShippingQuote(self.name, parse_money(rate.get("rate")), eta, live=True)

    async def check_health(self) -> HealthProbe:
        try:
            body = await self._json("GET", "/store")
        except Exception as exc:
            raise HealthCheckFailure(str(exc), self.name) from exc
        store = (body.get("result") or {}).get("name", "unknown")
        return HealthProbe(HealthStatus.HEALTHY, f"store {store}")
