"""
Cash-on-delivery supplier: orders are accepted unpaid and settled by the
courier at the door.

Couriers call ahead before delivering a COD parcel, so by default orders
without a contact phone are refused before anything is sent.  Partners that
do not need one can set ``options.require_phone: false``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from fulfillment_bridge.adapters.partner import PartnerAPIAdapter
from fulfillment_bridge.core.errors import OrderCreationError
from fulfillment_bridge.core.models import OrderRequest, OrderStatus, RawOrder
from fulfillment_bridge.core.settlement import CashOnDelivery


class CashOnDeliveryAdapter(PartnerAPIAdapter):
    system_name = "cod"
    default_settlement = CashOnDelivery()
    static_shipping_cost = Decimal("3.50")
    static_delivery_estimate = "2-5 days"
    status_map = {
        **PartnerAPIAdapter.status_map,
        "awaiting_confirmation": OrderStatus.PENDING_ACCEPTANCE,
        "confirmed": OrderStatus.ACCEPTED,
        "out_for_delivery": OrderStatus.SHIPPED,
        "delivered_paid": OrderStatus.DELIVERED,
        "refused_at_door": OrderStatus.CANCELLED,
    }

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self._require_phone = bool(config.get("require_phone", True))

    def _order_payload(self, request: OrderRequest) -> dict[str, Any]:
        payload = super()._order_payload(request)
        priced = [i for i in request.items if i.unit_price is not None]
        collect = (
            sum((i.unit_price * i.quantity for i in priced), Decimal("0"))
            if len(priced) == len(request.items)
            else None
        )
        payload["payment"] = {
            "method": "cash_on_delivery",
            "collect_amount": str(collect) if collect is not None else None,
        }
        return payload

    async def create_order(self, request: OrderRequest) -> RawOrder:
        if self._require_phone and not request.contact.phone:
            raise OrderCreationError(self.name, "a contact phone number is required for cash on delivery")
        return await super().create_order(request)
