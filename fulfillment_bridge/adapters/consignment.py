"""
Consignment partner: goods ship on the partner's books and are only paid
for once the retailer resells them to an end customer.

Resale confirmation arrives later through the partner's settlement feed,
which this layer does not consume.
"""

from __future__ import annotations

from typing import Any

from fulfillment_bridge.adapters.partner import PartnerAPIAdapter
from fulfillment_bridge.core.models import OrderRequest, OrderStatus
from fulfillment_bridge.core.settlement import Consignment


class ConsignmentAdapter(PartnerAPIAdapter):
    system_name = "consignment"
    default_settlement = Consignment()
    static_delivery_estimate = "5-10 days"
    status_map = {
        **PartnerAPIAdapter.status_map,
        "requested": OrderStatus.PENDING_ACCEPTANCE,
        "approved": OrderStatus.ACCEPTED,
        "allocated": OrderStatus.IN_FULFILLMENT,
        "consigned": OrderStatus.SHIPPED,
        "received": OrderStatus.DELIVERED,
    }

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self._agreement_id: str = str(config.get("agreement_id", "") or "")

    def _order_payload(self, request: OrderRequest) -> dict[str, Any]:
        payload = super()._order_payload(request)
        payload["terms"] = {"type": "consignment", "agreement_id": self._agreement_id or None}
        return payload
