"""Supplier adapters for Printful, Spocket, DSers, Alibaba, and partner APIs."""

from fulfillment_bridge.adapters.alibaba import AlibabaAdapter
from fulfillment_bridge.adapters.cod import CashOnDeliveryAdapter
from fulfillment_bridge.adapters.consignment import ConsignmentAdapter
from fulfillment_bridge.adapters.dsers import DSersAdapter
from fulfillment_bridge.adapters.partner import PartnerAPIAdapter
from fulfillment_bridge.adapters.printful import PrintfulAdapter
from fulfillment_bridge.adapters.spocket import SpocketAdapter

ADAPTER_REGISTRY: dict[str, type] = {
    "printful": PrintfulAdapter,
    "spocket": SpocketAdapter,
    "dsers": DSersAdapter,
    "alibaba": AlibabaAdapter,
    "partner": PartnerAPIAdapter,
    "cod": CashOnDeliveryAdapter,
    "consignment": ConsignmentAdapter,
}

__all__ = [
    "PrintfulAdapter",
    "SpocketAdapter",
    "DSersAdapter",
    "AlibabaAdapter",
    "PartnerAPIAdapter",
    "CashOnDeliveryAdapter",
    "ConsignmentAdapter",
    "ADAPTER_REGISTRY",
]
