"""
Alibaba (1688 open platform) adapter: B2B wholesale on net terms.

Orders are placed against the buyer's standing credit line and fall due a
fixed number of days after the order date (30 unless the profile says
otherwise).  Every call is a signed POST to the ``param2`` gateway; the
supplier does not accept inventory pushes from dropshippers.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from fulfillment_bridge.core.adapter import HTTPProvider, parse_money
from fulfillment_bridge.core.auth import SignedParamsAuth
from fulfillment_bridge.core.errors import (
    HealthCheckFailure,
    ProductNotFoundError,
    ProviderUnavailableError,
    SupplierError,
    TransportError,
)
from fulfillment_bridge.core.models import (
    CancelResult,
    Capability,
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
from fulfillment_bridge.core.settlement import NetTerms


CATEGORY_IDS = {
    "electronics": "509",
    "fashion": "1420",
    "home": "1503",
    "beauty": "1501",
    "sports": "200001395",
    "automotive": "43",
    "jewelry": "1509",
}

_NOT_FOUND_CODES = {"404", "ProductNotExist", "OfferNotExist"}

# 1688 dates look like 20240315103000000+0800
_DATE_FORMAT = "%Y%m%d%H%M%S%f%z"


def _parse_1688_date(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.strptime(str(value), _DATE_FORMAT).astimezone(timezone.utc)
    except ValueError:
        return None


class AlibabaAdapter(HTTPProvider):
    """Adapter for the Alibaba 1688 open platform."""

    system_name = "alibaba"
    default_base_url = "https://gw.open.1688.com/openapi"
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
    default_settlement = NetTerms(30)
    static_delivery_estimate = "15 days"
    status_map = {
        "waitbuyerpay": OrderStatus.PENDING_ACCEPTANCE,
        "waitsellerconfirm": OrderStatus.PENDING_ACCEPTANCE,
        "waitsellersend": OrderStatus.ACCEPTED,
        "waitsellerpush": OrderStatus.IN_FULFILLMENT,
        "waitbuyerreceive": OrderStatus.SHIPPED,
        "waitlogisticstakein": OrderStatus.IN_FULFILLMENT,
        "confirm_goods": OrderStatus.DELIVERED,
        "success": OrderStatus.DELIVERED,
        "cancel": OrderStatus.CANCELLED,
        "terminated": OrderStatus.CANCELLED,
    }

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self._delivery_days = int(config.get("delivery_days", 15))

    # -- transport --------------------------------------------------------

    async def _call(self, api: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Invoke one signed gateway API and unwrap its business envelope."""
        auth = self._auth
        if auth is None:
            raise ProviderUnavailableError(
                f"Provider {self.name!r} has no credentials configured", self.name
            )
        if not isinstance(auth, SignedParamsAuth):
            raise TypeError("alibaba profiles require auth type 'signed_params'")
        api_path = f"param2/1/{api}/{auth.app_key}"
        # nested structures travel as JSON strings and are signed that way
        flat = {
            k: json.dumps(v, ensure_ascii=False) if isinstance(v, (dict, list)) else v
            for k, v in (params or {}).items()
        }
        body = await self._json(
            "POST",
            f"/{api_path}",
            data=auth.signed_params(api_path, flat),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if body.get("success") is False or body.get("error_code") or body.get("errorCode"):
            code = str(body.get("error_code") or body.get("errorCode") or "")
            raise SupplierError(
                self.name,
                404 if code in _NOT_FOUND_CODES else 400,
                body.get("error_message") or body.get("errorMessage") or f"Alibaba error {code}",
                body,
            )
        return body

    # -- transforms -------------------------------------------------------

    def _to_item(self, offer: dict[str, Any], category: str = "") -> CatalogItem:
        infos = offer.get("saledProductInfos") or offer.get("skuInfos") or []
        price = parse_money(infos[0].get("price")) if infos else parse_money(offer.get("price"))
        images = (offer.get("image") or {}).get("images") or []
        return CatalogItem(
            external_id=str(offer.get("offerId") or offer.get("productID") or ""),
            name=offer.get("subject", ""),
            description=offer.get("details") or offer.get("subject", ""),
            price=price,
            images=tuple(images),
            variants=tuple(
                Variant(
                    external_id=str(info.get("specId") or info.get("skuId") or ""),
                    attributes={
                        str(a.get("attributeName", "")): str(a.get("attributeValue", ""))
                        for a in info.get("specAttrs") or info.get("attributes") or []
                        if isinstance(a, dict)
                    },
                    price_delta=parse_money(info.get("price")) - price if info.get("price") else Decimal("0"),
                )
                for info in infos
            ),
            category=category,
            currency="CNY",
            provider=self.name,
        )

    # -- catalog ----------------------------------------------------------

    async def search_catalog(self, query: CatalogQuery) -> list[CatalogItem]:
        body = await self._call(
            "cn.alibaba.open/offer.search",
            {
                "keywords": query.keyword,
                "categoryId": CATEGORY_IDS.get((query.category or "").lower(), ""),
                "pageIndex": query.page,
                "pageSize": query.limit,
                "orderBy": "gmv_desc",
            },
        )
        offers = (body.get("result") or {}).get("offers") or []
        items = [self._to_item(o, query.category or "") for o in offers]
        return [i for i in items if query.matches_price(i.price)]

    async def get_item(self, external_id: str) -> CatalogItem:
        try:
            body = await self._call(
                "com.alibaba.product/alibaba.product.get", {"productID": external_id}
            )
        except SupplierError as exc:
            if exc.status_code == 404:
                raise ProductNotFoundError(self.name, external_id) from exc
            raise
        product = body.get("productInfo") or body.get("result") or {}
        if not product:
            raise ProductNotFoundError(self.name, external_id)
        return self._to_item(product)

    # -- orders -----------------------------------------------------------

    def _address_param(self, request: OrderRequest) -> dict[str, Any]:
        addr = request.shipping_address
        return {
            "fullName": addr.name,
            "mobile": request.contact.phone,
            "phone": request.contact.phone,
            "postCode": addr.postal_code,
            "provinceText": addr.region,
            "cityText": addr.city,
            "address": " ".join(filter(None, [addr.line1, addr.line2])),
        }

    async def create_order(self, request: OrderRequest) -> RawOrder:
        body = await self._call(
            "com.alibaba.trade/alibaba.trade.fastCreateOrder",
            {
                "flow": "general",
                "addressParam": self._address_param(request),
                "cargoParamList": [
                    {"offerId": i.variant_id, "specId": i.variant_id, "quantity": i.quantity}
                    for i in request.items
                ],
                "message": request.notes or "Dropship order",
                "outOrderId": request.idempotency_key or request.internal_order_id or "",
                "tradeType": "creditbuy",
            },
        )
        result = body.get("result") or {}
        return RawOrder(
            external_order_id=str(result.get("orderId", "")),
            raw_status=result.get("status") or "waitsellerconfirm",
            cost=parse_money(result["totalSuccessAmount"]) / 100 if result.get("totalSuccessAmount") else None,
        )

    async def get_order_status(self, external_order_id: str) -> RawOrder:
        body = await self._call(
            "com.alibaba.trade/alibaba.trade.get.buyerView",
            {"webSite": "1688", "orderId": external_order_id},
        )
        base = (body.get("result") or {}).get("baseInfo") or {}
        logistics = ((body.get("result") or {}).get("nativeLogistics") or {}).get("logisticsItems") or []
        return RawOrder(
            external_order_id=str(base.get("idOfStr") or external_order_id),
            raw_status=base.get("status", ""),
            tracking_number=logistics[0].get("logisticsBillNo") if logistics else None,
            created_at=_parse_1688_date(base.get("createTime")),
            cost=parse_money(base["totalAmount"]) if base.get("totalAmount") is not None else None,
        )

    async def cancel_order(self, external_order_id: str) -> CancelResult:
        try:
            await self._call(
                "com.alibaba.trade/alibaba.trade.cancel",
                {"webSite": "1688", "tradeID": external_order_id, "cancelReason": "buyerCancel"},
            )
        except SupplierError as exc:
            return CancelResult(self.name, external_order_id, False, exc.message)
        return CancelResult(self.name, external_order_id, True, "Order cancelled")

    # -- shipping / health -----------------------------------------------

    async def quote_shipping(self, request: OrderRequest) -> ShippingQuote:
        try:
            body = await self._call(
                "cn.alibaba.open/trade.order.getLogisticsInfo",
                {
                    "addressParam": {
                        "provinceText": request.shipping_address.region,
                        "cityText": request.shipping_address.city,
                    },
                    "cargoParamList": [
                        {"offerId": i.variant_id, "quantity": i.quantity} for i in request.items
                    ],
                },
            )
        except (SupplierError, TransportError):
            # rates are advisory; fall back to the usual lead time
            return ShippingQuote(self.name, Decimal("0"), self._delivery_date(self._delivery_days))
        days = int(body.get("deliveryTime") or self._delivery_days)
        return ShippingQuote(
            self.name, parse_money(body.get("freight")), self._delivery_date(days), live=True
        )

    @staticmethod
    def _delivery_date(days: int) -> str:
        return (datetime.now(timezone.utc) + timedelta(days=days)).date().isoformat()

    async def check_health(self) -> HealthProbe:
        try:
            body = await self._call("cn.alibaba.open/system.currentTime")
        except Exception as exc:
            raise HealthCheckFailure(str(exc), self.name) from exc
        return HealthProbe(HealthStatus.HEALTHY, f"gateway time {body.get('currentTime', '?')}")
