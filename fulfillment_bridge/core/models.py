"""
Supplier-neutral data model.

Adapters translate each supplier's payloads into these types and the
engines only ever hand these back to callers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from fulfillment_bridge.core.errors import OrderValidationError


class Capability(Enum):
    SEARCH = "search"
    IMPORT = "import"
    ORDER_CREATE = "order_create"
    ORDER_STATUS = "order_status"
    ORDER_CANCEL = "order_cancel"
    INVENTORY_UPDATE = "inventory_update"
    SHIPPING_QUOTE = "shipping_quote"


ALL_CAPABILITIES = frozenset(Capability)


class OrderStatus(Enum):
    """Canonical order lifecycle shared by every supplier."""

    CREATED = "created"
    PENDING_ACCEPTANCE = "pending_acceptance"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    IN_FULFILLMENT = "in_fulfillment"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.CREATED: frozenset({OrderStatus.PENDING_ACCEPTANCE}),
    OrderStatus.PENDING_ACCEPTANCE: frozenset(
        {OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELLED}
    ),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.IN_FULFILLMENT, OrderStatus.CANCELLED}),
    OrderStatus.IN_FULFILLMENT: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new == current or new in _TRANSITIONS[current]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -- catalog ----------------------------------------------------------------


@dataclass(frozen=True)
class Variant:
    external_id: str
    attributes: dict[str, str] = field(default_factory=dict)
    price_delta: Decimal = Decimal("0")
    sku: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "attributes": dict(self.attributes),
            "price_delta": str(self.price_delta),
            "sku": self.sku,
        }


@dataclass(frozen=True)
class CatalogItem:
    """A supplier product as seen by this layer.  Never mutated in place."""

    external_id: str
    name: str
    price: Decimal
    provider: str
    description: str = ""
    images: tuple[str, ...] = ()
    variants: tuple[Variant, ...] = ()
    category: str = ""
    currency: str = "USD"

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"price must be non-negative, got {self.price}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "name": self.name,
            "description": self.description,
            "price": str(self.price),
            "currency": self.currency,
            "category": self.category,
            "images": list(self.images),
            "variants": [v.to_dict() for v in self.variants],
            "provider": self.provider,
        }


@dataclass
class CatalogQuery:
    keyword: str = ""
    category: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    page: int = 1
    limit: int = 20

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "CatalogQuery":
        return cls(
            keyword=d.get("keyword", ""),
            category=d.get("category"),
            min_price=Decimal(str(d["min_price"])) if d.get("min_price") is not None else None,
            max_price=Decimal(str(d["max_price"])) if d.get("max_price") is not None else None,
            page=max(int(d.get("page", 1)), 1),
            limit=int(d.get("limit", 20)),
        )

    def matches_price(self, price: Decimal) -> bool:
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        return True


@dataclass
class ImportResult:
    provider: str
    external_id: str
    success: bool
    local_id: str | None = None
    storefront_id: str | None = None
    error: str | None = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "external_id": self.external_id,
            "success": self.success,
            "local_id": self.local_id,
            "storefront_id": self.storefront_id,
            "error": self.error,
            "message": self.message,
        }


@dataclass
class SoftFailure:
    """A provider that failed inside a fan-out without failing the fan-out."""

    provider: str
    error: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"provider": self.provider, "error": self.error, "message": self.message}


@dataclass
class SearchResult:
    items: list[CatalogItem] = field(default_factory=list)
    failures: list[SoftFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "failures": [f.to_dict() for f in self.failures],
        }


# -- orders -----------------------------------------------------------------


@dataclass
class LineItem:
    variant_id: str
    quantity: int
    unit_price: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
        }


@dataclass
class Address:
    name: str
    line1: str
    city: str
    region: str
    postal_code: str
    country: str
    line2: str = ""

    REQUIRED = ("name", "line1", "city", "region", "postal_code", "country")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "region": self.region,
            "postal_code": self.postal_code,
            "country": self.country,
        }


@dataclass
class Contact:
    name: str
    email: str
    phone: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email, "phone": self.phone}


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class OrderRequest:
    items: list[LineItem]
    shipping_address: Address
    contact: Contact
    notes: str = ""
    shipping_method: str | None = None
    internal_order_id: str | None = None
    # forwarded to the supplier; this layer does not deduplicate on it
    idempotency_key: str | None = None

    def validate(self) -> None:
        problems: list[str] = []
        if not self.items:
            problems.append("order has no line items")
        for index, item in enumerate(self.items):
            if not item.variant_id:
                problems.append(f"item {index}: variant id is required")
            if item.quantity < 1:
                problems.append(f"item {index}: quantity must be at least 1")
        for attr in Address.REQUIRED:
            if not getattr(self.shipping_address, attr, ""):
                problems.append(f"shipping address: {attr} is required")
        if not self.contact.name:
            problems.append("contact: name is required")
        if not self.contact.email:
            problems.append("contact: email is required")
        elif not _EMAIL_RE.match(self.contact.email):
            problems.append(f"contact: malformed email {self.contact.email!r}")
        if problems:
            raise OrderValidationError(problems)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "OrderRequest":
        addr = d.get("shipping_address", {})
        contact = d.get("contact", {})
        return cls(
            items=[
                LineItem(
                    variant_id=str(i.get("variant_id", "")),
                    quantity=int(i.get("quantity", 0)),
                    unit_price=Decimal(str(i["unit_price"])) if i.get("unit_price") is not None else None,
                )
                for i in d.get("items", [])
            ],
            shipping_address=Address(
                name=addr.get("name", ""),
                line1=addr.get("line1", ""),
                line2=addr.get("line2", ""),
                city=addr.get("city", ""),
                region=addr.get("region", ""),
                postal_code=addr.get("postal_code", ""),
                country=addr.get("country", ""),
            ),
            contact=Contact(
                name=contact.get("name", ""),
                email=contact.get("email", ""),
                phone=contact.get("phone", ""),
            ),
            notes=d.get("notes", ""),
            shipping_method=d.get("shipping_method"),
            internal_order_id=d.get("internal_order_id"),
            idempotency_key=d.get("idempotency_key"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "shipping_address": self.shipping_address.to_dict(),
            "contact": self.contact.to_dict(),
            "notes": self.notes,
            "shipping_method": self.shipping_method,
            "internal_order_id": self.internal_order_id,
            "idempotency_key": self.idempotency_key,
        }


@dataclass
class RawOrder:
    """An order as the supplier reported it, before normalization."""

    external_order_id: str
    raw_status: str
    tracking_number: str | None = None
    tracking_url: str | None = None
    created_at: datetime | None = None
    cost: Decimal | None = None
    details: dict[str, Any] = field(default_factory=dict)


class PaymentTiming(Enum):
    AT_DELIVERY = "at_delivery"
    ON_DATE = "on_date"
    AFTER_RESALE = "after_resale"


@dataclass(frozen=True)
class PaymentDue:
    timing: PaymentTiming
    due_at: datetime | None = None

    @property
    def label(self) -> str:
        if self.timing is PaymentTiming.AT_DELIVERY:
            return "at delivery"
        if self.timing is PaymentTiming.AFTER_RESALE:
            return "after resale"
        return self.due_at.date().isoformat() if self.due_at else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "timing": self.timing.value,
            "due_at": self.due_at.isoformat() if self.due_at else None,
            "label": self.label,
        }


@dataclass
class OrderOwner:
    """Tenant/customer context of an internal order."""

    tenant_id: str
    customer_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"tenant_id": self.tenant_id, "customer_id": self.customer_id}


@dataclass
class OrderResult:
    order_id: str
    external_order_id: str
    provider: str
    status: OrderStatus
    raw_status: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    payment_due: PaymentDue | None = None
    created_at: datetime | None = None
    cost: Decimal | None = None
    owner: OrderOwner | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "external_order_id": self.external_order_id,
            "provider": self.provider,
            "status": self.status.value,
            "raw_status": self.raw_status,
            "tracking_number": self.tracking_number,
            "tracking_url": self.tracking_url,
            "payment_due": self.payment_due.to_dict() if self.payment_due else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "cost": str(self.cost) if self.cost is not None else None,
            "owner": self.owner.to_dict() if self.owner else None,
        }


@dataclass
class CancelResult:
    provider: str
    external_order_id: str
    success: bool
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "external_order_id": self.external_order_id,
            "success": self.success,
            "message": self.message,
        }


@dataclass
class ShippingQuote:
    """Advisory shipping estimate; never binding."""

    provider: str
    cost: Decimal
    estimated_delivery: str
    live: bool = False

    @property
    def binding(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "cost": str(self.cost),
            "estimated_delivery": self.estimated_delivery,
            "live": self.live,
            "binding": self.binding,
        }


# -- inventory --------------------------------------------------------------


@dataclass(frozen=True)
class InventoryUpdate:
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class InventorySyncRequest:
    product_id: str
    variant_id: str
    provider: str
    quantity: int

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "InventorySyncRequest":
        return cls(
            product_id=str(d.get("product_id", "")),
            variant_id=str(d["variant_id"]),
            provider=d["provider"],
            quantity=int(d["quantity"]),
        )


class InventoryOutcome(Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    PROVIDER_UNAVAILABLE = "provider_unavailable"


@dataclass
class InventoryUpdateRecord:
    product_id: str
    variant_id: str
    provider: str
    quantity: int
    outcome: InventoryOutcome
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "provider": self.provider,
            "quantity": self.quantity,
            "outcome": self.outcome.value,
            "reason": self.reason,
        }


# -- health -----------------------------------------------------------------


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass
class HealthProbe:
    status: HealthStatus
    detail: str = ""


@dataclass
class HealthRecord:
    provider: str
    status: HealthStatus
    detail: str
    checked_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status.value,
            "detail": self.detail,
            "checked_at": self.checked_at.isoformat(),
        }
