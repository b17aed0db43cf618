"""
Settlement policy: how and when a supplier gets paid for an order.

Each supplier settles in one of four ways.  The kinds are a closed set of
frozen dataclasses so every function here can dispatch on them exhaustively;
nothing in this module performs I/O.

    Prepaid          funds captured when the order is created
    CashOnDelivery   nothing charged until physical delivery
    NetTerms(days)   charged against a credit line, due N days after the order
    Consignment      nothing charged until the goods are resold
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Union

from fulfillment_bridge.core.models import (
    OrderResult,
    OrderStatus,
    PaymentDue,
    PaymentTiming,
    RawOrder,
)

DEFAULT_NET_TERMS_DAYS = 30


@dataclass(frozen=True)
class Prepaid:
    kind = "prepaid"


@dataclass(frozen=True)
class CashOnDelivery:
    kind = "cash_on_delivery"


@dataclass(frozen=True)
class NetTerms:
    days: int = DEFAULT_NET_TERMS_DAYS
    kind = "net_terms"

    def __post_init__(self) -> None:
        if self.days < 0:
            raise ValueError(f"net terms days must be non-negative, got {self.days}")


@dataclass(frozen=True)
class Consignment:
    kind = "consignment"


SettlementTerms = Union[Prepaid, CashOnDelivery, NetTerms, Consignment]


def payment_due(terms: SettlementTerms, created_at: datetime | None) -> PaymentDue | None:
    """
    Return when payment falls due, or None when it is already settled.

    Net terms count from *created_at*; with no known order date the due date
    is left unset.
    """
    if isinstance(terms, Prepaid):
        return None
    if isinstance(terms, CashOnDelivery):
        return PaymentDue(PaymentTiming.AT_DELIVERY)
    if isinstance(terms, NetTerms):
        if created_at is None:
            return PaymentDue(PaymentTiming.ON_DATE)
        return PaymentDue(PaymentTiming.ON_DATE, created_at + timedelta(days=terms.days))
    if isinstance(terms, Consignment):
        return PaymentDue(PaymentTiming.AFTER_RESALE)
    raise TypeError(f"Unknown settlement terms: {terms!r}")


def normalize_status(
    raw_status: str, status_map: dict[str, OrderStatus]
) -> tuple[OrderStatus, str | None]:
    """
    Map a supplier status word onto the canonical lifecycle.

    Returns the canonical status and, when the raw word was not recognised,
    the raw word itself so it is never lost.
    """
    key = (raw_status or "").strip().lower()
    status = status_map.get(key)
    if status is None:
        return OrderStatus.PENDING_ACCEPTANCE, raw_status
    return status, None


def normalize_order(
    terms: SettlementTerms,
    raw: RawOrder,
    provider: str,
    order_id: str,
    status_map: dict[str, OrderStatus],
    created_at: datetime | None,
) -> OrderResult:
    """
    Build the common ``OrderResult`` from a supplier's raw order.

    *created_at* is the fallback order timestamp; a timestamp reported by the
    supplier takes precedence since net-terms due dates count from it.
    """
    status, unrecognised = normalize_status(raw.raw_status, status_map)
    ordered_at = raw.created_at or created_at
    return OrderResult(
        order_id=order_id,
        external_order_id=raw.external_order_id,
        provider=provider,
        status=status,
        raw_status=unrecognised,
        tracking_number=raw.tracking_number,
        tracking_url=raw.tracking_url,
        payment_due=payment_due(terms, ordered_at),
        created_at=ordered_at,
        cost=raw.cost,
    )


def terms_from_config(
    raw: dict[str, Any] | None, default_days: int = DEFAULT_NET_TERMS_DAYS
) -> SettlementTerms | None:
    """Parse a ``settlement:`` config block.  None when the block is absent."""
    if not raw:
        return None
    kind = str(raw.get("type", "")).lower().replace("-", "_")
    if kind == "prepaid":
        return Prepaid()
    if kind in ("cash_on_delivery", "cod"):
        return CashOnDelivery()
    if kind in ("net_terms", "net"):
        return NetTerms(days=int(raw.get("days", default_days)))
    if kind == "consignment":
        return Consignment()
    raise ValueError(f"Unknown settlement type: {raw.get('type')!r}")


def describe_terms(terms: SettlementTerms) -> dict[str, Any]:
    if isinstance(terms, NetTerms):
        return {"type": terms.kind, "days": terms.days}
    return {"type": terms.kind}
