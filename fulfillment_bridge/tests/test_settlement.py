"""Tests for settlement terms and status normalization."""

from datetime import datetime, timedelta, timezone

import pytest

from fulfillment_bridge.core.models import OrderStatus, PaymentTiming, RawOrder
from fulfillment_bridge.core.settlement import (
    CashOnDelivery,
    Consignment,
    NetTerms,
    Prepaid,
    describe_terms,
    normalize_order,
    normalize_status,
    payment_due,
    terms_from_config,
)

T0 = datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


class TestPaymentDue:
    def test_prepaid_has_nothing_due(self):
        assert payment_due(Prepaid(), T0) is None

    def test_cash_on_delivery_is_due_at_delivery(self):
        due = payment_due(CashOnDelivery(), T0)
        assert due.timing is PaymentTiming.AT_DELIVERY
        assert due.due_at is None
        assert due.label == "at delivery"

    def test_net_terms_due_exactly_n_days_later(self):
        due = payment_due(NetTerms(30), T0)
        assert due.timing is PaymentTiming.ON_DATE
        assert due.due_at == T0 + timedelta(days=30)
        assert due.label == "2024-04-14"

    def test_net_terms_custom_days(self):
        assert payment_due(NetTerms(45), T0).due_at == datetime(2024, 4, 29, 10, 30, tzinfo=timezone.utc)

    def test_net_terms_without_order_date(self):
        due = payment_due(NetTerms(30), None)
        assert due.timing is PaymentTiming.ON_DATE
        assert due.due_at is None

    def test_consignment_due_after_resale(self):
        due = payment_due(Consignment(), T0)
        assert due.timing is PaymentTiming.AFTER_RESALE
        assert due.label == "after resale"

    def test_unknown_terms_rejected(self):
        with pytest.raises(TypeError):
            payment_due("net30", T0)

    def test_negative_net_days_rejected(self):
        with pytest.raises(ValueError):
            NetTerms(-1)


class TestNormalizeStatus:
    STATUS_MAP = {"fulfilled": OrderStatus.SHIPPED, "pending": OrderStatus.PENDING_ACCEPTANCE}

    def test_known_status_case_insensitive(self):
        assert normalize_status("Fulfilled", self.STATUS_MAP) == (OrderStatus.SHIPPED, None)

    def test_unknown_status_keeps_raw_word(self):
        status, raw = normalize_status("on_the_boat", self.STATUS_MAP)
        assert status is OrderStatus.PENDING_ACCEPTANCE
        assert raw == "on_the_boat"

    def test_empty_status(self):
        assert normalize_status("", self.STATUS_MAP)[0] is OrderStatus.PENDING_ACCEPTANCE


class TestNormalizeOrder:
    def test_supplier_timestamp_wins(self):
        supplier_time = T0 - timedelta(days=2)
        raw = RawOrder(external_order_id="X1", raw_status="pending", created_at=supplier_time)
        result = normalize_order(NetTerms(30), raw, "alibaba", "o1", {}, T0)
        assert result.created_at == supplier_time
        assert result.payment_due.due_at == supplier_time + timedelta(days=30)

    def test_fallback_timestamp(self):
        raw = RawOrder(external_order_id="X1", raw_status="pending")
        result = normalize_order(Prepaid(), raw, "printful", "o1", {}, T0)
        assert result.created_at == T0
        assert result.payment_due is None
        assert result.provider == "printful"
        assert result.order_id == "o1"


class TestTermsFromConfig:
    def test_absent_block(self):
        assert terms_from_config(None) is None
        assert terms_from_config({}) is None

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ({"type": "prepaid"}, Prepaid()),
            ({"type": "cash-on-delivery"}, CashOnDelivery()),
            ({"type": "cod"}, CashOnDelivery()),
            ({"type": "consignment"}, Consignment()),
            ({"type": "net_terms", "days": 45}, NetTerms(45)),
        ],
    )
    def test_parse(self, raw, expected):
        assert terms_from_config(raw) == expected

    def test_net_terms_default_days(self):
        assert terms_from_config({"type": "net_terms"}, default_days=60) == NetTerms(60)

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="barter"):
            terms_from_config({"type": "barter"})

    def test_describe(self):
        assert describe_terms(NetTerms(30)) == {"type": "net_terms", "days": 30}
        assert describe_terms(Prepaid()) == {"type": "prepaid"}
