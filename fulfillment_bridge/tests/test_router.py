"""Tests for the order router."""

from datetime import datetime, timedelta, timezone

import pytest

from fulfillment_bridge.core.errors import (
    OrderCreationError,
    OrderValidationError,
    ProviderUnavailableError,
    RateLimitError,
    SupplierError,
    TransportError,
)
from fulfillment_bridge.core.models import (
    Capability,
    LineItem,
    OrderOwner,
    OrderStatus,
    PaymentTiming,
)
from fulfillment_bridge.core.router import OrderRouter
from fulfillment_bridge.core.store import InMemoryCatalogStore

T0 = datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def router(registry, store):
    return OrderRouter(registry, store, timeout=1.0, clock=lambda: T0)


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_disabled_provider_makes_no_calls(self, router, registry, make_provider, order_request):
        provider = make_provider("alibaba", enabled=False)
        registry.register("alibaba", provider)
        with pytest.raises(ProviderUnavailableError):
            await router.create_order(order_request, "alibaba")
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_unknown_provider(self, router, order_request):
        with pytest.raises(ProviderUnavailableError):
            await router.create_order(order_request, "nowhere")

    @pytest.mark.asyncio
    async def test_no_enabled_provider(self, router, registry, make_provider, order_request):
        registry.register("off", make_provider("off", enabled=False))
        with pytest.raises(ProviderUnavailableError):
            await router.create_order(order_request)

    @pytest.mark.asyncio
    async def test_invalid_request_never_dispatched(self, router, registry, make_provider, order_request):
        provider = make_provider("cod")
        registry.register("cod", provider)
        order_request.items = [LineItem(variant_id="v1", quantity=0)]
        order_request.contact.email = "not-an-email"
        with pytest.raises(OrderValidationError) as exc_info:
            await router.create_order(order_request, "cod")
        assert len(exc_info.value.problems) == 2
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_cash_on_delivery_order(self, router, registry, make_provider, order_request, store):
        registry.register("cod", make_provider("cod", settlement={"type": "cash_on_delivery"}))
        result = await router.create_order(order_request, "cod")
        assert result.status is OrderStatus.PENDING_ACCEPTANCE
        assert result.payment_due.timing is PaymentTiming.AT_DELIVERY
        assert result.payment_due.label == "at delivery"
        assert result.provider == "cod"
        assert store.order_results == [result]

    @pytest.mark.asyncio
    async def test_net_terms_due_date(self, router, registry, make_provider, order_request):
        registry.register("net30", make_provider("net30", settlement={"type": "net_terms", "days": 30}))
        result = await router.create_order(order_request, "net30")
        assert result.created_at == T0
        assert result.payment_due.due_at == T0 + timedelta(days=30)

    @pytest.mark.asyncio
    async def test_prepaid_has_no_payment_due(self, router, registry, make_provider, order_request):
        registry.register("printful", make_provider("printful"))
        result = await router.create_order(order_request, "printful")
        assert result.payment_due is None

    @pytest.mark.asyncio
    async def test_default_provider_used(self, router, registry, make_provider, order_request):
        registry.register("off", make_provider("off", enabled=False))
        first = make_provider("first")
        registry.register("first", first)
        registry.register("second", make_provider("second"))
        result = await router.create_order(order_request)
        assert result.provider == "first"
        assert [c[0] for c in first.calls] == ["create_order"]

    @pytest.mark.asyncio
    async def test_idempotency_key_passed_through(self, router, registry, make_provider, order_request):
        provider = make_provider("p")
        registry.register("p", provider)
        order_request.idempotency_key = "attempt-1"
        await router.create_order(order_request, "p")
        await router.create_order(order_request, "p")
        # resubmission is the caller's decision; both attempts reach the supplier
        assert [c[1].idempotency_key for c in provider.calls] == ["attempt-1", "attempt-1"]

    @pytest.mark.asyncio
    async def test_owner_resolved_from_store(self, registry, make_provider, order_request):
        store = InMemoryCatalogStore(owners={"ord-9": OrderOwner("tenant-1", "cust-7")})
        router = OrderRouter(registry, store, clock=lambda: T0)
        registry.register("p", make_provider("p"))
        order_request.internal_order_id = "ord-9"
        result = await router.create_order(order_request, "p")
        assert result.order_id == "ord-9"
        assert result.owner == OrderOwner("tenant-1", "cust-7")

    @pytest.mark.asyncio
    async def test_unrecognised_status_kept(self, router, registry, make_provider, order_request):
        registry.register("p", make_provider("p", raw_status="queued_for_review"))
        result = await router.create_order(order_request, "p")
        assert result.status is OrderStatus.PENDING_ACCEPTANCE
        assert result.raw_status == "queued_for_review"

    @pytest.mark.asyncio
    async def test_missing_capability(self, router, registry, make_provider, order_request):
        provider = make_provider("catalog_only", capabilities=frozenset({Capability.SEARCH}))
        registry.register("catalog_only", provider)
        with pytest.raises(ProviderUnavailableError, match="order_create"):
            await router.create_order(order_request, "catalog_only")
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self, registry, make_provider, order_request, store):
        router = OrderRouter(registry, store, timeout=0.01)
        registry.register("slow", make_provider("slow", delay=1.0))
        with pytest.raises(TransportError) as exc_info:
            await router.create_order(order_request, "slow")
        assert exc_info.value.provider == "slow"
        assert store.order_results == []

    @pytest.mark.asyncio
    async def test_supplier_rejection_becomes_order_creation_error(self, router, registry, make_provider, order_request):
        registry.register("p", make_provider("p", fail=SupplierError("p", 422, "variant out of stock")))
        with pytest.raises(OrderCreationError) as exc_info:
            await router.create_order(order_request, "p")
        assert str(exc_info.value) == "supplier p rejected: variant out of stock"

    @pytest.mark.asyncio
    async def test_rate_limit_passes_through(self, router, registry, make_provider, order_request):
        registry.register("p", make_provider("p", fail=RateLimitError("p", 5.0)))
        with pytest.raises(RateLimitError) as exc_info:
            await router.create_order(order_request, "p")
        assert exc_info.value.retry_after == 5.0

    @pytest.mark.asyncio
    async def test_unexpected_exception_translated(self, router, registry, make_provider, order_request):
        registry.register("p", make_provider("p", fail=KeyError("result")))
        with pytest.raises(TransportError) as exc_info:
            await router.create_order(order_request, "p")
        assert exc_info.value.details["exception"] == "KeyError"
        assert exc_info.value.code == "ADAPTER_ERROR"


class TestOrderStatus:
    @pytest.mark.asyncio
    async def test_status_refresh_is_idempotent(self, router, registry, make_provider):
        registry.register("p", make_provider("p", raw_status="shipped", created_at=T0))
        first = await router.get_order_status("EXT-1", "p")
        second = await router.get_order_status("EXT-1", "p")
        assert first.status is second.status is OrderStatus.SHIPPED
        assert first.to_dict() == second.to_dict()

    @pytest.mark.asyncio
    async def test_net_terms_due_date_survives_later_refresh(self, registry, store, make_provider, order_request):
        now = [T0]
        router = OrderRouter(registry, store, clock=lambda: now[0])
        registry.register("net30", make_provider("net30", settlement={"type": "net_terms", "days": 30}))
        order_request.internal_order_id = "ord-1"
        placed = await router.create_order(order_request, "net30")

        now[0] = T0 + timedelta(days=10)
        refreshed = await router.get_order_status(placed.external_order_id, "net30")

        assert refreshed.created_at == T0
        assert refreshed.payment_due.due_at == T0 + timedelta(days=30)
        assert refreshed.order_id == "ord-1"
        assert store.order_results[-1] is refreshed

    @pytest.mark.asyncio
    async def test_net_terms_unknown_order_date(self, router, registry, make_provider):
        registry.register("net30", make_provider("net30", settlement={"type": "net_terms", "days": 30}))
        result = await router.get_order_status("EXT-9", "net30")
        assert result.created_at is None
        assert result.payment_due.timing is PaymentTiming.ON_DATE
        assert result.payment_due.due_at is None

    @pytest.mark.asyncio
    async def test_status_on_disabled_provider(self, router, registry, make_provider):
        registry.register("p", make_provider("p", enabled=False))
        with pytest.raises(ProviderUnavailableError):
            await router.get_order_status("EXT-1", "p")


class TestCancelOrder:
    @pytest.mark.asyncio
    async def test_cancel(self, router, registry, make_provider):
        registry.register("p", make_provider("p"))
        result = await router.cancel_order("EXT-1", "p")
        assert result.success

    @pytest.mark.asyncio
    async def test_cancel_unsupported_reports_failure(self, router, registry, make_provider):
        provider = make_provider("p", capabilities=frozenset({Capability.ORDER_CREATE}))
        registry.register("p", provider)
        result = await router.cancel_order("EXT-1", "p")
        assert not result.success
        assert "does not support cancellation" in result.message
        assert provider.calls == []


class TestQuoteShipping:
    @pytest.mark.asyncio
    async def test_quote_is_advisory(self, router, registry, make_provider, order_request):
        registry.register("p", make_provider("p"))
        quote = await router.quote_shipping(order_request, "p")
        assert quote.binding is False
        assert quote.live is False
