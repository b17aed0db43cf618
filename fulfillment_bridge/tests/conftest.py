"""Shared fakes and fixtures for engine tests."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

import pytest

from fulfillment_bridge.core.adapter import BaseProvider
from fulfillment_bridge.core.errors import ProductNotFoundError
from fulfillment_bridge.core.models import (
    Address,
    CancelResult,
    CatalogItem,
    CatalogQuery,
    Contact,
    HealthProbe,
    HealthStatus,
    InventoryUpdate,
    LineItem,
    OrderRequest,
    OrderStatus,
    RawOrder,
)
from fulfillment_bridge.core.registry import ProviderRegistry
from fulfillment_bridge.core.store import InMemoryCatalogStore


class FakeProvider(BaseProvider):
    """
    In-process supplier.  Every contract call is appended to ``calls``; an
    empty list after an operation means no supplier traffic happened.
    """

    system_name = "fake"
    status_map = {
        "pending": OrderStatus.PENDING_ACCEPTANCE,
        "accepted": OrderStatus.ACCEPTED,
        "shipped": OrderStatus.SHIPPED,
        "cancelled": OrderStatus.CANCELLED,
    }

    def __init__(
        self,
        name: str = "fake",
        *,
        enabled: bool = True,
        settlement: dict[str, Any] | None = None,
        capabilities: frozenset | None = None,
        items: list[CatalogItem] | None = None,
        raw_status: str = "pending",
        created_at=None,
        fail: Exception | None = None,
        delay: float = 0.0,
        rejected: dict[str, str] | None = None,
        health: HealthProbe | None = None,
    ) -> None:
        auth = {"type": "api_key", "api_key": "secret"} if enabled else {"type": "api_key"}
        super().__init__({"name": name, "auth": auth, "settlement": settlement})
        if capabilities is not None:
            self.capabilities = capabilities
        self.items = items if items is not None else []
        self.raw_status = raw_status
        self.created_at = created_at
        self.fail = fail
        self.delay = delay
        self.rejected = rejected or {}
        self.health = health or HealthProbe(HealthStatus.HEALTHY, "ok")
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    async def _network(self, operation: str, arg: Any = None) -> None:
        self.calls.append((operation, arg))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail is not None:
            raise self.fail

    async def search_catalog(self, query: CatalogQuery) -> list[CatalogItem]:
        await self._network("search_catalog", query)
        return list(self.items)

    async def get_item(self, external_id: str) -> CatalogItem:
        await self._network("get_item", external_id)
        for item in self.items:
            if item.external_id == external_id:
                return item
        raise ProductNotFoundError(self.name, external_id)

    async def create_order(self, request: OrderRequest) -> RawOrder:
        await self._network("create_order", request)
        return RawOrder(
            external_order_id=f"{self.name}-ext-1",
            raw_status=self.raw_status,
            created_at=self.created_at,
        )

    async def get_order_status(self, external_order_id: str) -> RawOrder:
        await self._network("get_order_status", external_order_id)
        return RawOrder(
            external_order_id=external_order_id,
            raw_status=self.raw_status,
            created_at=self.created_at,
        )

    async def cancel_order(self, external_order_id: str) -> CancelResult:
        await self._network("cancel_order", external_order_id)
        return CancelResult(self.name, external_order_id, True, "cancelled")

    async def update_inventory(self, updates: list[InventoryUpdate]) -> dict[str, str]:
        await self._network("update_inventory", list(updates))
        return {u.variant_id: self.rejected[u.variant_id] for u in updates if u.variant_id in self.rejected}

    async def check_health(self) -> HealthProbe:
        await self._network("check_health")
        return self.health

    async def close(self) -> None:
        self.closed = True


def make_item(external_id: str, provider: str = "fake", price: str = "10.00") -> CatalogItem:
    return CatalogItem(
        external_id=external_id,
        name=f"Item {external_id}",
        price=Decimal(price),
        provider=provider,
    )


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def store():
    return InMemoryCatalogStore()


@pytest.fixture
def registry():
    return ProviderRegistry()


@pytest.fixture
def order_request():
    return OrderRequest(
        items=[LineItem(variant_id="v1", quantity=2)],
        shipping_address=Address(
            name="Ada Lovelace",
            line1="12 St James's Square",
            city="London",
            region="LND",
            postal_code="SW1Y 4JH",
            country="GB",
        ),
        contact=Contact(name="Ada Lovelace", email="ada@example.com", phone="+44 20 7946 0000"),
    )
