"""
Boundary with the catalog/order persistence store.

The orchestration layer never performs storage I/O of its own; it goes
through these calls.  ``InMemoryCatalogStore`` backs the CLI, the
MCP server and the tests.
"""

from __future__ import annotations

import abc
import asyncio
import uuid

from fulfillment_bridge.core.models import CatalogItem, OrderOwner, OrderResult


class CatalogStore(abc.ABC):
    @abc.abstractmethod
    async def save_imported_item(self, item: CatalogItem) -> str:
        """Persist an imported item (superseding any earlier import) and return its local id."""

    @abc.abstractmethod
    async def find_order_owner(self, internal_order_id: str) -> OrderOwner | None:
        """Tenant/customer context of an internal order, or None if unknown."""

    @abc.abstractmethod
    async def record_order_result(self, result: OrderResult) -> None:
        """Persist the outcome of an order-create or status refresh."""

    @abc.abstractmethod
    async def find_order_result(
        self, provider: str, external_order_id: str
    ) -> OrderResult | None:
        """Latest recorded result for a supplier order, or None if never recorded."""


class InMemoryCatalogStore(CatalogStore):
    def __init__(self, owners: dict[str, OrderOwner] | None = None) -> None:
        self._lock = asyncio.Lock()
        self.items: dict[tuple[str, str], tuple[str, CatalogItem]] = {}
        self.owners: dict[str, OrderOwner] = dict(owners or {})
        self.order_results: list[OrderResult] = []

    async def save_imported_item(self, item: CatalogItem) -> str:
        key = (item.provider, item.external_id)
        async with self._lock:
            existing = self.items.get(key)
            local_id = existing[0] if existing else f"local_{uuid.uuid4().hex[:12]}"
            self.items[key] = (local_id, item)
        return local_id

    async def find_order_owner(self, internal_order_id: str) -> OrderOwner | None:
        return self.owners.get(internal_order_id)

    async def record_order_result(self, result: OrderResult) -> None:
        async with self._lock:
            self.order_results.append(result)

    async def find_order_result(
        self, provider: str, external_order_id: str
    ) -> OrderResult | None:
        for result in reversed(self.order_results):
            if result.provider == provider and result.external_order_id == external_order_id:
                return result
        return None
