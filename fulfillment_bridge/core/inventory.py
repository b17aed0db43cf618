"""
Inventory sync engine: push stock levels to suppliers in per-provider batches.
"""

from __future__ import annotations

import asyncio
import logging

from fulfillment_bridge.core.adapter import DEFAULT_TIMEOUT
from fulfillment_bridge.core.errors import translate_error
from fulfillment_bridge.core.models import (
    Capability,
    InventoryOutcome,
    InventorySyncRequest,
    InventoryUpdate,
    InventoryUpdateRecord,
)
from fulfillment_bridge.core.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def _record(
    req: InventorySyncRequest, outcome: InventoryOutcome, reason: str | None = None
) -> InventoryUpdateRecord:
    return InventoryUpdateRecord(
        product_id=req.product_id,
        variant_id=req.variant_id,
        provider=req.provider,
        quantity=req.quantity,
        outcome=outcome,
        reason=reason,
    )


def _negative(req: InventorySyncRequest) -> InventoryUpdateRecord | None:
    if req.quantity < 0:
        return _record(req, InventoryOutcome.REJECTED, f"negative quantity {req.quantity}")
    return None


class InventorySyncEngine:
    def __init__(self, registry: ProviderRegistry, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._registry = registry
        self._timeout = timeout

    async def sync(self, updates: list[InventorySyncRequest]) -> list[InventoryUpdateRecord]:
        """
        Apply *updates*, one batched supplier call per provider.

        Provider batches run concurrently; the returned records line up with
        *updates* one-to-one.  Nothing here raises because of one provider.
        """
        batches: dict[str, list[int]] = {}
        for index, req in enumerate(updates):
            batches.setdefault(req.provider, []).append(index)

        records: list[InventoryUpdateRecord | None] = [None] * len(updates)
        batch_results = await asyncio.gather(
            *(
                self._sync_provider(name, [updates[i] for i in indexes])
                for name, indexes in batches.items()
            )
        )
        for indexes, batch in zip(batches.values(), batch_results):
            for index, record in zip(indexes, batch):
                records[index] = record
        return [r for r in records if r is not None]

    async def _sync_provider(
        self, name: str, batch: list[InventorySyncRequest]
    ) -> list[InventoryUpdateRecord]:
        provider = self._registry.get(name)
        if provider is None or not provider.enabled:
            reason = "provider not registered" if provider is None else "provider disabled"
            logger.warning("Skipping %d inventory updates for %s: %s", len(batch), name, reason)
            return [_record(r, InventoryOutcome.PROVIDER_UNAVAILABLE, reason) for r in batch]
        if not provider.supports(Capability.INVENTORY_UPDATE):
            reason = f"{name} does not accept inventory updates"
            return [_record(r, InventoryOutcome.REJECTED, reason) for r in batch]

        # stock levels are never negative; such items are refused before the call
        valid = [r for r in batch if r.quantity >= 0]
        rejected: dict[str, str] = {}
        if valid:
            try:
                rejected = await asyncio.wait_for(
                    provider.update_inventory(
                        [InventoryUpdate(r.variant_id, r.quantity) for r in valid]
                    ),
                    self._timeout,
                )
            except Exception as exc:
                err = translate_error(exc, name, "update_inventory")
                logger.warning("Inventory batch for %s failed: %s", name, err.message)
                return [
                    _negative(r) or _record(r, InventoryOutcome.PROVIDER_UNAVAILABLE, err.message)
                    for r in batch
                ]

        records = []
        for req in batch:
            if req.quantity < 0:
                records.append(_negative(req))
            elif req.variant_id in rejected:
                records.append(_record(req, InventoryOutcome.REJECTED, rejected[req.variant_id]))
            else:
                records.append(_record(req, InventoryOutcome.APPLIED))
        applied = sum(1 for r in records if r.outcome is InventoryOutcome.APPLIED)
        logger.info(
            "Inventory sync on %s: %d applied, %d rejected",
            name,
            applied,
            len(records) - applied,
        )
        return records
