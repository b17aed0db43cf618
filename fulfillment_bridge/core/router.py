"""
Order router.

Resolves the supplier for an order operation, runs the adapter call under a
timeout, and hands back results normalized through the settlement policy.
There is no automatic retry: a timed-out create leaves the supplier-side
outcome unknown and it is up to the caller to decide whether to resubmit.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable

from fulfillment_bridge.core.adapter import DEFAULT_TIMEOUT, BaseProvider
from fulfillment_bridge.core.errors import ProviderUnavailableError, translate_error
from fulfillment_bridge.core.models import (
    CancelResult,
    Capability,
    OrderRequest,
    OrderResult,
    ShippingQuote,
    utcnow,
)
from fulfillment_bridge.core.registry import ProviderRegistry
from fulfillment_bridge.core.settlement import normalize_order
from fulfillment_bridge.core.store import CatalogStore

logger = logging.getLogger(__name__)


class OrderRouter:
    def __init__(
        self,
        registry: ProviderRegistry,
        store: CatalogStore | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry = registry
        self._store = store
        self._timeout = timeout
        self._clock = clock

    # -- helpers ----------------------------------------------------------

    def _resolve(self, provider_name: str | None) -> BaseProvider:
        if provider_name:
            return self._registry.require(provider_name)
        provider = self._registry.default_provider()
        if provider is None:
            raise ProviderUnavailableError("No enabled provider is registered")
        return provider

    @staticmethod
    def _require_capability(provider: BaseProvider, capability: Capability) -> None:
        if not provider.supports(capability):
            raise ProviderUnavailableError(
                f"Provider {provider.name!r} does not support {capability.value}",
                provider.name,
            )

    async def _call(
        self,
        provider: BaseProvider,
        operation: str,
        call: Awaitable[Any],
        timeout: float | None,
        subject: str = "",
    ) -> Any:
        """Await one adapter call with a deadline; translate whatever it raises."""
        try:
            return await asyncio.wait_for(call, timeout or self._timeout)
        except Exception as exc:
            err = translate_error(exc, provider.name, operation, subject)
            logger.warning("%s on %s failed: %s", operation, provider.name, err.message)
            if err is exc:
                raise
            raise err from exc

    # -- operations -------------------------------------------------------

    async def create_order(
        self,
        request: OrderRequest,
        provider_name: str | None = None,
        timeout: float | None = None,
    ) -> OrderResult:
        """
        Submit *request* to one supplier and return the normalized result.

        Validation and provider resolution happen before any network call.
        The router does not deduplicate: ``request.idempotency_key`` is passed
        through to suppliers that honour one.
        """
        request.validate()
        provider = self._resolve(provider_name)
        self._require_capability(provider, Capability.ORDER_CREATE)

        order_id = request.internal_order_id or uuid.uuid4().hex
        owner = None
        if self._store is not None and request.internal_order_id:
            owner = await self._store.find_order_owner(request.internal_order_id)
            if owner is None:
                logger.debug("No owner on record for order %s", request.internal_order_id)

        submitted_at = self._clock()
        raw = await self._call(provider, "create_order", provider.create_order(request), timeout)
        result = normalize_order(
            provider.settlement, raw, provider.name, order_id, provider.status_map, submitted_at
        )
        result.owner = owner
        logger.info(
            "Order %s placed on %s as %s (%s)",
            order_id,
            provider.name,
            result.external_order_id,
            result.status.value,
        )
        await self._record(result)
        return result

    async def get_order_status(
        self,
        external_order_id: str,
        provider_name: str,
        timeout: float | None = None,
        order_id: str | None = None,
    ) -> OrderResult:
        """
        Read-only refresh of an order the supplier already knows about.

        The order date comes from the supplier, else from the result recorded
        when the order was placed; with neither, net-terms due dates stay
        unset rather than counting from the time of the poll.
        """
        provider = self._resolve(provider_name)
        self._require_capability(provider, Capability.ORDER_STATUS)
        raw = await self._call(
            provider,
            "get_order_status",
            provider.get_order_status(external_order_id),
            timeout,
            external_order_id,
        )
        previous = None
        if self._store is not None:
            previous = await self._store.find_order_result(provider.name, external_order_id)
        result = normalize_order(
            provider.settlement,
            raw,
            provider.name,
            order_id or (previous.order_id if previous else external_order_id),
            provider.status_map,
            previous.created_at if previous else None,
        )
        if previous is not None:
            result.owner = previous.owner
        await self._record(result)
        return result

    async def cancel_order(
        self,
        external_order_id: str,
        provider_name: str,
        timeout: float | None = None,
    ) -> CancelResult:
        provider = self._resolve(provider_name)
        if not provider.supports(Capability.ORDER_CANCEL):
            return CancelResult(
                provider.name,
                external_order_id,
                False,
                f"{provider.name} does not support cancellation",
            )
        result = await self._call(
            provider,
            "cancel_order",
            provider.cancel_order(external_order_id),
            timeout,
            external_order_id,
        )
        logger.info(
            "Cancel of %s on %s: %s",
            external_order_id,
            provider.name,
            "accepted" if result.success else result.message,
        )
        return result

    async def quote_shipping(
        self,
        request: OrderRequest,
        provider_name: str | None = None,
        timeout: float | None = None,
    ) -> ShippingQuote:
        """Advisory estimate; it does not bind the eventual order's cost."""
        provider = self._resolve(provider_name)
        self._require_capability(provider, Capability.SHIPPING_QUOTE)
        return await self._call(
            provider, "quote_shipping", provider.quote_shipping(request), timeout
        )

    async def _record(self, result: OrderResult) -> None:
        if self._store is not None:
            await self._store.record_order_result(result)
