"""
Catalog sync engine: supplier search and import into the local catalog.

Fan-out search tolerates individual suppliers failing; bulk import keeps
one result per item and never lets one bad item abort the batch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fulfillment_bridge.core.adapter import DEFAULT_TIMEOUT, BaseProvider
from fulfillment_bridge.core.errors import (
    FulfillmentError,
    ProviderUnavailableError,
    translate_error,
)
from fulfillment_bridge.core.models import (
    Capability,
    CatalogItem,
    CatalogQuery,
    ImportResult,
    SearchResult,
    SoftFailure,
)
from fulfillment_bridge.core.registry import ProviderRegistry
from fulfillment_bridge.core.store import CatalogStore
from fulfillment_bridge.core.storefront import StorefrontTarget

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_ALL_LIMIT = 50


class CatalogSyncEngine:
    def __init__(
        self,
        registry: ProviderRegistry,
        store: CatalogStore,
        storefront: StorefrontTarget | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        search_all_limit: int = DEFAULT_SEARCH_ALL_LIMIT,
    ) -> None:
        self._registry = registry
        self._store = store
        self._storefront = storefront
        self._timeout = timeout
        self._search_all_limit = search_all_limit

    async def _fetch(
        self, provider: BaseProvider, operation: str, call: Any, subject: str = ""
    ) -> Any:
        try:
            return await asyncio.wait_for(call, self._timeout)
        except Exception as exc:
            err = translate_error(exc, provider.name, operation, subject)
            if err is exc:
                raise
            raise err from exc

    async def search(self, provider_name: str, query: CatalogQuery) -> list[CatalogItem]:
        provider = self._registry.require(provider_name)
        if not provider.supports(Capability.SEARCH):
            raise ProviderUnavailableError(
                f"Provider {provider.name!r} does not support search", provider.name
            )
        return await self._fetch(provider, "search_catalog", provider.search_catalog(query))

    async def _search_one(
        self, provider: BaseProvider, query: CatalogQuery
    ) -> list[CatalogItem] | SoftFailure:
        try:
            return await self._fetch(provider, "search_catalog", provider.search_catalog(query))
        except FulfillmentError as exc:
            logger.warning("Search on %s failed: %s", provider.name, exc.message)
            return SoftFailure(provider.name, exc.code, exc.message)

    async def search_all(self, query: CatalogQuery, limit: int | None = None) -> SearchResult:
        """
        Search every enabled provider concurrently.

        A provider that errors or times out contributes no items and one
        ``SoftFailure``; the merged list is capped at *limit* and keeps
        registration order across providers.
        """
        cap = self._search_all_limit if limit is None else limit
        providers = [p for _, p in self._registry.list_enabled() if p.supports(Capability.SEARCH)]
        outcomes = await asyncio.gather(*(self._search_one(p, query) for p in providers))

        result = SearchResult()
        for outcome in outcomes:
            if isinstance(outcome, SoftFailure):
                result.failures.append(outcome)
            else:
                result.items.extend(outcome)
        del result.items[max(cap, 0):]
        return result

    async def import_one(
        self, provider_name: str, external_id: str, push_to_storefront: bool = False
    ) -> ImportResult:
        """Fetch, persist and optionally publish one item.  Raises on failure."""
        provider = self._registry.require(provider_name)
        if not provider.supports(Capability.IMPORT):
            raise ProviderUnavailableError(
                f"Provider {provider.name!r} does not support import", provider.name
            )
        item = await self._fetch(provider, "get_item", provider.get_item(external_id), external_id)
        local_id = await self._store.save_imported_item(item)
        result = ImportResult(
            provider=provider.name,
            external_id=external_id,
            success=True,
            local_id=local_id,
            message=f"Imported {item.name}",
        )
        if push_to_storefront and self._storefront is not None:
            try:
                result.storefront_id = await self._storefront.sync_item_out(item)
            except FulfillmentError as exc:
                logger.warning("Storefront push of %s failed: %s", external_id, exc.message)
                result.message = f"Imported {item.name}; storefront push failed: {exc.message}"
        logger.info("Imported %s/%s as %s", provider.name, external_id, local_id)
        return result

    async def bulk_import(
        self,
        query: CatalogQuery,
        provider_name: str,
        max_items: int,
        push_to_storefront: bool = False,
    ) -> list[ImportResult]:
        """
        Search *provider_name* and import at most *max_items* of the hits,
        one after another.  Every attempted item gets a result.
        """
        items = await self.search(provider_name, query)
        results: list[ImportResult] = []
        for item in items[: max(max_items, 0)]:
            try:
                results.append(
                    await self.import_one(provider_name, item.external_id, push_to_storefront)
                )
            except FulfillmentError as exc:
                logger.warning("Import of %s/%s failed: %s", provider_name, item.external_id, exc.message)
                results.append(
                    ImportResult(
                        provider=provider_name,
                        external_id=item.external_id,
                        success=False,
                        error=exc.code,
                        message=exc.message,
                    )
                )
        return results

    @staticmethod
    def summarize(results: list[ImportResult]) -> dict[str, int]:
        succeeded = sum(1 for r in results if r.success)
        return {"succeeded": succeeded, "failed": len(results) - succeeded, "total": len(results)}
