"""
Composition root: wires the registry, engines and boundaries from a Config.

The CLI and the MCP server each build one ``FulfillmentService`` explicitly;
nothing here is a module-level singleton.
"""

from __future__ import annotations

import logging
from typing import Any

from fulfillment_bridge.adapters import ADAPTER_REGISTRY
from fulfillment_bridge.core.adapter import BaseProvider
from fulfillment_bridge.core.catalog import CatalogSyncEngine
from fulfillment_bridge.core.config import Config, Settings, SupplierProfile
from fulfillment_bridge.core.health import HealthMonitor
from fulfillment_bridge.core.inventory import InventorySyncEngine
from fulfillment_bridge.core.registry import ProviderRegistry
from fulfillment_bridge.core.router import OrderRouter
from fulfillment_bridge.core.store import CatalogStore, InMemoryCatalogStore
from fulfillment_bridge.core.storefront import StorefrontTarget, create_storefront

logger = logging.getLogger(__name__)


def build_provider(profile: SupplierProfile, settings: Settings | None = None) -> BaseProvider:
    adapter_cls = ADAPTER_REGISTRY.get(profile.system)
    if adapter_cls is None:
        raise ValueError(
            f"Unknown supplier system {profile.system!r} for profile {profile.name!r}. "
            f"Supported: {list(ADAPTER_REGISTRY.keys())}"
        )
    return adapter_cls(profile.to_adapter_config(settings))


def build_providers(config: Config) -> dict[str, BaseProvider]:
    return {
        name: build_provider(profile, config.settings)
        for name, profile in config.profiles.items()
    }


class FulfillmentService:
    def __init__(
        self,
        registry: ProviderRegistry,
        store: CatalogStore,
        storefront: StorefrontTarget | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or Settings()
        self.registry = registry
        self.store = store
        self.storefront = storefront
        self.settings = settings
        self.router = OrderRouter(registry, store, timeout=settings.timeout)
        self.catalog = CatalogSyncEngine(
            registry,
            store,
            storefront,
            timeout=settings.timeout,
            search_all_limit=settings.search_all_limit,
        )
        self.inventory = InventorySyncEngine(registry, timeout=settings.timeout)
        self.health = HealthMonitor(
            registry,
            timeout=settings.health_timeout,
            concurrency=settings.health_concurrency,
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        store: CatalogStore | None = None,
        storefront: StorefrontTarget | None = None,
    ) -> "FulfillmentService":
        registry = ProviderRegistry()
        for name, provider in build_providers(config).items():
            registry.register(name, provider)
        if storefront is None and config.storefront:
            storefront = create_storefront(config.storefront)
        enabled = [name for name, _ in registry.list_enabled()]
        logger.info(
            "Fulfillment service ready: %d providers (%s enabled)",
            len(registry),
            ", ".join(enabled) or "none",
        )
        return cls(registry, store or InMemoryCatalogStore(), storefront, config.settings)

    async def reload(self, config: Config) -> list[str]:
        """Swap in the providers of *config*; returns the dropped provider names."""
        dropped = self.registry.reload(build_providers(config))
        for provider in dropped:
            await provider.close()
        return [p.name for p in dropped]

    def describe(self) -> dict[str, Any]:
        return {
            "providers": self.registry.describe(),
            "storefront": self.storefront.name if self.storefront else None,
        }

    async def aclose(self) -> None:
        for _, provider in self.registry.list_all():
            await provider.close()
        if self.storefront is not None:
            await self.storefront.close()
