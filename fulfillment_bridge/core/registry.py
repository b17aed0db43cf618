"""
Provider registry.

Holds the named adapters for the life of the process.  Readers (every
in-flight request) see an immutable snapshot and never take a lock; writers
build a new mapping and swap the reference under a lock, so registration
and configuration reloads cannot race with lookups.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from fulfillment_bridge.core.adapter import BaseProvider
from fulfillment_bridge.core.errors import ProviderUnavailableError

logger = logging.getLogger(__name__)


class ProviderRegistry:
    def __init__(self, providers: Iterable[BaseProvider] = ()) -> None:
        self._lock = threading.Lock()
        self._snapshot: Mapping[str, BaseProvider] = MappingProxyType({})
        for provider in providers:
            self.register(provider.name, provider)

    def register(self, name: str, provider: BaseProvider) -> None:
        """Add or replace *name*.  Replacing keeps the original position."""
        with self._lock:
            updated = dict(self._snapshot)
            if name in updated:
                logger.info("Replacing provider %s", name)
            updated[name] = provider
            self._snapshot = MappingProxyType(updated)
        logger.debug("Registered provider %s (enabled=%s)", name, provider.enabled)

    def reload(self, providers: Mapping[str, BaseProvider]) -> list[BaseProvider]:
        """
        Swap in a complete new provider set.

        Returns the providers that were dropped so the caller can close them
        once in-flight requests have drained.
        """
        fresh = MappingProxyType(dict(providers))
        with self._lock:
            previous, self._snapshot = self._snapshot, fresh
        logger.info("Reloaded provider registry: %s", ", ".join(fresh) or "<empty>")
        return [p for name, p in previous.items() if fresh.get(name) is not p]

    def get(self, name: str) -> BaseProvider | None:
        return self._snapshot.get(name)

    def require(self, name: str) -> BaseProvider:
        """Return an enabled provider or raise ``ProviderUnavailableError``."""
        provider = self._snapshot.get(name)
        if provider is None:
            raise ProviderUnavailableError(
                f"Provider {name!r} is not registered. Available: {list(self._snapshot)}",
                name,
            )
        if not provider.enabled:
            raise ProviderUnavailableError(
                f"Provider {name!r} is configured but disabled (missing credentials)",
                name,
            )
        return provider

    def names(self) -> list[str]:
        return list(self._snapshot)

    def list_all(self) -> list[tuple[str, BaseProvider]]:
        return list(self._snapshot.items())

    def list_enabled(self) -> list[tuple[str, BaseProvider]]:
        return [(name, p) for name, p in self._snapshot.items() if p.enabled]

    def default_provider(self) -> BaseProvider | None:
        """First enabled provider in registration order."""
        for _, provider in self.list_enabled():
            return provider
        return None

    def describe(self) -> list[dict[str, Any]]:
        snapshot = self._snapshot
        default = self.default_provider()
        return [
            {**p.describe(), "name": name, "default": p is default}
            for name, p in snapshot.items()
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)
