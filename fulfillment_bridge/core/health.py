"""
Health monitor: bounded, concurrent health probes across all providers.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from fulfillment_bridge.core.adapter import BaseProvider
from fulfillment_bridge.core.models import HealthRecord, HealthStatus, utcnow
from fulfillment_bridge.core.registry import ProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_HEALTH_TIMEOUT = 10.0
DEFAULT_HEALTH_CONCURRENCY = 4


class HealthMonitor:
    def __init__(
        self,
        registry: ProviderRegistry,
        timeout: float = DEFAULT_HEALTH_TIMEOUT,
        concurrency: int = DEFAULT_HEALTH_CONCURRENCY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry = registry
        self._timeout = timeout
        self._concurrency = max(concurrency, 1)
        self._clock = clock

    async def _probe(self, name: str, provider: BaseProvider) -> HealthRecord:
        if not provider.enabled:
            return HealthRecord(name, HealthStatus.UNAVAILABLE, "disabled: missing credentials", self._clock())
        try:
            probe = await asyncio.wait_for(provider.check_health(), self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Health probe for %s timed out after %ss", name, self._timeout)
            return HealthRecord(
                name, HealthStatus.UNAVAILABLE, f"probe timed out after {self._timeout}s", self._clock()
            )
        except Exception as exc:
            logger.warning("Health probe for %s failed: %s", name, exc)
            return HealthRecord(name, HealthStatus.UNAVAILABLE, str(exc), self._clock())
        return HealthRecord(name, probe.status, probe.detail, self._clock())

    async def check_all(self) -> list[HealthRecord]:
        """Probe every registered provider, at most ``concurrency`` at a time."""
        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(name: str, provider: BaseProvider) -> HealthRecord:
            async with semaphore:
                return await self._probe(name, provider)

        return list(
            await asyncio.gather(*(bounded(n, p) for n, p in self._registry.list_all()))
        )

    async def check(self, name: str) -> HealthRecord:
        provider = self._registry.get(name)
        if provider is None:
            return HealthRecord(name, HealthStatus.UNAVAILABLE, "provider not registered", self._clock())
        return await self._probe(name, provider)

    @staticmethod
    def overall(records: list[HealthRecord]) -> HealthStatus:
        if records and all(r.status is HealthStatus.HEALTHY for r in records):
            return HealthStatus.HEALTHY
        if any(r.status is not HealthStatus.UNAVAILABLE for r in records):
            return HealthStatus.DEGRADED
        return HealthStatus.UNAVAILABLE
