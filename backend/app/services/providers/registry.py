"""Provider name → adapter lookup."""

import logging

from app.services.providers.amadeus import AmadeusAdapter
from app.services.providers.base import ProviderAdapter
from app.services.providers.duffel import DuffelAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    def __init__(self):
        self._adapters: dict[str, ProviderAdapter] = {}

    def register(self, name: str, adapter: ProviderAdapter):
        if name in self._adapters:
            logger.warning(f"Replacing adapter for provider {name}")
        self._adapters[name] = adapter

    def get(self, name: str) -> ProviderAdapter | None:
        return self._adapters.get(name)

    def names(self) -> list[str]:
        return sorted(self._adapters)

    async def close(self):
        for adapter in self._adapters.values():
            await adapter.close()


def build_default_registry() -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register("amadeus", AmadeusAdapter())
    registry.register("duffel", DuffelAdapter())
    return registry


provider_registry = build_default_registry()
