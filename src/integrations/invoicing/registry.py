"""Name-keyed registry of invoice providers."""

from __future__ import annotations

import httpx

from src.integrations.invoicing.base import InvoiceProvider
from src.integrations.invoicing.billingo import BillingoProvider
from src.integrations.invoicing.szamlazz import SzamlazzProvider


class InvoiceProviderRegistry:
    def __init__(self, providers: list[InvoiceProvider] | None = None):
        self._providers: dict[str, InvoiceProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: InvoiceProvider) -> None:
        self._providers[provider.name.lower()] = provider

    def get(self, name: str) -> InvoiceProvider | None:
        return self._providers.get(name.lower())

    def names(self) -> list[str]:
        return sorted(self._providers)

    @classmethod
    def default(cls, transport: httpx.AsyncBaseTransport | None = None) -> InvoiceProviderRegistry:
        """Registry with every built-in provider, optionally sharing one HTTP transport."""
        return cls([SzamlazzProvider(transport), BillingoProvider(transport)])


_registry = InvoiceProviderRegistry.default()


def get_provider_registry() -> InvoiceProviderRegistry:
    """FastAPI dependency returning the process-wide registry."""
    return _registry
