"""Service for Networks module: per-network billing configuration."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.integrations.invoicing import ProviderConfig
from src.modules.networks.models import InvoiceProviderKind, NetworkSettings

# Provider kinds that issue through an external service
EXTERNAL_PROVIDERS = {
    InvoiceProviderKind.SZAMLAZZ.value: "szamlazz",
    InvoiceProviderKind.BILLINGO.value: "billingo",
}


class NetworkService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_settings(self, network_id: int) -> NetworkSettings | None:
        result = await self.db.execute(
            select(NetworkSettings).where(NetworkSettings.network_id == network_id)
        )
        return result.scalar_one_or_none()

    async def invoice_provider_name(self, network_id: int) -> str | None:
        """Registry name of the network's provider; None for NONE or MANUAL."""
        network_settings = await self.get_settings(network_id)
        if network_settings is None:
            return None
        return EXTERNAL_PROVIDERS.get(network_settings.invoice_provider)

    async def provider_config(self, network_id: int) -> ProviderConfig:
        """Network credentials, each falling back to the environment when unset."""
        network_settings = await self.get_settings(network_id)

        def pick(attr: str, fallback):
            value = getattr(network_settings, attr, None) if network_settings else None
            return value if value else fallback

        return ProviderConfig(
            timeout_seconds=settings.invoice_provider_timeout_seconds,
            szamlazz_api_url=settings.szamlazz_api_url,
            szamlazz_agent_key=pick("szamlazz_agent_key", settings.szamlazz_agent_key),
            billingo_api_url=settings.billingo_api_url,
            billingo_api_key=pick("billingo_api_key", settings.billingo_api_key),
            billingo_block_id=pick("billingo_block_id", settings.billingo_block_id),
            billingo_bank_account_id=pick(
                "billingo_bank_account_id", settings.billingo_bank_account_id
            ),
        )
