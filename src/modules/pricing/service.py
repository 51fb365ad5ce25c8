"""Service for Pricing module: price resolution and price administration."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit import ActorContext, AuditAction, AuditEntry, AuditService
from src.core.config import settings
from src.core.exceptions import NotFoundError, ValidationError
from src.modules.partners.models import PartnerCompany
from src.modules.pricing.models import PartnerCustomPrice, ServicePackage, ServicePrice
from src.modules.pricing.schemas import (
    PartnerPriceResponse,
    PartnerPriceUpsert,
    ServicePriceResponse,
    ServicePriceUpsert,
)
from src.shared.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)


class MissingPricePolicy(StrEnum):
    """
    What to do when neither a partner nor a network price is configured.

    ZERO prices the line at 0 and lets the wash go ahead (driver self-service).
    RAISE rejects the request so the operator can fix the price list first.
    """

    ZERO = "ZERO"
    RAISE = "RAISE"


@dataclass(frozen=True)
class ResolvedPrice:
    price: Decimal
    currency: str
    is_custom_price: bool


class PricingService:
    """Resolves unit prices and maintains the price lists of a network."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get_service_package(self, network_id: int, service_package_id: int) -> ServicePackage:
        result = await self.db.execute(
            select(ServicePackage).where(
                ServicePackage.id == service_package_id,
                ServicePackage.network_id == network_id,
            )
        )
        package = result.scalar_one_or_none()
        if not package:
            raise NotFoundError("Service package", service_package_id)
        return package

    async def resolve_price(
        self,
        network_id: int,
        service_package_id: int,
        vehicle_type: str,
        partner_company_id: int | None = None,
    ) -> ResolvedPrice | None:
        """
        Resolve the unit price of a service for a vehicle type.

        An active partner override wins over the network list price. Returns None
        when neither is configured; callers decide what that means through
        MissingPricePolicy.
        """
        if partner_company_id is not None:
            result = await self.db.execute(
                select(PartnerCustomPrice).where(
                    PartnerCustomPrice.network_id == network_id,
                    PartnerCustomPrice.partner_company_id == partner_company_id,
                    PartnerCustomPrice.service_package_id == service_package_id,
                    PartnerCustomPrice.vehicle_type == str(vehicle_type),
                    PartnerCustomPrice.is_active == True,  # noqa: E712
                )
            )
            custom = result.scalar_one_or_none()
            if custom:
                return ResolvedPrice(
                    price=round_money(custom.price), currency=custom.currency, is_custom_price=True
                )

        result = await self.db.execute(
            select(ServicePrice).where(
                ServicePrice.network_id == network_id,
                ServicePrice.service_package_id == service_package_id,
                ServicePrice.vehicle_type == str(vehicle_type),
                ServicePrice.is_active == True,  # noqa: E712
            )
        )
        base = result.scalar_one_or_none()
        if base:
            return ResolvedPrice(
                price=round_money(base.price), currency=base.currency, is_custom_price=False
            )
        return None

    async def price_for(
        self,
        network_id: int,
        service_package_id: int,
        vehicle_type: str,
        partner_company_id: int | None,
        policy: MissingPricePolicy,
    ) -> ResolvedPrice:
        """resolve_price with the missing-price policy applied."""
        resolved = await self.resolve_price(
            network_id, service_package_id, vehicle_type, partner_company_id
        )
        if resolved is not None:
            return resolved

        if policy == MissingPricePolicy.RAISE:
            raise ValidationError(
                f"No price configured for service {service_package_id} "
                f"and vehicle type {vehicle_type}",
                field="service_package_id",
            )

        logger.warning(
            "No price for network=%s service=%s vehicle_type=%s, pricing at zero",
            network_id,
            service_package_id,
            vehicle_type,
        )
        return ResolvedPrice(price=ZERO, currency=settings.default_currency, is_custom_price=False)

    # --- Administration ---

    async def upsert_service_price(
        self, network_id: int, data: ServicePriceUpsert, actor: ActorContext
    ) -> ServicePrice:
        """Create or replace a network list price. Re-activates a disabled row."""
        await self.get_service_package(network_id, data.service_package_id)

        result = await self.db.execute(
            select(ServicePrice).where(
                ServicePrice.network_id == network_id,
                ServicePrice.service_package_id == data.service_package_id,
                ServicePrice.vehicle_type == data.vehicle_type.value,
            )
        )
        row = result.scalar_one_or_none()
        previous = ServicePriceResponse.model_validate(row).model_dump(mode="json") if row else None

        if row is None:
            row = ServicePrice(
                network_id=network_id,
                service_package_id=data.service_package_id,
                vehicle_type=data.vehicle_type.value,
            )
            self.db.add(row)
        row.price = round_money(data.price)
        row.currency = data.currency or settings.default_currency
        row.is_active = True

        await self.db.commit()
        await self.db.refresh(row)

        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                action=AuditAction.CREATE if previous is None else AuditAction.UPDATE,
                entity_type="ServicePrice",
                entity_id=row.id,
                actor=actor,
                previous_data=previous,
                new_data=ServicePriceResponse.model_validate(row).model_dump(mode="json"),
            )
        )
        return row

    async def upsert_partner_price(
        self, network_id: int, data: PartnerPriceUpsert, actor: ActorContext
    ) -> PartnerCustomPrice:
        """Create or replace a partner override. Re-activates a disabled row."""
        await self.get_service_package(network_id, data.service_package_id)
        partner = await self.db.execute(
            select(PartnerCompany.id).where(
                PartnerCompany.id == data.partner_company_id,
                PartnerCompany.network_id == network_id,
            )
        )
        if partner.scalar_one_or_none() is None:
            raise NotFoundError("Partner company", data.partner_company_id)

        result = await self.db.execute(
            select(PartnerCustomPrice).where(
                PartnerCustomPrice.network_id == network_id,
                PartnerCustomPrice.partner_company_id == data.partner_company_id,
                PartnerCustomPrice.service_package_id == data.service_package_id,
                PartnerCustomPrice.vehicle_type == data.vehicle_type.value,
            )
        )
        row = result.scalar_one_or_none()
        previous = PartnerPriceResponse.model_validate(row).model_dump(mode="json") if row else None

        if row is None:
            row = PartnerCustomPrice(
                network_id=network_id,
                partner_company_id=data.partner_company_id,
                service_package_id=data.service_package_id,
                vehicle_type=data.vehicle_type.value,
            )
            self.db.add(row)
        row.price = round_money(data.price)
        row.currency = data.currency or settings.default_currency
        row.is_active = True

        await self.db.commit()
        await self.db.refresh(row)

        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                action=AuditAction.CREATE if previous is None else AuditAction.UPDATE,
                entity_type="PartnerCustomPrice",
                entity_id=row.id,
                actor=actor,
                previous_data=previous,
                new_data=PartnerPriceResponse.model_validate(row).model_dump(mode="json"),
            )
        )
        return row

    async def deactivate_service_price(
        self, network_id: int, price_id: int, actor: ActorContext
    ) -> ServicePrice:
        result = await self.db.execute(
            select(ServicePrice).where(
                ServicePrice.id == price_id, ServicePrice.network_id == network_id
            )
        )
        row = result.scalar_one_or_none()
        if not row:
            raise NotFoundError("Service price", price_id)
        return await self._deactivate(network_id, row, "ServicePrice", ServicePriceResponse, actor)

    async def deactivate_partner_price(
        self, network_id: int, price_id: int, actor: ActorContext
    ) -> PartnerCustomPrice:
        result = await self.db.execute(
            select(PartnerCustomPrice).where(
                PartnerCustomPrice.id == price_id, PartnerCustomPrice.network_id == network_id
            )
        )
        row = result.scalar_one_or_none()
        if not row:
            raise NotFoundError("Partner price", price_id)
        return await self._deactivate(
            network_id, row, "PartnerCustomPrice", PartnerPriceResponse, actor
        )

    async def _deactivate(self, network_id, row, entity_type, response_schema, actor):
        if not row.is_active:
            return row
        previous = response_schema.model_validate(row).model_dump(mode="json")
        row.is_active = False
        await self.db.commit()
        await self.db.refresh(row)

        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                action=AuditAction.UPDATE,
                entity_type=entity_type,
                entity_id=row.id,
                actor=actor,
                previous_data=previous,
                new_data=response_schema.model_validate(row).model_dump(mode="json"),
                metadata={"operation": "deactivate"},
            )
        )
        return row

    async def list_prices(
        self,
        network_id: int,
        service_package_id: int | None = None,
        partner_company_id: int | None = None,
        include_inactive: bool = False,
    ) -> tuple[list[ServicePrice], list[PartnerCustomPrice]]:
        """Network prices plus the overrides of one partner (if given)."""
        query = select(ServicePrice).where(ServicePrice.network_id == network_id)
        if service_package_id is not None:
            query = query.where(ServicePrice.service_package_id == service_package_id)
        if not include_inactive:
            query = query.where(ServicePrice.is_active == True)  # noqa: E712
        query = query.order_by(ServicePrice.service_package_id, ServicePrice.vehicle_type)
        service_prices = list((await self.db.execute(query)).scalars().all())

        partner_prices: list[PartnerCustomPrice] = []
        if partner_company_id is not None:
            query = select(PartnerCustomPrice).where(
                PartnerCustomPrice.network_id == network_id,
                PartnerCustomPrice.partner_company_id == partner_company_id,
            )
            if service_package_id is not None:
                query = query.where(PartnerCustomPrice.service_package_id == service_package_id)
            if not include_inactive:
                query = query.where(PartnerCustomPrice.is_active == True)  # noqa: E712
            query = query.order_by(
                PartnerCustomPrice.service_package_id, PartnerCustomPrice.vehicle_type
            )
            partner_prices = list((await self.db.execute(query)).scalars().all())

        return service_prices, partner_prices
