"""Service for Discounts module: partner volume discounts."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError, ValidationError
from src.modules.locations.models import Location, OperationType
from src.modules.partners.models import DiscountTier, PartnerCompany
from src.modules.wash_events.models import WashEvent, WashEventStatus
from src.shared.utils.dates import period_bounds
from src.shared.utils.money import ZERO


@dataclass(frozen=True)
class DiscountResult:
    wash_count: int
    discount_percent: Decimal
    tier_level: int | None = None


NO_DISCOUNT = DiscountResult(wash_count=0, discount_percent=ZERO)


def select_tier(tiers: list[DiscountTier], wash_count: int) -> DiscountTier | None:
    """
    Pick the tier for a wash count.

    Tiers are walked from the highest level down and the first one whose threshold
    is reached wins; tiers are not cumulative.
    """
    for tier in sorted(tiers, key=lambda t: t.level, reverse=True):
        if wash_count >= tier.threshold:
            return tier
    return None


class DiscountService:
    """Service for partner volume discounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_completed_washes(
        self,
        network_id: int,
        partner_company_id: int,
        period_start: date,
        period_end: date,
        operation_type: OperationType | None = None,
    ) -> int:
        start, end = period_bounds(period_start, period_end)
        query = select(func.count(WashEvent.id)).where(
            WashEvent.network_id == network_id,
            WashEvent.partner_company_id == partner_company_id,
            WashEvent.status == WashEventStatus.COMPLETED.value,
            WashEvent.completed_at >= start,
            WashEvent.completed_at < end,
        )
        if operation_type is not None:
            query = query.join(Location, Location.id == WashEvent.location_id).where(
                Location.operation_type == operation_type.value
            )
        result = await self.db.execute(query)
        return result.scalar_one()

    async def calculate_discount(
        self,
        network_id: int,
        partner_company_id: int | None,
        period_start: date,
        period_end: date,
        operation_type: OperationType | None = None,
    ) -> DiscountResult:
        """
        Volume discount of a partner over [period_start, period_end].

        Only washes at locations of the given operation type are counted when one is
        given, and that type's tier set is used (OWN tiers otherwise). A wash with no
        partner (private customer) gets no discount.
        """
        if partner_company_id is None:
            return NO_DISCOUNT
        if period_end < period_start:
            raise ValidationError("period_end must not be before period_start", field="period_end")

        result = await self.db.execute(
            select(PartnerCompany).where(
                PartnerCompany.id == partner_company_id,
                PartnerCompany.network_id == network_id,
            )
        )
        partner = result.scalar_one_or_none()
        if not partner:
            raise NotFoundError("Partner company", partner_company_id)

        wash_count = await self.count_completed_washes(
            network_id, partner_company_id, period_start, period_end, operation_type
        )
        tier = select_tier(partner.discount_tiers(operation_type), wash_count)
        if tier is None:
            return DiscountResult(wash_count=wash_count, discount_percent=ZERO)
        return DiscountResult(
            wash_count=wash_count, discount_percent=tier.percent, tier_level=tier.level
        )
