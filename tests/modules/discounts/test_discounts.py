from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError, ValidationError
from src.modules.discounts.service import DiscountService, select_tier
from src.modules.locations.models import OperationType
from src.modules.partners.models import DiscountTier
from src.modules.wash_events.models import WashEventStatus
from src.shared.utils.dates import utcnow
from tests.factories import (
    create_location,
    create_network,
    create_partner,
    create_service,
    insert_completed_washes,
)

TIERS = {
    "own_discount_threshold_1": 10,
    "own_discount_percent_1": Decimal("5"),
    "own_discount_threshold_2": 20,
    "own_discount_percent_2": Decimal("10"),
    "own_discount_threshold_3": 50,
    "own_discount_percent_3": Decimal("15"),
    "sub_discount_threshold_1": 5,
    "sub_discount_percent_1": Decimal("3"),
}


class TestSelectTier:
    """Tier selection from wash count."""

    tiers = [
        DiscountTier(level=1, threshold=10, percent=Decimal("5")),
        DiscountTier(level=2, threshold=20, percent=Decimal("10")),
        DiscountTier(level=3, threshold=50, percent=Decimal("15")),
    ]

    def test_below_first_threshold(self):
        assert select_tier(self.tiers, 9) is None

    def test_threshold_reached_exactly(self):
        assert select_tier(self.tiers, 20).level == 2

    def test_highest_reached_tier_wins(self):
        assert select_tier(self.tiers, 75).percent == Decimal("15")

    def test_discount_never_drops_as_count_grows(self):
        percents = []
        for count in range(0, 60):
            tier = select_tier(self.tiers, count)
            percents.append(tier.percent if tier else Decimal("0"))
        assert percents == sorted(percents)

    def test_no_tiers(self):
        assert select_tier([], 1000) is None


class TestDiscountService:
    """Tests for partner volume discount calculation."""

    async def _setup(self, db_session: AsyncSession) -> dict:
        network = await create_network(db_session)
        partner = await create_partner(db_session, network.id, **TIERS)
        service = await create_service(db_session, network.id)
        own = await create_location(db_session, network.id, code="OWN", services=[service])
        sub = await create_location(
            db_session,
            network.id,
            code="SUB",
            services=[service],
            operation_type=OperationType.SUBCONTRACTOR,
        )
        return {
            "network": network,
            "partner": partner,
            "service": service,
            "own": own,
            "sub": sub,
        }

    async def test_twenty_washes_earn_second_tier(self, db_session: AsyncSession):
        data = await self._setup(db_session)
        await insert_completed_washes(
            db_session,
            data["network"].id,
            data["own"].id,
            data["partner"].id,
            data["service"].id,
            count=20,
        )
        today = utcnow().date()

        result = await DiscountService(db_session).calculate_discount(
            data["network"].id, data["partner"].id, today, today
        )

        assert result.wash_count == 20
        assert result.discount_percent == Decimal("10")
        assert result.tier_level == 2

    async def test_below_threshold(self, db_session: AsyncSession):
        data = await self._setup(db_session)
        await insert_completed_washes(
            db_session,
            data["network"].id,
            data["own"].id,
            data["partner"].id,
            data["service"].id,
            count=9,
        )
        today = utcnow().date()

        result = await DiscountService(db_session).calculate_discount(
            data["network"].id, data["partner"].id, today, today
        )

        assert result.wash_count == 9
        assert result.discount_percent == Decimal("0")
        assert result.tier_level is None

    async def test_only_completed_washes_in_period_count(self, db_session: AsyncSession):
        data = await self._setup(db_session)
        args = (db_session, data["network"].id, data["own"].id, data["partner"].id)
        await insert_completed_washes(*args, data["service"].id, count=10)
        # Outside the period
        await insert_completed_washes(
            *args, data["service"].id, count=5, completed_at=utcnow() - timedelta(days=40)
        )
        # Locked washes are not counted
        await insert_completed_washes(
            *args, data["service"].id, count=5, status=WashEventStatus.LOCKED
        )
        today = utcnow().date()

        result = await DiscountService(db_session).calculate_discount(
            data["network"].id, data["partner"].id, today - timedelta(days=7), today
        )

        assert result.wash_count == 10
        assert result.discount_percent == Decimal("5")

    async def test_operation_type_filters_locations_and_tier_set(
        self, db_session: AsyncSession
    ):
        data = await self._setup(db_session)
        network_id, partner_id = data["network"].id, data["partner"].id
        await insert_completed_washes(
            db_session, network_id, data["own"].id, partner_id, data["service"].id, count=12
        )
        await insert_completed_washes(
            db_session, network_id, data["sub"].id, partner_id, data["service"].id, count=6
        )
        today = utcnow().date()
        service = DiscountService(db_session)

        own = await service.calculate_discount(
            network_id, partner_id, today, today, OperationType.OWN
        )
        sub = await service.calculate_discount(
            network_id, partner_id, today, today, OperationType.SUBCONTRACTOR
        )

        assert (own.wash_count, own.discount_percent) == (12, Decimal("5"))
        assert (sub.wash_count, sub.discount_percent) == (6, Decimal("3"))

    async def test_private_customer_has_no_discount(self, db_session: AsyncSession):
        data = await self._setup(db_session)
        today = utcnow().date()

        result = await DiscountService(db_session).calculate_discount(
            data["network"].id, None, today, today
        )

        assert result.wash_count == 0
        assert result.discount_percent == Decimal("0")

    async def test_partner_of_other_network(self, db_session: AsyncSession):
        data = await self._setup(db_session)
        other = await create_network(db_session, slug="south")
        today = utcnow().date()

        with pytest.raises(NotFoundError):
            await DiscountService(db_session).calculate_discount(
                other.id, data["partner"].id, today, today
            )

    async def test_inverted_period(self, db_session: AsyncSession):
        data = await self._setup(db_session)
        today = utcnow().date()

        with pytest.raises(ValidationError):
            await DiscountService(db_session).calculate_discount(
                data["network"].id, data["partner"].id, today, today - timedelta(days=1)
            )


class TestDiscountApi:
    async def test_get_partner_discount(self, client: AsyncClient, db_session: AsyncSession):
        network = await create_network(db_session)
        partner = await create_partner(db_session, network.id, **TIERS)
        service = await create_service(db_session, network.id)
        location = await create_location(db_session, network.id, services=[service])
        await insert_completed_washes(
            db_session, network.id, location.id, partner.id, service.id, count=20
        )
        today = utcnow().date().isoformat()

        response = await client.get(
            f"/api/v1/partners/{partner.id}/discount",
            params={"period_start": today, "period_end": today},
            headers={"X-Network-Id": str(network.id)},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["wash_count"] == 20
        assert Decimal(data["discount_percent"]) == Decimal("10")
        assert data["tier_level"] == 2
