"""Service for Wash Events module: intake and the wash lifecycle."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit import ActorContext, AuditAction, AuditEntry, AuditService
from src.core.audit.models import AuditLog
from src.core.config import settings
from src.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from src.modules.fleet.models import TRACTOR_CATEGORIES, Driver, Vehicle
from src.modules.locations.models import (
    Location,
    LocationServiceAvailability,
    LocationType,
    LocationVisibility,
)
from src.modules.partners.models import PartnerCompany
from src.modules.pricing.models import ServicePackage, VehicleType
from src.modules.pricing.service import MissingPricePolicy, PricingService
from src.modules.wash_events.models import (
    TRANSITION_TIMESTAMPS,
    EntryMode,
    VehicleRole,
    WashEvent,
    WashEventServiceLine,
    WashEventStatus,
    can_transition,
)
from src.modules.wash_events.schemas import (
    ManualWashEventCreate,
    QrWashEventCreate,
    ServiceLineInput,
    WashEventFilters,
    WashEventResponse,
)
from src.shared.utils.dates import period_bounds, utcnow
from src.shared.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)


@dataclass
class _PricedLine:
    service_package_id: int
    vehicle_type: str
    vehicle_role: str
    plate_number: str | None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_custom_price: bool
    currency: str


def default_vehicle_type(location: Location) -> VehicleType:
    """Vehicle type assumed for a line that does not name one."""
    if location.location_type == LocationType.CAR_WASH.value:
        return VehicleType.CAR
    return VehicleType.SEMI_TRUCK


def snapshot(wash_event: WashEvent) -> dict:
    return WashEventResponse.model_validate(wash_event).model_dump(mode="json")


class WashEventService:
    """Service for creating wash events and moving them through their lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.pricing = PricingService(db)

    # --- Reads ---

    async def get_wash_event(
        self, network_id: int, wash_event_id: int, for_update: bool = False
    ) -> WashEvent:
        """Get a wash event of the network with its service lines loaded."""
        query = (
            select(WashEvent)
            .where(WashEvent.id == wash_event_id, WashEvent.network_id == network_id)
            .options(selectinload(WashEvent.service_lines))
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        wash_event = result.scalar_one_or_none()
        if not wash_event:
            raise NotFoundError("Wash event", wash_event_id)
        return wash_event

    async def list_wash_events(
        self, network_id: int, filters: WashEventFilters
    ) -> tuple[list[WashEvent], int]:
        """List wash events of the network, newest first."""
        query = (
            select(WashEvent)
            .where(WashEvent.network_id == network_id)
            .options(selectinload(WashEvent.service_lines))
            .order_by(WashEvent.created_at.desc(), WashEvent.id.desc())
        )

        if filters.location_id is not None:
            query = query.where(WashEvent.location_id == filters.location_id)
        if filters.driver_id is not None:
            query = query.where(WashEvent.driver_id == filters.driver_id)
        if filters.partner_company_id is not None:
            query = query.where(WashEvent.partner_company_id == filters.partner_company_id)
        if filters.status is not None:
            query = query.where(WashEvent.status == filters.status.value)
        if filters.date_from is not None or filters.date_to is not None:
            start, end = period_bounds(
                filters.date_from or filters.date_to, filters.date_to or filters.date_from
            )
            if filters.date_from is not None:
                query = query.where(WashEvent.created_at >= start)
            if filters.date_to is not None:
                query = query.where(WashEvent.created_at < end)
        if filters.uninvoiced_only:
            query = query.where(WashEvent.invoice_id.is_(None))

        # Count total
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        # Apply pagination
        offset = (filters.page - 1) * filters.limit
        query = query.offset(offset).limit(filters.limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def list_audit_trail(self, network_id: int, wash_event_id: int) -> list[AuditLog]:
        await self.get_wash_event(network_id, wash_event_id)
        return await self.audit.list_for_wash_event(network_id, wash_event_id)

    # --- Creation ---

    async def create_qr_driver(
        self, network_id: int, data: QrWashEventCreate, actor: ActorContext
    ) -> WashEvent:
        """
        Create a wash started by a driver via QR code.

        A private customer (driver without a partner company) may use PUBLIC
        locations of any network; the wash then belongs to the location's network.
        A fleet driver may use PUBLIC and NETWORK_ONLY locations of its own network
        and DEDICATED locations that list its partner company. Lines without a price
        are priced at zero.
        """
        result = await self.db.execute(
            select(Driver).where(
                Driver.id == data.driver_id,
                Driver.network_id == network_id,
                Driver.is_active == True,  # noqa: E712
                Driver.deleted_at.is_(None),
            )
        )
        driver = result.scalar_one_or_none()
        if not driver:
            raise ValidationError("Driver not found or inactive", field="driver_id")

        location = await self._get_location_for_driver(network_id, driver, data.location_id)
        event_network_id = location.network_id

        tractor_plate = data.tractor_plate_manual
        if data.tractor_vehicle_id is None and not tractor_plate:
            raise ValidationError(
                "Tractor vehicle ID or manual plate is required", field="tractor_vehicle_id"
            )
        if data.tractor_vehicle_id is not None:
            tractor = await self._get_driver_vehicle(
                driver, data.tractor_vehicle_id, "tractor_vehicle_id", tractor_only=True
            )
            tractor_plate = tractor.plate_number

        trailer_plate = data.trailer_plate_manual
        if data.trailer_vehicle_id is not None:
            trailer = await self._get_driver_vehicle(
                driver, data.trailer_vehicle_id, "trailer_vehicle_id"
            )
            trailer_plate = trailer.plate_number

        lines = data.services or self._default_lines(
            data.service_package_id, tractor_plate, trailer_plate
        )
        await self._ensure_services_available(
            event_network_id,
            location.id,
            [data.service_package_id] + [line.service_package_id for line in lines],
        )

        priced = await self._price_lines(
            event_network_id,
            lines,
            default_type=default_vehicle_type(location),
            partner_company_id=driver.partner_company_id,
            policy=MissingPricePolicy.ZERO,
            tractor_plate=tractor_plate,
            trailer_plate=trailer_plate,
        )

        wash_event = WashEvent(
            network_id=event_network_id,
            location_id=location.id,
            entry_mode=EntryMode.QR_DRIVER.value,
            status=WashEventStatus.CREATED.value,
            driver_id=driver.id,
            partner_company_id=driver.partner_company_id,
            tractor_vehicle_id=data.tractor_vehicle_id,
            tractor_plate_manual=data.tractor_plate_manual,
            trailer_vehicle_id=data.trailer_vehicle_id,
            trailer_plate_manual=data.trailer_plate_manual,
            service_package_id=data.service_package_id,
            payment_method=data.payment_method.value if data.payment_method else None,
        )
        return await self._persist_new(event_network_id, wash_event, priced, actor)

    async def create_manual_operator(
        self, network_id: int, data: ManualWashEventCreate, actor: ActorContext
    ) -> WashEvent:
        """
        Record a wash entered by an operator for a partner's vehicle.

        Prices default to the SEMI_TRUCK vehicle type, and a missing price is an
        error so the operator cannot record an unpriced wash.
        """
        result = await self.db.execute(
            select(PartnerCompany).where(
                PartnerCompany.id == data.partner_company_id,
                PartnerCompany.network_id == network_id,
                PartnerCompany.is_active == True,  # noqa: E712
                PartnerCompany.deleted_at.is_(None),
            )
        )
        partner = result.scalar_one_or_none()
        if not partner:
            raise ValidationError(
                "Partner company not found or inactive", field="partner_company_id"
            )

        result = await self.db.execute(
            select(Location).where(
                Location.id == data.location_id,
                Location.network_id == network_id,
                Location.is_active == True,  # noqa: E712
                Location.deleted_at.is_(None),
            )
        )
        location = result.scalar_one_or_none()
        if not location:
            raise ValidationError("Location not found or inactive", field="location_id")

        lines = data.services or self._default_lines(
            data.service_package_id, data.tractor_plate_manual, data.trailer_plate_manual
        )
        await self._ensure_services_available(
            network_id,
            location.id,
            [data.service_package_id] + [line.service_package_id for line in lines],
        )

        priced = await self._price_lines(
            network_id,
            lines,
            default_type=VehicleType.SEMI_TRUCK,
            partner_company_id=partner.id,
            policy=MissingPricePolicy.RAISE,
            tractor_plate=data.tractor_plate_manual,
            trailer_plate=data.trailer_plate_manual,
        )

        wash_event = WashEvent(
            network_id=network_id,
            location_id=location.id,
            entry_mode=EntryMode.MANUAL_OPERATOR.value,
            status=WashEventStatus.CREATED.value,
            partner_company_id=partner.id,
            driver_name_manual=data.driver_name_manual.strip(),
            tractor_plate_manual=data.tractor_plate_manual,
            trailer_plate_manual=data.trailer_plate_manual,
            service_package_id=data.service_package_id,
            payment_method=data.payment_method.value if data.payment_method else None,
        )
        return await self._persist_new(network_id, wash_event, priced, actor)

    async def _get_location_for_driver(
        self, network_id: int, driver: Driver, location_id: int
    ) -> Location:
        result = await self.db.execute(
            select(Location)
            .where(
                Location.id == location_id,
                Location.is_active == True,  # noqa: E712
                Location.deleted_at.is_(None),
            )
            .options(selectinload(Location.dedicated_partners))
        )
        location = result.scalar_one_or_none()

        if driver.is_private_customer:
            # Any network, but only PUBLIC locations
            if location is None or (
                location.network_id != network_id
                and location.visibility != LocationVisibility.PUBLIC.value
            ):
                raise NotFoundError("Location", location_id)
            if location.visibility != LocationVisibility.PUBLIC.value:
                raise ValidationError(
                    "Private customers can only use public locations", field="location_id"
                )
            return location

        if location is None or location.network_id != network_id:
            raise NotFoundError("Location", location_id)
        if (
            location.visibility == LocationVisibility.DEDICATED.value
            and driver.partner_company_id not in location.dedicated_partner_ids
        ):
            raise ValidationError(
                "Location is dedicated to other partners", field="location_id"
            )
        return location

    async def _get_driver_vehicle(
        self, driver: Driver, vehicle_id: int, field: str, tractor_only: bool = False
    ) -> Vehicle:
        """A vehicle of the driver (private) or of the driver's partner (fleet)."""
        query = select(Vehicle).where(
            Vehicle.id == vehicle_id,
            Vehicle.network_id == driver.network_id,
            Vehicle.is_active == True,  # noqa: E712
            Vehicle.deleted_at.is_(None),
        )
        if driver.is_private_customer:
            query = query.where(Vehicle.driver_id == driver.id)
        else:
            query = query.where(Vehicle.partner_company_id == driver.partner_company_id)
        if tractor_only:
            query = query.where(Vehicle.category.in_(TRACTOR_CATEGORIES))

        result = await self.db.execute(query)
        vehicle = result.scalar_one_or_none()
        if not vehicle:
            role = "tractor" if tractor_only else "trailer"
            raise ValidationError(f"Invalid {role} vehicle", field=field)
        return vehicle

    async def _ensure_services_available(
        self, network_id: int, location_id: int, service_package_ids: list[int]
    ) -> None:
        wanted = set(service_package_ids)
        result = await self.db.execute(
            select(LocationServiceAvailability.service_package_id)
            .join(
                ServicePackage,
                ServicePackage.id == LocationServiceAvailability.service_package_id,
            )
            .where(
                LocationServiceAvailability.network_id == network_id,
                LocationServiceAvailability.location_id == location_id,
                LocationServiceAvailability.service_package_id.in_(wanted),
                LocationServiceAvailability.is_active == True,  # noqa: E712
                ServicePackage.is_active == True,  # noqa: E712
            )
        )
        available = set(result.scalars().all())
        missing = wanted - available
        if missing:
            raise ValidationError(
                "Service package not available at this location: "
                + ", ".join(str(i) for i in sorted(missing)),
                field="service_package_id",
            )

    @staticmethod
    def _default_lines(
        service_package_id: int, tractor_plate: str | None, trailer_plate: str | None
    ) -> list[ServiceLineInput]:
        """Single-service request: the service for the tractor, and the trailer if any."""
        lines = [
            ServiceLineInput(
                service_package_id=service_package_id,
                vehicle_role=VehicleRole.TRACTOR,
                plate_number=tractor_plate,
            )
        ]
        if trailer_plate:
            lines.append(
                ServiceLineInput(
                    service_package_id=service_package_id,
                    vehicle_role=VehicleRole.TRAILER,
                    plate_number=trailer_plate,
                )
            )
        return lines

    async def _price_lines(
        self,
        network_id: int,
        lines: list[ServiceLineInput],
        default_type: VehicleType,
        partner_company_id: int | None,
        policy: MissingPricePolicy,
        tractor_plate: str | None,
        trailer_plate: str | None,
    ) -> list[_PricedLine]:
        priced: list[_PricedLine] = []
        for line in lines:
            if line.vehicle_role == VehicleRole.TRAILER and not trailer_plate:
                raise ValidationError(
                    "Trailer service requested without a trailer", field="services"
                )
            vehicle_type = (line.vehicle_type or default_type).value
            resolved = await self.pricing.price_for(
                network_id, line.service_package_id, vehicle_type, partner_company_id, policy
            )
            default_plate = (
                tractor_plate if line.vehicle_role == VehicleRole.TRACTOR else trailer_plate
            )
            priced.append(
                _PricedLine(
                    service_package_id=line.service_package_id,
                    vehicle_type=vehicle_type,
                    vehicle_role=line.vehicle_role.value,
                    plate_number=line.plate_number or default_plate,
                    quantity=line.quantity,
                    unit_price=resolved.price,
                    total_price=round_money(resolved.price * line.quantity),
                    is_custom_price=resolved.is_custom_price,
                    currency=resolved.currency,
                )
            )
        return priced

    async def _persist_new(
        self,
        network_id: int,
        wash_event: WashEvent,
        priced: list[_PricedLine],
        actor: ActorContext,
    ) -> WashEvent:
        tractor_price = sum(
            (p.total_price for p in priced if p.vehicle_role == VehicleRole.TRACTOR.value), ZERO
        )
        trailer_price = sum(
            (p.total_price for p in priced if p.vehicle_role == VehicleRole.TRAILER.value), ZERO
        )
        total = round_money(tractor_price + trailer_price)

        wash_event.tractor_price = round_money(tractor_price)
        wash_event.trailer_price = round_money(trailer_price)
        wash_event.total_price = total
        wash_event.final_price = total
        wash_event.currency = priced[0].currency if priced else settings.default_currency
        wash_event.service_lines = [
            WashEventServiceLine(
                service_package_id=p.service_package_id,
                vehicle_type=p.vehicle_type,
                vehicle_role=p.vehicle_role,
                plate_number=p.plate_number,
                quantity=p.quantity,
                unit_price=p.unit_price,
                total_price=p.total_price,
                is_custom_price=p.is_custom_price,
            )
            for p in priced
        ]

        self.db.add(wash_event)
        await self.db.commit()

        wash_event = await self.get_wash_event(network_id, wash_event.id)
        logger.info(
            "Wash event %s created (network=%s, mode=%s, total=%s)",
            wash_event.id,
            network_id,
            wash_event.entry_mode,
            wash_event.total_price,
        )

        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                wash_event_id=wash_event.id,
                action=AuditAction.CREATE,
                entity_type="WashEvent",
                entity_id=wash_event.id,
                actor=actor,
                new_data=snapshot(wash_event),
            )
        )
        return wash_event

    # --- Transitions ---

    async def authorize(
        self, network_id: int, wash_event_id: int, actor: ActorContext
    ) -> WashEvent:
        return await self._transition(
            network_id, wash_event_id, WashEventStatus.AUTHORIZED, AuditAction.AUTHORIZE, actor
        )

    async def start(self, network_id: int, wash_event_id: int, actor: ActorContext) -> WashEvent:
        return await self._transition(
            network_id, wash_event_id, WashEventStatus.IN_PROGRESS, AuditAction.START, actor
        )

    async def complete(self, network_id: int, wash_event_id: int, actor: ActorContext) -> WashEvent:
        return await self._transition(
            network_id, wash_event_id, WashEventStatus.COMPLETED, AuditAction.COMPLETE, actor
        )

    async def reject(
        self, network_id: int, wash_event_id: int, reason: str, actor: ActorContext
    ) -> WashEvent:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Rejection reason is required", field="reason")
        return await self._transition(
            network_id,
            wash_event_id,
            WashEventStatus.REJECTED,
            AuditAction.REJECT,
            actor,
            extra_values={"rejection_reason": reason},
            metadata={"reason": reason},
        )

    async def lock(self, network_id: int, wash_event_id: int, actor: ActorContext) -> WashEvent:
        return await self._transition(
            network_id, wash_event_id, WashEventStatus.LOCKED, AuditAction.LOCK, actor
        )

    async def _transition(
        self,
        network_id: int,
        wash_event_id: int,
        target: WashEventStatus,
        action: AuditAction,
        actor: ActorContext,
        extra_values: dict | None = None,
        metadata: dict | None = None,
    ) -> WashEvent:
        """
        Move a wash event to `target`.

        The row is read under a lock and written with a compare-and-set on the
        status it was read with, so of two racing callers only one succeeds.
        """
        wash_event = await self.get_wash_event(network_id, wash_event_id, for_update=True)
        current = wash_event.status
        if not can_transition(current, target):
            logger.warning(
                "Rejected wash event %s transition %s -> %s", wash_event_id, current, target
            )
            await self.db.rollback()
            raise InvalidTransitionError("WashEvent", current, target.value)

        previous = snapshot(wash_event)
        values = {"status": target.value, TRANSITION_TIMESTAMPS[target]: utcnow()}
        if extra_values:
            values.update(extra_values)

        result = await self.db.execute(
            update(WashEvent)
            .where(
                WashEvent.id == wash_event_id,
                WashEvent.network_id == network_id,
                WashEvent.status == current,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            latest = await self.get_wash_event(network_id, wash_event_id)
            if not can_transition(latest.status, target):
                raise InvalidTransitionError("WashEvent", latest.status, target.value)
            raise ConflictError(
                "Wash event was modified concurrently",
                details={"wash_event_id": wash_event_id},
            )
        await self.db.commit()

        wash_event = await self.get_wash_event(network_id, wash_event_id)
        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                wash_event_id=wash_event_id,
                action=action,
                entity_type="WashEvent",
                entity_id=wash_event_id,
                actor=actor,
                previous_data=previous,
                new_data=snapshot(wash_event),
                metadata=metadata,
            )
        )
        return wash_event
