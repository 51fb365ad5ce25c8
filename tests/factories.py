"""Builders for test data. Each one commits so services see the rows."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit import ActorContext, ActorType
from src.modules.fleet.models import Driver, Vehicle, VehicleCategory
from src.modules.locations.models import (
    Location,
    LocationDedicatedPartner,
    LocationServiceAvailability,
    LocationType,
    LocationVisibility,
    OperationType,
)
from src.modules.networks.models import InvoiceProviderKind, Network, NetworkSettings
from src.modules.partners.models import PartnerCompany
from src.modules.pricing.models import (
    PartnerCustomPrice,
    ServicePackage,
    ServicePrice,
    VehicleType,
)
from src.modules.wash_events.models import EntryMode, WashEvent, WashEventStatus
from src.modules.wash_events.schemas import ManualWashEventCreate
from src.modules.wash_events.service import WashEventService
from src.shared.utils.dates import utcnow

TEST_ACTOR = ActorContext(actor_type=ActorType.OPERATOR, actor_id="test")


async def create_network(
    db: AsyncSession,
    slug: str = "north",
    provider: InvoiceProviderKind = InvoiceProviderKind.NONE,
) -> Network:
    network = Network(name=f"Network {slug}", slug=slug, is_active=True)
    db.add(network)
    await db.flush()
    db.add(NetworkSettings(network_id=network.id, invoice_provider=provider.value))
    await db.commit()
    return network


async def create_partner(
    db: AsyncSession, network_id: int, code: str = "P1", **kwargs
) -> PartnerCompany:
    values = {
        "name": f"Partner {code}",
        "billing_name": f"Partner {code} Kft.",
        "billing_address": "Fo utca 1.",
        "billing_city": "Budapest",
        "billing_zip_code": "1011",
        "billing_country": "HU",
        "tax_number": "12345678-2-41",
        "payment_due_days": 15,
    }
    values.update(kwargs)
    partner = PartnerCompany(network_id=network_id, code=code, is_active=True, **values)
    db.add(partner)
    await db.commit()
    return partner


async def create_service(db: AsyncSession, network_id: int, code: str = "EXT") -> ServicePackage:
    package = ServicePackage(network_id=network_id, code=code, name=f"Wash {code}", is_active=True)
    db.add(package)
    await db.commit()
    return package


async def create_location(
    db: AsyncSession,
    network_id: int,
    code: str = "L1",
    services: list[ServicePackage] | None = None,
    visibility: LocationVisibility = LocationVisibility.NETWORK_ONLY,
    location_type: LocationType = LocationType.TRUCK_WASH,
    operation_type: OperationType = OperationType.OWN,
    dedicated_partner_ids: list[int] | None = None,
) -> Location:
    location = Location(
        network_id=network_id,
        code=code,
        name=f"Location {code}",
        visibility=visibility.value,
        location_type=location_type.value,
        operation_type=operation_type.value,
        is_active=True,
    )
    db.add(location)
    await db.flush()
    for package in services or []:
        db.add(
            LocationServiceAvailability(
                network_id=network_id,
                location_id=location.id,
                service_package_id=package.id,
                is_active=True,
            )
        )
    for partner_id in dedicated_partner_ids or []:
        db.add(LocationDedicatedPartner(location_id=location.id, partner_company_id=partner_id))
    await db.commit()
    return location


async def set_price(
    db: AsyncSession,
    network_id: int,
    package: ServicePackage,
    price: str,
    vehicle_type: VehicleType = VehicleType.SEMI_TRUCK,
    partner_id: int | None = None,
    is_active: bool = True,
):
    if partner_id is None:
        row = ServicePrice(
            network_id=network_id,
            service_package_id=package.id,
            vehicle_type=vehicle_type.value,
            price=Decimal(price),
            currency="HUF",
            is_active=is_active,
        )
    else:
        row = PartnerCustomPrice(
            network_id=network_id,
            partner_company_id=partner_id,
            service_package_id=package.id,
            vehicle_type=vehicle_type.value,
            price=Decimal(price),
            currency="HUF",
            is_active=is_active,
        )
    db.add(row)
    await db.commit()
    return row


async def create_driver(
    db: AsyncSession, network_id: int, partner_id: int | None = None, name: str = "Gabor"
) -> Driver:
    driver = Driver(
        network_id=network_id,
        partner_company_id=partner_id,
        first_name=name,
        last_name="Kovacs",
        is_active=True,
    )
    db.add(driver)
    await db.commit()
    return driver


async def create_vehicle(
    db: AsyncSession,
    network_id: int,
    plate: str,
    category: VehicleCategory = VehicleCategory.TRACTOR,
    partner_id: int | None = None,
    driver_id: int | None = None,
) -> Vehicle:
    vehicle = Vehicle(
        network_id=network_id,
        partner_company_id=partner_id,
        driver_id=driver_id,
        category=category.value,
        plate_number=plate,
        is_active=True,
    )
    db.add(vehicle)
    await db.commit()
    return vehicle


async def completed_wash(
    db: AsyncSession,
    network_id: int,
    location_id: int,
    partner_id: int,
    service_package_id: int,
    tractor_plate: str = "ABC-123",
    trailer_plate: str | None = None,
) -> WashEvent:
    """Operator-entered wash taken through to COMPLETED."""
    service = WashEventService(db)
    wash_event = await service.create_manual_operator(
        network_id,
        ManualWashEventCreate(
            location_id=location_id,
            partner_company_id=partner_id,
            driver_name_manual="Test Driver",
            service_package_id=service_package_id,
            tractor_plate_manual=tractor_plate,
            trailer_plate_manual=trailer_plate,
        ),
        TEST_ACTOR,
    )
    await service.authorize(network_id, wash_event.id, TEST_ACTOR)
    await service.start(network_id, wash_event.id, TEST_ACTOR)
    return await service.complete(network_id, wash_event.id, TEST_ACTOR)


async def insert_completed_washes(
    db: AsyncSession,
    network_id: int,
    location_id: int,
    partner_id: int | None,
    service_package_id: int,
    count: int,
    completed_at: datetime | None = None,
    status: WashEventStatus = WashEventStatus.COMPLETED,
) -> list[WashEvent]:
    """Finished washes written straight to the table, for counting tests."""
    completed_at = completed_at or utcnow()
    wash_events = [
        WashEvent(
            network_id=network_id,
            location_id=location_id,
            entry_mode=EntryMode.MANUAL_OPERATOR.value,
            status=status.value,
            partner_company_id=partner_id,
            driver_name_manual="Bulk Driver",
            tractor_plate_manual=f"BLK-{i:03d}",
            service_package_id=service_package_id,
            tractor_price=Decimal("1000.00"),
            trailer_price=Decimal("0.00"),
            total_price=Decimal("1000.00"),
            final_price=Decimal("1000.00"),
            currency="HUF",
            authorized_at=completed_at,
            started_at=completed_at,
            completed_at=completed_at,
        )
        for i in range(count)
    ]
    db.add_all(wash_events)
    await db.commit()
    return wash_events
