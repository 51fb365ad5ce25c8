#!/usr/bin/env python3
"""
Seed a demo wash network: locations, service packages, price list, one partner
company with discount tiers, drivers and vehicles.

The data is hand-picked so that pricing, discounts and invoicing can be tried
end to end against the API.

Usage:
    python scripts/seed_demo_data.py --dry-run   # nothing is written
    python scripts/seed_demo_data.py --confirm   # write to the database

Requires: migrations applied (alembic upgrade head), database reachable.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.database.session import async_session
from src.modules.fleet.models import Driver, Vehicle, VehicleCategory
from src.modules.locations.models import (
    Location,
    LocationServiceAvailability,
    LocationType,
    LocationVisibility,
    OperationType,
)
from src.modules.networks.models import InvoiceProviderKind, Network, NetworkSettings
from src.modules.partners.models import BillingType, PartnerCompany
from src.modules.pricing.models import (
    PartnerCustomPrice,
    ServicePackage,
    ServicePrice,
    VehicleType,
)

DEMO_NETWORK_SLUG = "demo-wash"

SERVICE_PACKAGES = [
    ("EXT", "Exterior wash"),
    ("FULL", "Full wash"),
    ("CHASSIS", "Chassis wash"),
]

# (package code, vehicle type) -> list price in HUF
PRICE_LIST = {
    ("EXT", VehicleType.SEMI_TRUCK): Decimal("12000"),
    ("EXT", VehicleType.TRACTOR): Decimal("8000"),
    ("EXT", VehicleType.TRAILER_ONLY): Decimal("7000"),
    ("EXT", VehicleType.CAR): Decimal("3500"),
    ("FULL", VehicleType.SEMI_TRUCK): Decimal("18000"),
    ("FULL", VehicleType.TRACTOR): Decimal("11000"),
    ("FULL", VehicleType.CAR): Decimal("6500"),
    ("CHASSIS", VehicleType.SEMI_TRUCK): Decimal("9000"),
}

# Negotiated partner prices
CUSTOM_PRICES = {
    ("EXT", VehicleType.SEMI_TRUCK): Decimal("10500"),
    ("FULL", VehicleType.SEMI_TRUCK): Decimal("16000"),
}

LOCATIONS = [
    ("BUD-M0", "Budapest M0 truck wash", LocationType.TRUCK_WASH, LocationVisibility.NETWORK_ONLY,
     OperationType.OWN),
    ("GYR-M1", "Gyor M1 truck wash", LocationType.TRUCK_WASH, LocationVisibility.PUBLIC,
     OperationType.SUBCONTRACTOR),
    ("BUD-CAR", "Budapest car wash", LocationType.CAR_WASH, LocationVisibility.PUBLIC,
     OperationType.OWN),
]

DRIVERS = [
    ("Gabor", "Kovacs", "+36301234567", "ABC-123", "XYZ-987"),
    ("Istvan", "Nagy", "+36307654321", "DEF-456", None),
]


async def seed_network(session: AsyncSession) -> Network:
    result = await session.execute(select(Network).where(Network.slug == DEMO_NETWORK_SLUG))
    network = result.scalar_one_or_none()
    if network:
        print("  Network already exists, skip.")
        return network

    network = Network(name="Demo Wash Network", slug=DEMO_NETWORK_SLUG, is_active=True)
    session.add(network)
    await session.flush()
    session.add(
        NetworkSettings(
            network_id=network.id,
            invoice_provider=InvoiceProviderKind.SZAMLAZZ.value,
            currency=settings.default_currency,
        )
    )
    await session.flush()
    print(f"  Created network {network.slug} (id={network.id}).")
    return network


async def seed_catalog(session: AsyncSession, network_id: int) -> dict[str, int]:
    """Service packages and the network price list. Returns package id by code."""
    result = await session.execute(
        select(ServicePackage).where(ServicePackage.network_id == network_id)
    )
    existing = {p.code: p.id for p in result.scalars().all()}
    if existing:
        print("  Service packages already exist, skip.")
        return existing

    package_ids: dict[str, int] = {}
    for code, name in SERVICE_PACKAGES:
        package = ServicePackage(network_id=network_id, code=code, name=name, is_active=True)
        session.add(package)
        await session.flush()
        package_ids[code] = package.id

    for (code, vehicle_type), price in PRICE_LIST.items():
        session.add(
            ServicePrice(
                network_id=network_id,
                service_package_id=package_ids[code],
                vehicle_type=vehicle_type.value,
                price=price,
                currency=settings.default_currency,
                is_active=True,
            )
        )
    await session.flush()
    print(f"  Created {len(package_ids)} service packages and {len(PRICE_LIST)} prices.")
    return package_ids


async def seed_locations(
    session: AsyncSession, network_id: int, package_ids: dict[str, int]
) -> None:
    result = await session.execute(select(Location).where(Location.network_id == network_id))
    if result.scalars().first():
        print("  Locations already exist, skip.")
        return

    for code, name, location_type, visibility, operation_type in LOCATIONS:
        location = Location(
            network_id=network_id,
            code=code,
            name=name,
            location_type=location_type.value,
            visibility=visibility.value,
            operation_type=operation_type.value,
            is_active=True,
        )
        session.add(location)
        await session.flush()
        for package_id in package_ids.values():
            session.add(
                LocationServiceAvailability(
                    network_id=network_id,
                    location_id=location.id,
                    service_package_id=package_id,
                    is_active=True,
                )
            )
    await session.flush()
    print(f"  Created {len(LOCATIONS)} locations.")


async def seed_partner(
    session: AsyncSession, network_id: int, package_ids: dict[str, int]
) -> PartnerCompany:
    result = await session.execute(
        select(PartnerCompany).where(
            PartnerCompany.network_id == network_id, PartnerCompany.code == "TRANSLOG"
        )
    )
    partner = result.scalar_one_or_none()
    if partner:
        print("  Partner already exists, skip.")
        return partner

    partner = PartnerCompany(
        network_id=network_id,
        code="TRANSLOG",
        name="TransLog Kft.",
        email="billing@translog.example",
        billing_type=BillingType.CONTRACT.value,
        payment_due_days=15,
        billing_name="TransLog Kft.",
        billing_address="Logisztikai utca 1.",
        billing_city="Budapest",
        billing_zip_code="1239",
        billing_country="HU",
        tax_number="12345678-2-43",
        own_discount_threshold_1=10,
        own_discount_percent_1=Decimal("5"),
        own_discount_threshold_2=20,
        own_discount_percent_2=Decimal("10"),
        own_discount_threshold_3=50,
        own_discount_percent_3=Decimal("15"),
        sub_discount_threshold_1=20,
        sub_discount_percent_1=Decimal("3"),
    )
    session.add(partner)
    await session.flush()

    for (code, vehicle_type), price in CUSTOM_PRICES.items():
        session.add(
            PartnerCustomPrice(
                network_id=network_id,
                partner_company_id=partner.id,
                service_package_id=package_ids[code],
                vehicle_type=vehicle_type.value,
                price=price,
                currency=settings.default_currency,
                is_active=True,
            )
        )
    await session.flush()
    print(f"  Created partner {partner.code} with {len(CUSTOM_PRICES)} custom prices.")
    return partner


async def seed_fleet(session: AsyncSession, network_id: int, partner_id: int) -> None:
    result = await session.execute(select(Driver).where(Driver.network_id == network_id))
    if result.scalars().first():
        print("  Drivers already exist, skip.")
        return

    for first_name, last_name, phone, tractor_plate, trailer_plate in DRIVERS:
        driver = Driver(
            network_id=network_id,
            partner_company_id=partner_id,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            is_active=True,
        )
        session.add(driver)
        await session.flush()
        session.add(
            Vehicle(
                network_id=network_id,
                partner_company_id=partner_id,
                driver_id=driver.id,
                category=VehicleCategory.TRACTOR.value,
                plate_number=tractor_plate,
            )
        )
        if trailer_plate:
            session.add(
                Vehicle(
                    network_id=network_id,
                    partner_company_id=partner_id,
                    driver_id=driver.id,
                    category=VehicleCategory.TRAILER.value,
                    plate_number=trailer_plate,
                )
            )

    # A private customer: no partner company, PUBLIC locations only
    private = Driver(
        network_id=network_id,
        first_name="Anna",
        last_name="Szabo",
        phone="+36209998877",
        is_active=True,
    )
    session.add(private)
    await session.flush()
    session.add(
        Vehicle(
            network_id=network_id,
            driver_id=private.id,
            category=VehicleCategory.SOLO.value,
            plate_number="PRV-001",
        )
    )
    await session.flush()
    print(f"  Created {len(DRIVERS) + 1} drivers with vehicles.")


async def run_seed(session: AsyncSession, dry_run: bool) -> None:
    network = await seed_network(session)
    package_ids = await seed_catalog(session, network.id)
    await seed_locations(session, network.id, package_ids)
    partner = await seed_partner(session, network.id, package_ids)
    await seed_fleet(session, network.id, partner.id)

    if dry_run:
        await session.rollback()
        print("\n[DRY-RUN] Rolled back, no data written.")
    else:
        await session.commit()
        print(f"\nSeed completed. Use header X-Network-Id: {network.id}")


async def main() -> None:
    import argparse
    parser = argparse.ArgumentParser(description="Seed database with a demo wash network")
    parser.add_argument("--dry-run", action="store_true", help="Do not commit")
    parser.add_argument("--confirm", action="store_true", help="Commit changes")
    args = parser.parse_args()
    if not args.dry_run and not args.confirm:
        print("Use --dry-run or --confirm")
        sys.exit(1)

    print("Database:", settings.database_url.split("@")[-1] if "@" in settings.database_url else "?")
    print("Mode:", "DRY-RUN" if args.dry_run else "CONFIRM")
    async with async_session() as session:
        await run_seed(session, dry_run=args.dry_run)
    print("Done.")


if __name__ == "__main__":
    asyncio.run(main())
