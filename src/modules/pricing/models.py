"""Service package and price models."""

from decimal import Decimal
from enum import StrEnum

from sqlalchemy import BigInteger, Boolean, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import BaseModel, NetworkScopedMixin


class VehicleType(StrEnum):
    """Price category of a washed vehicle."""

    SEMI_TRUCK = "SEMI_TRUCK"
    GRAIN_CARRIER = "GRAIN_CARRIER"
    TRAILER_ONLY = "TRAILER_ONLY"
    CONTAINER_CARRIER = "CONTAINER_CARRIER"
    TRACTOR = "TRACTOR"
    TRUCK_1_5T = "TRUCK_1_5T"
    TRUCK_3_5T = "TRUCK_3_5T"
    TRUCK_7_5T = "TRUCK_7_5T"
    TRUCK_12T = "TRUCK_12T"
    TRUCK_12T_PLUS = "TRUCK_12T_PLUS"
    TANK_SOLO = "TANK_SOLO"
    TANK_12T = "TANK_12T"
    TANK_TRUCK = "TANK_TRUCK"
    TANK_SEMI_TRAILER = "TANK_SEMI_TRAILER"
    TANDEM_7_5T = "TANDEM_7_5T"
    TANDEM_7_5T_PLUS = "TANDEM_7_5T_PLUS"
    SILO = "SILO"
    SILO_TANDEM = "SILO_TANDEM"
    TIPPER_MIXER = "TIPPER_MIXER"
    CAR_CARRIER = "CAR_CARRIER"
    MINIBUS = "MINIBUS"
    MIDIBUS = "MIDIBUS"
    BUS = "BUS"
    CAR = "CAR"
    SUV_MPV = "SUV_MPV"
    MACHINERY = "MACHINERY"
    FORKLIFT = "FORKLIFT"
    MOTORCYCLE = "MOTORCYCLE"
    BUILDING_PARTS = "BUILDING_PARTS"
    CHILD_SEAT = "CHILD_SEAT"


class ServicePackage(NetworkScopedMixin, BaseModel):
    """A wash program offered by a network (e.g. exterior, full wash)."""

    __tablename__ = "service_packages"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("network_id", "code", name="uq_service_package_network_code"),
    )


class ServicePrice(NetworkScopedMixin, BaseModel):
    """Network list price of a service for a vehicle type."""

    __tablename__ = "service_prices"

    service_package_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("service_packages.id"), nullable=False, index=True
    )
    vehicle_type: Mapped[str] = mapped_column(String(30), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HUF")
    # Soft-disabled instead of deleted
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "network_id", "service_package_id", "vehicle_type", name="uq_service_price_key"
        ),
    )


class PartnerCustomPrice(NetworkScopedMixin, BaseModel):
    """Negotiated partner price; overrides ServicePrice while active."""

    __tablename__ = "partner_custom_prices"

    partner_company_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("partner_companies.id"), nullable=False, index=True
    )
    service_package_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("service_packages.id"), nullable=False, index=True
    )
    vehicle_type: Mapped[str] = mapped_column(String(30), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HUF")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "partner_company_id",
            "service_package_id",
            "vehicle_type",
            name="uq_partner_custom_price_key",
        ),
    )
