"""Location and service availability models."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BaseModel, BigIntPK, NetworkScopedMixin


class LocationType(StrEnum):
    """What kind of vehicles a location is built for."""

    CAR_WASH = "CAR_WASH"
    TRUCK_WASH = "TRUCK_WASH"


class OperationType(StrEnum):
    """Who operates the location; selects the partner discount tier set."""

    OWN = "OWN"
    SUBCONTRACTOR = "SUBCONTRACTOR"


class LocationVisibility(StrEnum):
    """Which drivers may start a wash at a location."""

    PUBLIC = "PUBLIC"
    NETWORK_ONLY = "NETWORK_ONLY"
    DEDICATED = "DEDICATED"


class Location(NetworkScopedMixin, BaseModel):
    """A physical wash site of a network."""

    __tablename__ = "locations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    location_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LocationType.TRUCK_WASH.value
    )
    operation_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OperationType.OWN.value, index=True
    )
    visibility: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LocationVisibility.NETWORK_ONLY.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    dedicated_partners: Mapped[list["LocationDedicatedPartner"]] = relationship(
        "LocationDedicatedPartner", back_populates="location", cascade="all, delete-orphan"
    )

    __table_args__ = (UniqueConstraint("network_id", "code", name="uq_location_network_code"),)

    @property
    def dedicated_partner_ids(self) -> set[int]:
        """Partner ids allowed at a DEDICATED location (relationship must be loaded)."""
        return {link.partner_company_id for link in self.dedicated_partners}


class LocationDedicatedPartner(Base):
    """Allow-list entry of a DEDICATED location."""

    __tablename__ = "location_dedicated_partners"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    location_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    partner_company_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("partner_companies.id"), nullable=False, index=True
    )

    location: Mapped["Location"] = relationship("Location", back_populates="dedicated_partners")

    __table_args__ = (
        UniqueConstraint("location_id", "partner_company_id", name="uq_location_dedicated_partner"),
    )


class LocationServiceAvailability(NetworkScopedMixin, Base):
    """A service package enabled at a location."""

    __tablename__ = "location_service_availability"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    location_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_package_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("service_packages.id"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("location_id", "service_package_id", name="uq_location_service"),
    )
