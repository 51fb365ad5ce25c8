"""Driver and vehicle models."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import BaseModel, NetworkScopedMixin


class VehicleCategory(StrEnum):
    """Physical category of a registered vehicle."""

    SOLO = "SOLO"
    TRACTOR = "TRACTOR"
    TRAILER = "TRAILER"


# Categories that can be washed as the primary (tractor) vehicle
TRACTOR_CATEGORIES = frozenset({VehicleCategory.TRACTOR.value, VehicleCategory.SOLO.value})


class Driver(NetworkScopedMixin, BaseModel):
    """
    A driver who starts washes via QR code.

    Drivers without a partner company are private customers: they pay per
    wash and may only use PUBLIC locations.
    """

    __tablename__ = "drivers"

    partner_company_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("partner_companies.id"), nullable=True, index=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    partner_company: Mapped["PartnerCompany | None"] = relationship("PartnerCompany")

    @property
    def is_private_customer(self) -> bool:
        return self.partner_company_id is None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Vehicle(NetworkScopedMixin, BaseModel):
    """A registered vehicle, owned by a partner company or by a private driver."""

    __tablename__ = "vehicles"

    partner_company_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("partner_companies.id"), nullable=True, index=True
    )
    driver_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("drivers.id"), nullable=True, index=True
    )
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    plate_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# Import at the end to avoid circular imports
from src.modules.partners.models import PartnerCompany  # noqa: E402
