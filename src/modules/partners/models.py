"""Partner company (fleet customer) model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import BaseModel, NetworkScopedMixin
from src.modules.locations.models import OperationType

DISCOUNT_TIER_COUNT = 5


class BillingType(StrEnum):
    """How a partner is billed."""

    CONTRACT = "CONTRACT"  # periodic invoice
    CASH = "CASH"  # invoice per transaction


@dataclass(frozen=True)
class DiscountTier:
    """Volume discount tier: at least `threshold` washes earn `percent`."""

    level: int
    threshold: int
    percent: Decimal


class PartnerCompany(NetworkScopedMixin, BaseModel):
    """A fleet company whose drivers wash at the network's locations."""

    __tablename__ = "partner_companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BillingType.CONTRACT.value
    )
    payment_due_days: Mapped[int] = mapped_column(Integer, nullable=False, default=8)

    # Billing identity (copied onto invoices at creation time)
    billing_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    billing_zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    billing_country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    tax_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    eu_vat_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Discount tiers for OWN-operated locations
    own_discount_threshold_1: Mapped[int | None] = mapped_column(Integer, nullable=True)
    own_discount_percent_1: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    own_discount_threshold_2: Mapped[int | None] = mapped_column(Integer, nullable=True)
    own_discount_percent_2: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    own_discount_threshold_3: Mapped[int | None] = mapped_column(Integer, nullable=True)
    own_discount_percent_3: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    own_discount_threshold_4: Mapped[int | None] = mapped_column(Integer, nullable=True)
    own_discount_percent_4: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    own_discount_threshold_5: Mapped[int | None] = mapped_column(Integer, nullable=True)
    own_discount_percent_5: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    # Discount tiers for SUBCONTRACTOR-operated locations
    sub_discount_threshold_1: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sub_discount_percent_1: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    sub_discount_threshold_2: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sub_discount_percent_2: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    sub_discount_threshold_3: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sub_discount_percent_3: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    sub_discount_threshold_4: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sub_discount_percent_4: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    sub_discount_threshold_5: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sub_discount_percent_5: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    __table_args__ = (UniqueConstraint("network_id", "code", name="uq_partner_network_code"),)

    def discount_tiers(
        self, operation_type: OperationType | str | None = None
    ) -> list[DiscountTier]:
        """
        Configured tiers for an operation type, lowest level first.

        OWN is used when no operation type is given. Tiers with a missing or
        non-positive threshold are skipped.
        """
        prefix = "sub" if operation_type == OperationType.SUBCONTRACTOR else "own"
        tiers: list[DiscountTier] = []
        for level in range(1, DISCOUNT_TIER_COUNT + 1):
            threshold = getattr(self, f"{prefix}_discount_threshold_{level}")
            if not threshold or threshold <= 0:
                continue
            percent = getattr(self, f"{prefix}_discount_percent_{level}") or Decimal("0")
            tiers.append(DiscountTier(level=level, threshold=threshold, percent=Decimal(percent)))
        return tiers
