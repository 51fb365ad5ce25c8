"""Invoice and InvoiceItem models."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BaseModel, BigIntPK, NetworkScopedMixin


class InvoiceType(StrEnum):
    """Invoice type enumeration."""

    PERIODIC = "PERIODIC"  # partner billing period
    CASH = "CASH"  # single wash, paid on the spot


class InvoiceStatus(StrEnum):
    """Invoice status enumeration."""

    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentMethod(StrEnum):
    """How a wash or invoice is paid."""

    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    DKV = "DKV"
    UTA = "UTA"
    MOL = "MOL"
    SHELL = "SHELL"
    TRAVIS = "TRAVIS"
    OTHER = "OTHER"


class Invoice(NetworkScopedMixin, BaseModel):
    """Invoice for a partner company (periodic) or a single wash (cash)."""

    __tablename__ = "invoices"

    partner_company_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("partner_companies.id"), nullable=True, index=True
    )

    # Type and status
    invoice_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceType.PERIODIC.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.DRAFT.value, index=True
    )

    # Billing period (null for cash invoices)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Dates
    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Amounts (Decimal with 2 decimal places)
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )  # before discount
    discount_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    subtotal_after_discount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)  # percent
    vat_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HUF")
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Billing identity, copied from the partner when the invoice is created
    billing_name: Mapped[str] = mapped_column(String(255), nullable=False)
    billing_address: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    billing_city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    billing_zip_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    billing_country: Mapped[str] = mapped_column(String(2), nullable=False, default="HU")
    tax_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    eu_vat_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Set when the provider accepted the invoice
    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    external_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pdf_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_name: Mapped[str | None] = mapped_column(String(50), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    partner_company: Mapped["PartnerCompany | None"] = relationship("PartnerCompany")
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )

    @property
    def is_cash(self) -> bool:
        return self.invoice_type == InvoiceType.CASH.value


class InvoiceItem(Base):
    """Line of an invoice; one per priced vehicle of a wash."""

    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    wash_event_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("wash_events.id"), nullable=True, index=True
    )
    service_package_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("service_packages.id"), nullable=True
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")


# Import at the end to avoid circular imports
from src.modules.partners.models import PartnerCompany  # noqa: E402
