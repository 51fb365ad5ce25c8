"""Schemas for Invoices module."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from src.modules.invoices.models import InvoiceStatus, InvoiceType, PaymentMethod


class InvoicePrepare(BaseModel):
    """Collect a partner's uninvoiced completed washes of a period into a draft."""

    partner_company_id: int
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def validate_period(self):
        if self.period_end < self.period_start:
            raise ValueError("period_end must not be before period_start")
        return self


class CashInvoiceCreate(BaseModel):
    """
    Invoice a single wash paid on the spot.

    Billing fields are required when the wash has no partner company; otherwise
    the partner's billing identity is used.
    """

    wash_event_id: int
    payment_method: PaymentMethod
    billing_name: str | None = Field(None, max_length=255)
    billing_address: str | None = Field(None, max_length=255)
    billing_city: str | None = Field(None, max_length=100)
    billing_zip_code: str | None = Field(None, max_length=20)
    billing_country: str | None = Field(None, min_length=2, max_length=2)
    tax_number: str | None = Field(None, max_length=50)
    eu_vat_number: str | None = Field(None, max_length=50)


class InvoiceIssue(BaseModel):
    provider_name: str | None = None


class InvoiceCancel(BaseModel):
    provider_name: str | None = None
    reason: str | None = Field(None, max_length=500)


class InvoiceMarkPaid(BaseModel):
    payment_method: PaymentMethod
    paid_date: date | None = None


class InvoiceFilters(BaseModel):
    partner_company_id: int | None = None
    status: InvoiceStatus | None = None
    invoice_type: InvoiceType | None = None
    issue_date_from: date | None = None
    issue_date_to: date | None = None
    due_date_from: date | None = None
    due_date_to: date | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=200)


class InvoiceItemResponse(BaseModel):
    id: int
    position: int
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    vat_rate: Decimal
    wash_event_id: int | None
    service_package_id: int | None

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: int
    network_id: int
    partner_company_id: int | None
    invoice_type: InvoiceType
    status: InvoiceStatus
    period_start: date | None
    period_end: date | None
    issue_date: date | None
    due_date: date | None
    paid_date: date | None
    cancelled_at: datetime | None
    subtotal: Decimal
    discount_percent: Decimal | None
    discount_amount: Decimal | None
    subtotal_after_discount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total: Decimal
    currency: str
    payment_method: str | None
    billing_name: str
    billing_address: str
    billing_city: str
    billing_zip_code: str
    billing_country: str
    tax_number: str | None
    eu_vat_number: str | None
    invoice_number: str | None
    external_id: str | None
    pdf_url: str | None
    provider_name: str | None
    created_at: datetime
    items: list[InvoiceItemResponse] = []

    model_config = {"from_attributes": True}


class OverdueProcessRequest(BaseModel):
    as_of: date | None = None


class OverdueProcessResponse(BaseModel):
    updated: int
