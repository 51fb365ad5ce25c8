"""Invoice provider capability shared by all external invoicing services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from enum import StrEnum

import httpx
from pydantic import BaseModel, Field


class ProviderPaymentMethod(StrEnum):
    """Payment method vocabulary understood by providers."""

    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"
    OTHER = "other"


class InvoiceCustomer(BaseModel):
    name: str
    address: str = ""
    city: str = ""
    zip_code: str = ""
    country: str = "HU"
    tax_number: str | None = None
    eu_vat_number: str | None = None
    email: str | None = None


class InvoiceLine(BaseModel):
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal  # net
    vat_rate: Decimal  # percent, e.g. 27
    unit: str = "db"


class CreateInvoiceRequest(BaseModel):
    customer: InvoiceCustomer
    currency: str = "HUF"
    language: str = "hu"
    payment_method: ProviderPaymentMethod = ProviderPaymentMethod.TRANSFER
    issue_date: date
    due_date: date
    comment: str | None = None
    items: list[InvoiceLine]
    send_email: bool = False


class InvoiceResult(BaseModel):
    success: bool
    invoice_number: str | None = None
    external_id: str | None = None
    pdf_url: str | None = None
    error: str | None = None


class CancelInvoiceRequest(BaseModel):
    invoice_number: str
    external_id: str | None = None
    reason: str | None = None


class CancelResult(BaseModel):
    success: bool
    cancelled_invoice_number: str | None = None
    error: str | None = None


class ProviderConfig(BaseModel):
    """
    Credentials and endpoints for one provider call.

    Resolved from the network's settings (falling back to the environment) once
    per request and passed by value; providers keep no per-network state.
    """

    timeout_seconds: float = 30.0
    szamlazz_api_url: str = "https://www.szamlazz.hu/szamla/"
    szamlazz_agent_key: str = Field("", repr=False)
    billingo_api_url: str = "https://api.billingo.hu/v3"
    billingo_api_key: str = Field("", repr=False)
    billingo_block_id: int = 0
    billingo_bank_account_id: int | None = None

    model_config = {"frozen": True}


class InvoiceProvider(ABC):
    """
    An external invoicing service.

    Implementations never raise for provider-side failures (HTTP errors,
    timeouts, rejected requests); they return a result with success=False and
    the provider's error text instead.
    """

    name: str

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    def _client(self, config: ProviderConfig, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=config.timeout_seconds, transport=self._transport, **kwargs
        )

    @abstractmethod
    async def create_invoice(
        self, request: CreateInvoiceRequest, config: ProviderConfig
    ) -> InvoiceResult:
        """Create and issue an invoice."""

    @abstractmethod
    async def cancel_invoice(
        self, request: CancelInvoiceRequest, config: ProviderConfig
    ) -> CancelResult:
        """Cancel (storno) an issued invoice."""


def describe_http_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    return str(exc) or exc.__class__.__name__
