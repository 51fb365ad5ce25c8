"""Schemas for Wash Events module."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from src.modules.invoices.models import PaymentMethod
from src.modules.pricing.models import VehicleType
from src.modules.wash_events.models import EntryMode, VehicleRole, WashEventStatus


def _upper_plate(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


class ServiceLineInput(BaseModel):
    """One requested service for one vehicle of the wash."""

    service_package_id: int
    vehicle_type: VehicleType | None = None
    vehicle_role: VehicleRole = VehicleRole.TRACTOR
    plate_number: str | None = Field(None, max_length=20)
    quantity: int = Field(1, ge=1, le=100)

    @field_validator("plate_number")
    @classmethod
    def normalize_plate(cls, v: str | None) -> str | None:
        return _upper_plate(v)


class QrWashEventCreate(BaseModel):
    """Wash started by a driver scanning the location QR code."""

    location_id: int
    driver_id: int
    service_package_id: int
    tractor_vehicle_id: int | None = None
    tractor_plate_manual: str | None = Field(None, max_length=20)
    trailer_vehicle_id: int | None = None
    trailer_plate_manual: str | None = Field(None, max_length=20)
    services: list[ServiceLineInput] | None = None
    payment_method: PaymentMethod | None = None

    @field_validator("tractor_plate_manual", "trailer_plate_manual")
    @classmethod
    def normalize_plate(cls, v: str | None) -> str | None:
        return _upper_plate(v)

    @model_validator(mode="after")
    def require_tractor(self):
        if self.tractor_vehicle_id is None and not self.tractor_plate_manual:
            raise ValueError("Tractor vehicle id or manual plate is required")
        return self


class ManualWashEventCreate(BaseModel):
    """Wash recorded by a location operator for a partner's vehicle."""

    location_id: int
    partner_company_id: int
    driver_name_manual: str = Field(..., min_length=1, max_length=200)
    service_package_id: int
    tractor_plate_manual: str = Field(..., min_length=1, max_length=20)
    trailer_plate_manual: str | None = Field(None, max_length=20)
    services: list[ServiceLineInput] | None = None
    payment_method: PaymentMethod | None = None

    @field_validator("tractor_plate_manual", "trailer_plate_manual")
    @classmethod
    def normalize_plate(cls, v: str | None) -> str | None:
        return _upper_plate(v)

    @model_validator(mode="after")
    def require_tractor(self):
        if not self.tractor_plate_manual:
            raise ValueError("Tractor plate is required")
        return self


class WashEventReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Rejection reason must not be empty")
        return v


class WashEventFilters(BaseModel):
    location_id: int | None = None
    driver_id: int | None = None
    partner_company_id: int | None = None
    status: WashEventStatus | None = None
    date_from: date | None = None
    date_to: date | None = None
    uninvoiced_only: bool = False
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=200)


class ServiceLineResponse(BaseModel):
    id: int
    service_package_id: int
    vehicle_type: str
    vehicle_role: str
    plate_number: str | None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_custom_price: bool

    model_config = {"from_attributes": True}


class WashEventResponse(BaseModel):
    """Wash event as stored; also used for audit snapshots."""

    id: int
    network_id: int
    location_id: int
    entry_mode: EntryMode
    status: WashEventStatus
    driver_id: int | None
    partner_company_id: int | None
    driver_name_manual: str | None
    tractor_vehicle_id: int | None
    tractor_plate_manual: str | None
    trailer_vehicle_id: int | None
    trailer_plate_manual: str | None
    service_package_id: int
    tractor_price: Decimal
    trailer_price: Decimal
    total_price: Decimal
    final_price: Decimal
    currency: str
    payment_method: str | None
    invoice_id: int | None
    rejection_reason: str | None
    created_at: datetime
    authorized_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    rejected_at: datetime | None
    locked_at: datetime | None
    service_lines: list[ServiceLineResponse] = []

    model_config = {"from_attributes": True}
