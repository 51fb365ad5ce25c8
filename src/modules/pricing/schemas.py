"""Schemas for Pricing module."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.modules.pricing.models import VehicleType


class ServicePriceUpsert(BaseModel):
    """Create or replace the network list price of a service for a vehicle type."""

    service_package_id: int
    vehicle_type: VehicleType
    price: Decimal = Field(..., ge=0, decimal_places=2)
    currency: str | None = Field(None, min_length=3, max_length=3)


class PartnerPriceUpsert(ServicePriceUpsert):
    """Create or replace a negotiated partner price."""

    partner_company_id: int


class ServicePriceResponse(BaseModel):
    id: int
    network_id: int
    service_package_id: int
    vehicle_type: str
    price: Decimal
    currency: str
    is_active: bool

    model_config = {"from_attributes": True}


class PartnerPriceResponse(ServicePriceResponse):
    partner_company_id: int


class PriceListResponse(BaseModel):
    """Network prices and, when a partner was requested, its overrides."""

    service_prices: list[ServicePriceResponse]
    partner_prices: list[PartnerPriceResponse]


class ResolvedPriceResponse(BaseModel):
    service_package_id: int
    vehicle_type: str
    partner_company_id: int | None
    price: Decimal
    currency: str
    is_custom_price: bool
