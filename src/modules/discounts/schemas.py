"""Schemas for Discounts module."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from src.modules.locations.models import OperationType


class DiscountResponse(BaseModel):
    """Volume discount of a partner for a billing period."""

    partner_company_id: int
    period_start: date
    period_end: date
    operation_type: OperationType
    wash_count: int
    discount_percent: Decimal
    tier_level: int | None = None
