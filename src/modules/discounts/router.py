"""API endpoints for Discounts module."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.context.dependencies import NetworkId
from src.core.database.session import get_db
from src.modules.discounts.schemas import DiscountResponse
from src.modules.discounts.service import DiscountService
from src.modules.locations.models import OperationType
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/partners", tags=["Discounts"])


@router.get("/{partner_company_id}/discount", response_model=ApiResponse[DiscountResponse])
async def get_partner_discount(
    partner_company_id: int,
    network_id: NetworkId,
    period_start: date = Query(...),
    period_end: date = Query(...),
    operation_type: OperationType | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Volume discount the partner earns for the period."""
    service = DiscountService(db)
    result = await service.calculate_discount(
        network_id, partner_company_id, period_start, period_end, operation_type
    )
    return ApiResponse(
        success=True,
        data=DiscountResponse(
            partner_company_id=partner_company_id,
            period_start=period_start,
            period_end=period_end,
            operation_type=operation_type or OperationType.OWN,
            wash_count=result.wash_count,
            discount_percent=result.discount_percent,
            tier_level=result.tier_level,
        ),
    )
