"""API endpoints for Pricing module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.context.dependencies import Actor, NetworkId
from src.core.database.session import get_db
from src.core.exceptions import NotFoundError
from src.modules.pricing.models import VehicleType
from src.modules.pricing.schemas import (
    PartnerPriceResponse,
    PartnerPriceUpsert,
    PriceListResponse,
    ResolvedPriceResponse,
    ServicePriceResponse,
    ServicePriceUpsert,
)
from src.modules.pricing.service import PricingService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.get("/resolve", response_model=ApiResponse[ResolvedPriceResponse])
async def resolve_price(
    network_id: NetworkId,
    service_package_id: int = Query(...),
    vehicle_type: VehicleType = Query(...),
    partner_company_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Resolve the effective unit price (partner override first, then list price)."""
    service = PricingService(db)
    resolved = await service.resolve_price(
        network_id, service_package_id, vehicle_type.value, partner_company_id
    )
    if resolved is None:
        raise NotFoundError("Price")
    return ApiResponse(
        success=True,
        data=ResolvedPriceResponse(
            service_package_id=service_package_id,
            vehicle_type=vehicle_type.value,
            partner_company_id=partner_company_id,
            price=resolved.price,
            currency=resolved.currency,
            is_custom_price=resolved.is_custom_price,
        ),
    )


@router.get("", response_model=ApiResponse[PriceListResponse])
async def list_prices(
    network_id: NetworkId,
    service_package_id: int | None = Query(None),
    partner_company_id: int | None = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    service = PricingService(db)
    service_prices, partner_prices = await service.list_prices(
        network_id,
        service_package_id=service_package_id,
        partner_company_id=partner_company_id,
        include_inactive=include_inactive,
    )
    return ApiResponse(
        success=True,
        data=PriceListResponse(
            service_prices=[ServicePriceResponse.model_validate(p) for p in service_prices],
            partner_prices=[PartnerPriceResponse.model_validate(p) for p in partner_prices],
        ),
    )


@router.put(
    "/service-prices",
    response_model=ApiResponse[ServicePriceResponse],
    status_code=status.HTTP_200_OK,
)
async def upsert_service_price(
    data: ServicePriceUpsert,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = PricingService(db)
    row = await service.upsert_service_price(network_id, data, actor)
    return ApiResponse(
        success=True,
        message="Service price saved",
        data=ServicePriceResponse.model_validate(row),
    )


@router.post(
    "/service-prices/{price_id}/deactivate",
    response_model=ApiResponse[ServicePriceResponse],
)
async def deactivate_service_price(
    price_id: int,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = PricingService(db)
    row = await service.deactivate_service_price(network_id, price_id, actor)
    return ApiResponse(
        success=True,
        message="Service price deactivated",
        data=ServicePriceResponse.model_validate(row),
    )


@router.put("/partner-prices", response_model=ApiResponse[PartnerPriceResponse])
async def upsert_partner_price(
    data: PartnerPriceUpsert,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = PricingService(db)
    row = await service.upsert_partner_price(network_id, data, actor)
    return ApiResponse(
        success=True,
        message="Partner price saved",
        data=PartnerPriceResponse.model_validate(row),
    )


@router.post(
    "/partner-prices/{price_id}/deactivate",
    response_model=ApiResponse[PartnerPriceResponse],
)
async def deactivate_partner_price(
    price_id: int,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = PricingService(db)
    row = await service.deactivate_partner_price(network_id, price_id, actor)
    return ApiResponse(
        success=True,
        message="Partner price deactivated",
        data=PartnerPriceResponse.model_validate(row),
    )
