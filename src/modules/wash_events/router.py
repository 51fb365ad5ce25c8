"""API endpoints for Wash Events module."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.schemas import AuditLogResponse
from src.core.context.dependencies import Actor, NetworkId
from src.core.database.session import get_db
from src.modules.wash_events.models import WashEventStatus
from src.modules.wash_events.schemas import (
    ManualWashEventCreate,
    QrWashEventCreate,
    WashEventFilters,
    WashEventReject,
    WashEventResponse,
)
from src.modules.wash_events.service import WashEventService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/wash-events", tags=["Wash Events"])


@router.post(
    "/qr",
    response_model=ApiResponse[WashEventResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_qr_wash_event(
    data: QrWashEventCreate,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    """Start a wash from a driver's QR scan."""
    service = WashEventService(db)
    wash_event = await service.create_qr_driver(network_id, data, actor)
    return ApiResponse(
        success=True,
        message="Wash event created",
        data=WashEventResponse.model_validate(wash_event),
    )


@router.post(
    "/manual",
    response_model=ApiResponse[WashEventResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_manual_wash_event(
    data: ManualWashEventCreate,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    """Record a wash entered by a location operator."""
    service = WashEventService(db)
    wash_event = await service.create_manual_operator(network_id, data, actor)
    return ApiResponse(
        success=True,
        message="Wash event created",
        data=WashEventResponse.model_validate(wash_event),
    )


@router.get("", response_model=ApiResponse[PaginatedResponse[WashEventResponse]])
async def list_wash_events(
    network_id: NetworkId,
    location_id: int | None = Query(None),
    driver_id: int | None = Query(None),
    partner_company_id: int | None = Query(None),
    status: WashEventStatus | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    uninvoiced_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    filters = WashEventFilters(
        location_id=location_id,
        driver_id=driver_id,
        partner_company_id=partner_company_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        uninvoiced_only=uninvoiced_only,
        page=page,
        limit=limit,
    )
    service = WashEventService(db)
    wash_events, total = await service.list_wash_events(network_id, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[WashEventResponse.model_validate(w) for w in wash_events],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/{wash_event_id}", response_model=ApiResponse[WashEventResponse])
async def get_wash_event(
    wash_event_id: int,
    network_id: NetworkId,
    db: AsyncSession = Depends(get_db),
):
    service = WashEventService(db)
    wash_event = await service.get_wash_event(network_id, wash_event_id)
    return ApiResponse(success=True, data=WashEventResponse.model_validate(wash_event))


@router.get("/{wash_event_id}/audit", response_model=ApiResponse[list[AuditLogResponse]])
async def get_wash_event_audit(
    wash_event_id: int,
    network_id: NetworkId,
    db: AsyncSession = Depends(get_db),
):
    """Audit trail of a wash event, oldest first."""
    service = WashEventService(db)
    logs = await service.list_audit_trail(network_id, wash_event_id)
    return ApiResponse(success=True, data=[AuditLogResponse.model_validate(log) for log in logs])


@router.post("/{wash_event_id}/authorize", response_model=ApiResponse[WashEventResponse])
async def authorize_wash_event(
    wash_event_id: int,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = WashEventService(db)
    wash_event = await service.authorize(network_id, wash_event_id, actor)
    return ApiResponse(
        success=True,
        message="Wash event authorized",
        data=WashEventResponse.model_validate(wash_event),
    )


@router.post("/{wash_event_id}/start", response_model=ApiResponse[WashEventResponse])
async def start_wash_event(
    wash_event_id: int,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = WashEventService(db)
    wash_event = await service.start(network_id, wash_event_id, actor)
    return ApiResponse(
        success=True,
        message="Wash started",
        data=WashEventResponse.model_validate(wash_event),
    )


@router.post("/{wash_event_id}/complete", response_model=ApiResponse[WashEventResponse])
async def complete_wash_event(
    wash_event_id: int,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = WashEventService(db)
    wash_event = await service.complete(network_id, wash_event_id, actor)
    return ApiResponse(
        success=True,
        message="Wash completed",
        data=WashEventResponse.model_validate(wash_event),
    )


@router.post("/{wash_event_id}/reject", response_model=ApiResponse[WashEventResponse])
async def reject_wash_event(
    wash_event_id: int,
    data: WashEventReject,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = WashEventService(db)
    wash_event = await service.reject(network_id, wash_event_id, data.reason, actor)
    return ApiResponse(
        success=True,
        message="Wash event rejected",
        data=WashEventResponse.model_validate(wash_event),
    )


@router.post("/{wash_event_id}/lock", response_model=ApiResponse[WashEventResponse])
async def lock_wash_event(
    wash_event_id: int,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = WashEventService(db)
    wash_event = await service.lock(network_id, wash_event_id, actor)
    return ApiResponse(
        success=True,
        message="Wash event locked",
        data=WashEventResponse.model_validate(wash_event),
    )
