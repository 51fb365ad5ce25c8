"""API endpoints for Invoices module."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.context.dependencies import Actor, NetworkId
from src.core.database.session import get_db
from src.core.exceptions import ProviderError
from src.integrations.invoicing import InvoiceProviderRegistry, get_provider_registry
from src.modules.invoices.issuer import InvoiceIssuer
from src.modules.invoices.models import InvoiceStatus, InvoiceType
from src.modules.invoices.schemas import (
    CashInvoiceCreate,
    InvoiceCancel,
    InvoiceFilters,
    InvoiceIssue,
    InvoiceMarkPaid,
    InvoicePrepare,
    InvoiceResponse,
    OverdueProcessRequest,
    OverdueProcessResponse,
)
from src.modules.invoices.service import InvoiceService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post(
    "/prepare",
    response_model=ApiResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
)
async def prepare_invoice(
    data: InvoicePrepare,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    """Draft a periodic invoice from a partner's completed washes."""
    service = InvoiceService(db)
    invoice = await service.prepare_invoice(network_id, data, actor)
    return ApiResponse(
        success=True,
        message="Invoice prepared",
        data=InvoiceResponse.model_validate(invoice),
    )


@router.post(
    "/cash",
    response_model=ApiResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_cash_invoice(
    data: CashInvoiceCreate,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = InvoiceService(db)
    invoice = await service.create_cash_invoice(network_id, data, actor)
    return ApiResponse(
        success=True,
        message="Cash invoice created",
        data=InvoiceResponse.model_validate(invoice),
    )


@router.post("/process-overdue", response_model=ApiResponse[OverdueProcessResponse])
async def process_overdue_invoices(
    data: OverdueProcessRequest,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = InvoiceService(db)
    updated = await service.process_overdue_invoices(network_id, data.as_of, actor)
    return ApiResponse(
        success=True,
        message=f"{updated} invoice(s) marked overdue",
        data=OverdueProcessResponse(updated=updated),
    )


@router.get("", response_model=ApiResponse[PaginatedResponse[InvoiceResponse]])
async def list_invoices(
    network_id: NetworkId,
    partner_company_id: int | None = Query(None),
    status: InvoiceStatus | None = Query(None),
    invoice_type: InvoiceType | None = Query(None),
    issue_date_from: date | None = Query(None),
    issue_date_to: date | None = Query(None),
    due_date_from: date | None = Query(None),
    due_date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    filters = InvoiceFilters(
        partner_company_id=partner_company_id,
        status=status,
        invoice_type=invoice_type,
        issue_date_from=issue_date_from,
        issue_date_to=issue_date_to,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        page=page,
        limit=limit,
    )
    service = InvoiceService(db)
    invoices, total = await service.list_invoices(network_id, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[InvoiceResponse.model_validate(i) for i in invoices],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice(
    invoice_id: int,
    network_id: NetworkId,
    db: AsyncSession = Depends(get_db),
):
    service = InvoiceService(db)
    invoice = await service.get_invoice(network_id, invoice_id)
    return ApiResponse(success=True, data=InvoiceResponse.model_validate(invoice))


@router.post("/{invoice_id}/issue", response_model=ApiResponse[InvoiceResponse])
async def issue_invoice(
    invoice_id: int,
    data: InvoiceIssue,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
    registry: InvoiceProviderRegistry = Depends(get_provider_registry),
):
    """
    Issue a draft invoice through the network's invoice provider.

    A provider failure leaves the invoice in DRAFT and answers 502.
    """
    issuer = InvoiceIssuer(db, registry)
    result = await issuer.issue_invoice(network_id, invoice_id, actor, data.provider_name)
    if not result.success:
        raise ProviderError(result.provider_name, result.error or "unknown error")
    return ApiResponse(
        success=True,
        message=f"Invoice issued as {result.invoice_number}",
        data=InvoiceResponse.model_validate(result.invoice),
    )


@router.post("/{invoice_id}/cancel", response_model=ApiResponse[InvoiceResponse])
async def cancel_invoice(
    invoice_id: int,
    data: InvoiceCancel,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
    registry: InvoiceProviderRegistry = Depends(get_provider_registry),
):
    """Cancel an invoice; its wash events become available for invoicing again."""
    issuer = InvoiceIssuer(db, registry)
    invoice = await issuer.cancel_invoice(
        network_id, invoice_id, actor, data.provider_name, data.reason
    )
    return ApiResponse(
        success=True,
        message="Invoice cancelled",
        data=InvoiceResponse.model_validate(invoice),
    )


@router.post("/{invoice_id}/mark-paid", response_model=ApiResponse[InvoiceResponse])
async def mark_invoice_paid(
    invoice_id: int,
    data: InvoiceMarkPaid,
    network_id: NetworkId,
    actor: Actor,
    db: AsyncSession = Depends(get_db),
):
    service = InvoiceService(db)
    invoice = await service.mark_paid(network_id, invoice_id, data, actor)
    return ApiResponse(
        success=True,
        message="Invoice marked as paid",
        data=InvoiceResponse.model_validate(invoice),
    )
