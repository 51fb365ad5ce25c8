"""Service for Invoices module: assembling invoices from completed washes."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit import ActorContext, AuditAction, AuditEntry, AuditService
from src.core.audit.schemas import ActorType
from src.core.config import settings
from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.modules.discounts.service import DiscountService
from src.modules.invoices.models import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    InvoiceType,
)
from src.modules.invoices.schemas import (
    CashInvoiceCreate,
    InvoiceFilters,
    InvoiceMarkPaid,
    InvoicePrepare,
    InvoiceResponse,
)
from src.modules.partners.models import PartnerCompany
from src.modules.wash_events.models import WashEvent, WashEventStatus
from src.shared.utils.dates import period_bounds, utcnow
from src.shared.utils.money import ZERO, percent_of, round_money

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = ActorContext(actor_type=ActorType.SYSTEM)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount_percent: Decimal | None
    discount_amount: Decimal | None
    subtotal_after_discount: Decimal
    vat_amount: Decimal
    total: Decimal


def compute_totals(
    subtotal: Decimal, discount_percent: Decimal, vat_rate: Decimal
) -> InvoiceTotals:
    """
    Invoice amounts from the pre-discount subtotal.

    Examples:
        subtotal 1500, discount 10%, VAT 27% ->
        discount 150.00, net 1350.00, VAT 364.50, total 1714.50
    """
    subtotal = round_money(subtotal)
    discount_amount = percent_of(subtotal, discount_percent) if discount_percent else ZERO
    net = round_money(subtotal - discount_amount)
    vat_amount = percent_of(net, vat_rate)
    return InvoiceTotals(
        subtotal=subtotal,
        discount_percent=Decimal(discount_percent) if discount_percent else None,
        discount_amount=discount_amount if discount_amount > 0 else None,
        subtotal_after_discount=net,
        vat_amount=vat_amount,
        total=round_money(net + vat_amount),
    )


def wash_event_items(wash_event: WashEvent, vat_rate: Decimal) -> list[InvoiceItem]:
    """
    Invoice lines of one wash: the tractor, and the trailer when there is one.

    Vehicle roles priced at zero are left off the invoice.
    """
    package_name = wash_event.service_package.name if wash_event.service_package else "Service"
    items: list[InvoiceItem] = []
    if wash_event.tractor_price and wash_event.tractor_price > 0:
        items.append(
            InvoiceItem(
                description=f"{package_name} - tractor ({wash_event.tractor_plate})",
                quantity=1,
                unit_price=round_money(wash_event.tractor_price),
                total_price=round_money(wash_event.tractor_price),
                vat_rate=vat_rate,
                wash_event_id=wash_event.id,
                service_package_id=wash_event.service_package_id,
            )
        )
    if wash_event.has_trailer and wash_event.trailer_price and wash_event.trailer_price > 0:
        items.append(
            InvoiceItem(
                description=f"{package_name} - trailer ({wash_event.trailer_plate})",
                quantity=1,
                unit_price=round_money(wash_event.trailer_price),
                total_price=round_money(wash_event.trailer_price),
                vat_rate=vat_rate,
                wash_event_id=wash_event.id,
                service_package_id=wash_event.service_package_id,
            )
        )
    return items


def snapshot(invoice: Invoice) -> dict:
    return InvoiceResponse.model_validate(invoice).model_dump(mode="json")


class InvoiceService:
    """Service for preparing and maintaining invoices."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.discounts = DiscountService(db)

    async def get_invoice(
        self, network_id: int, invoice_id: int, for_update: bool = False
    ) -> Invoice:
        """Get invoice of the network with its items loaded."""
        query = (
            select(Invoice)
            .where(Invoice.id == invoice_id, Invoice.network_id == network_id)
            .options(selectinload(Invoice.items), selectinload(Invoice.partner_company))
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def list_invoices(
        self, network_id: int, filters: InvoiceFilters
    ) -> tuple[list[Invoice], int]:
        """List invoices with filters."""
        query = (
            select(Invoice)
            .where(Invoice.network_id == network_id)
            .options(selectinload(Invoice.items))
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        )

        if filters.partner_company_id is not None:
            query = query.where(Invoice.partner_company_id == filters.partner_company_id)
        if filters.status is not None:
            query = query.where(Invoice.status == filters.status.value)
        if filters.invoice_type is not None:
            query = query.where(Invoice.invoice_type == filters.invoice_type.value)
        if filters.issue_date_from is not None:
            query = query.where(Invoice.issue_date >= filters.issue_date_from)
        if filters.issue_date_to is not None:
            query = query.where(Invoice.issue_date <= filters.issue_date_to)
        if filters.due_date_from is not None:
            query = query.where(Invoice.due_date >= filters.due_date_from)
        if filters.due_date_to is not None:
            query = query.where(Invoice.due_date <= filters.due_date_to)

        # Count total
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        # Apply pagination
        offset = (filters.page - 1) * filters.limit
        query = query.offset(offset).limit(filters.limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def _get_partner(self, network_id: int, partner_company_id: int) -> PartnerCompany:
        result = await self.db.execute(
            select(PartnerCompany).where(
                PartnerCompany.id == partner_company_id,
                PartnerCompany.network_id == network_id,
            )
        )
        partner = result.scalar_one_or_none()
        if not partner:
            raise NotFoundError("Partner company", partner_company_id)
        return partner

    async def _link_wash_events(self, network_id: int, invoice_id: int, ids: list[int]) -> None:
        """Point the wash events at the invoice unless another invoice got them first."""
        result = await self.db.execute(
            update(WashEvent)
            .where(
                WashEvent.id.in_(ids),
                WashEvent.network_id == network_id,
                WashEvent.invoice_id.is_(None),
            )
            .values(invoice_id=invoice_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(ids):
            await self.db.rollback()
            raise ConflictError(
                "Wash events were invoiced by a concurrent request",
                details={"wash_event_ids": ids},
            )

    async def prepare_invoice(
        self, network_id: int, data: InvoicePrepare, actor: ActorContext
    ) -> Invoice:
        """
        Create a DRAFT invoice from the partner's uninvoiced COMPLETED washes in the period.

        Invoice creation and linking of the washes commit together; if any of the
        washes was linked by a concurrent request nothing is written.
        """
        partner = await self._get_partner(network_id, data.partner_company_id)
        start, end = period_bounds(data.period_start, data.period_end)
        vat_rate = settings.default_vat_rate

        result = await self.db.execute(
            select(WashEvent)
            .where(
                WashEvent.network_id == network_id,
                WashEvent.partner_company_id == partner.id,
                WashEvent.status == WashEventStatus.COMPLETED.value,
                WashEvent.completed_at >= start,
                WashEvent.completed_at < end,
                WashEvent.invoice_id.is_(None),
            )
            .options(
                selectinload(WashEvent.service_package),
                selectinload(WashEvent.tractor_vehicle),
                selectinload(WashEvent.trailer_vehicle),
            )
            .order_by(WashEvent.completed_at, WashEvent.id)
            .with_for_update()
        )
        wash_events = list(result.scalars().all())
        if not wash_events:
            raise ValidationError("No uninvoiced wash events found in the specified period")

        items: list[InvoiceItem] = []
        for wash_event in wash_events:
            items.extend(wash_event_items(wash_event, vat_rate))
        for position, item in enumerate(items, start=1):
            item.position = position

        subtotal = sum((item.total_price for item in items), ZERO)
        discount = await self.discounts.calculate_discount(
            network_id, partner.id, data.period_start, data.period_end
        )
        totals = compute_totals(subtotal, discount.discount_percent, vat_rate)

        invoice = Invoice(
            network_id=network_id,
            partner_company_id=partner.id,
            invoice_type=InvoiceType.PERIODIC.value,
            status=InvoiceStatus.DRAFT.value,
            period_start=data.period_start,
            period_end=data.period_end,
            subtotal=totals.subtotal,
            discount_percent=totals.discount_percent,
            discount_amount=totals.discount_amount,
            subtotal_after_discount=totals.subtotal_after_discount,
            vat_rate=vat_rate,
            vat_amount=totals.vat_amount,
            total=totals.total,
            currency=wash_events[0].currency or settings.default_currency,
            **self._partner_billing(partner),
        )
        invoice.items = items
        self.db.add(invoice)
        await self.db.flush()

        ids = [w.id for w in wash_events]
        await self._link_wash_events(network_id, invoice.id, ids)
        await self.db.commit()

        invoice = await self.get_invoice(network_id, invoice.id)
        logger.info(
            "Prepared invoice %s for partner %s: %s washes, total %s",
            invoice.id,
            partner.id,
            len(ids),
            invoice.total,
        )
        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                action=AuditAction.CREATE,
                entity_type="Invoice",
                entity_id=invoice.id,
                actor=actor,
                new_data=snapshot(invoice),
                metadata={
                    "operation": "prepare",
                    "wash_event_ids": ids,
                    "wash_count": discount.wash_count,
                },
            )
        )
        return invoice

    async def create_cash_invoice(
        self, network_id: int, data: CashInvoiceCreate, actor: ActorContext
    ) -> Invoice:
        """
        Create a DRAFT invoice for one wash paid on the spot.

        Issue and due date are today. No volume discount applies.
        """
        result = await self.db.execute(
            select(WashEvent)
            .where(WashEvent.id == data.wash_event_id, WashEvent.network_id == network_id)
            .options(
                selectinload(WashEvent.service_package),
                selectinload(WashEvent.tractor_vehicle),
                selectinload(WashEvent.trailer_vehicle),
            )
            .execution_options(populate_existing=True)
            .with_for_update()
        )
        wash_event = result.scalar_one_or_none()
        if not wash_event:
            raise NotFoundError("Wash event", data.wash_event_id)
        if wash_event.status not in (WashEventStatus.COMPLETED.value, WashEventStatus.LOCKED.value):
            raise ValidationError(
                "Only completed wash events can be invoiced", field="wash_event_id"
            )
        if wash_event.invoice_id is not None:
            raise ConflictError(
                "Wash event is already invoiced",
                details={"wash_event_id": wash_event.id, "invoice_id": wash_event.invoice_id},
            )

        if wash_event.partner_company_id is not None:
            partner = await self._get_partner(network_id, wash_event.partner_company_id)
            billing = self._partner_billing(partner)
        else:
            if not data.billing_name:
                raise ValidationError(
                    "Billing name is required for customers without a partner company",
                    field="billing_name",
                )
            billing = {
                "billing_name": data.billing_name,
                "billing_address": data.billing_address or "",
                "billing_city": data.billing_city or "",
                "billing_zip_code": data.billing_zip_code or "",
                "billing_country": data.billing_country or "HU",
                "tax_number": data.tax_number,
                "eu_vat_number": data.eu_vat_number,
            }

        vat_rate = settings.default_vat_rate
        items = wash_event_items(wash_event, vat_rate)
        for position, item in enumerate(items, start=1):
            item.position = position
        totals = compute_totals(sum((i.total_price for i in items), ZERO), ZERO, vat_rate)
        today = utcnow().date()

        invoice = Invoice(
            network_id=network_id,
            partner_company_id=wash_event.partner_company_id,
            invoice_type=InvoiceType.CASH.value,
            status=InvoiceStatus.DRAFT.value,
            issue_date=today,
            due_date=today,
            subtotal=totals.subtotal,
            subtotal_after_discount=totals.subtotal_after_discount,
            vat_rate=vat_rate,
            vat_amount=totals.vat_amount,
            total=totals.total,
            currency=wash_event.currency or settings.default_currency,
            payment_method=data.payment_method.value,
            **billing,
        )
        invoice.items = items
        self.db.add(invoice)
        await self.db.flush()

        await self._link_wash_events(network_id, invoice.id, [wash_event.id])
        await self.db.commit()

        invoice = await self.get_invoice(network_id, invoice.id)
        logger.info("Created cash invoice %s for wash event %s", invoice.id, wash_event.id)
        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                wash_event_id=wash_event.id,
                action=AuditAction.CREATE,
                entity_type="Invoice",
                entity_id=invoice.id,
                actor=actor,
                new_data=snapshot(invoice),
                metadata={"operation": "cash_invoice", "wash_event_ids": [wash_event.id]},
            )
        )
        return invoice

    @staticmethod
    def _partner_billing(partner: PartnerCompany) -> dict:
        """Billing identity copied onto the invoice; later partner edits don't affect it."""
        return {
            "billing_name": partner.billing_name or partner.name,
            "billing_address": partner.billing_address or "",
            "billing_city": partner.billing_city or "",
            "billing_zip_code": partner.billing_zip_code or "",
            "billing_country": partner.billing_country or "HU",
            "tax_number": partner.tax_number,
            "eu_vat_number": partner.eu_vat_number,
        }

    async def mark_paid(
        self, network_id: int, invoice_id: int, data: InvoiceMarkPaid, actor: ActorContext
    ) -> Invoice:
        invoice = await self.get_invoice(network_id, invoice_id, for_update=True)
        if invoice.status in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value):
            current = invoice.status
            await self.db.rollback()
            raise ConflictError(
                f"Invoice is already {current}",
                details={"invoice_id": invoice_id, "status": current},
            )

        previous = snapshot(invoice)
        invoice.status = InvoiceStatus.PAID.value
        invoice.payment_method = data.payment_method.value
        invoice.paid_date = data.paid_date or utcnow().date()
        await self.db.commit()

        invoice = await self.get_invoice(network_id, invoice_id)
        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                action=AuditAction.UPDATE,
                entity_type="Invoice",
                entity_id=invoice_id,
                actor=actor,
                previous_data=previous,
                new_data=snapshot(invoice),
                metadata={"operation": "mark_paid"},
            )
        )
        return invoice

    async def process_overdue_invoices(
        self,
        network_id: int,
        as_of: date | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> int:
        """
        Move ISSUED invoices whose due date has passed to OVERDUE.

        Returns the number of invoices changed; running it again changes nothing.
        """
        as_of = as_of or utcnow().date()
        condition = (
            Invoice.network_id == network_id,
            Invoice.status == InvoiceStatus.ISSUED.value,
            Invoice.due_date.is_not(None),
            Invoice.due_date < as_of,
        )
        ids = list((await self.db.execute(select(Invoice.id).where(*condition))).scalars().all())
        if not ids:
            return 0

        result = await self.db.execute(
            update(Invoice)
            .where(Invoice.id.in_(ids), *condition)
            .values(status=InvoiceStatus.OVERDUE.value)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        updated = result.rowcount

        logger.info("Marked %s invoices overdue in network %s", updated, network_id)
        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                action=AuditAction.UPDATE,
                entity_type="Invoice",
                actor=actor,
                metadata={
                    "operation": "process_overdue",
                    "as_of": as_of.isoformat(),
                    "invoice_ids": ids,
                    "count": updated,
                },
            )
        )
        return updated
