"""Issuing and cancelling invoices through external invoice providers."""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit import ActorContext, AuditAction, AuditEntry, AuditService
from src.core.config import settings
from src.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    ProviderError,
    ValidationError,
)
from src.integrations.invoicing import (
    CancelInvoiceRequest,
    CreateInvoiceRequest,
    InvoiceCustomer,
    InvoiceLine,
    InvoiceProvider,
    InvoiceProviderRegistry,
    ProviderPaymentMethod,
    get_provider_registry,
)
from src.modules.invoices.models import Invoice, InvoiceStatus, PaymentMethod
from src.modules.invoices.service import InvoiceService, snapshot
from src.modules.networks.service import NetworkService
from src.modules.wash_events.models import WashEvent
from src.shared.utils.dates import utcnow

logger = logging.getLogger(__name__)

PAYMENT_METHOD_MAP = {
    PaymentMethod.CASH.value: ProviderPaymentMethod.CASH,
    PaymentMethod.CARD.value: ProviderPaymentMethod.CARD,
    PaymentMethod.TRANSFER.value: ProviderPaymentMethod.TRANSFER,
    PaymentMethod.DKV.value: ProviderPaymentMethod.OTHER,
    PaymentMethod.UTA.value: ProviderPaymentMethod.OTHER,
    PaymentMethod.MOL.value: ProviderPaymentMethod.OTHER,
    PaymentMethod.SHELL.value: ProviderPaymentMethod.OTHER,
    PaymentMethod.TRAVIS.value: ProviderPaymentMethod.OTHER,
    PaymentMethod.OTHER.value: ProviderPaymentMethod.OTHER,
}


def provider_payment_method(method: str | None) -> ProviderPaymentMethod:
    """Provider vocabulary for an internal payment method; bank transfer when unknown."""
    if method is None:
        return ProviderPaymentMethod.TRANSFER
    return PAYMENT_METHOD_MAP.get(method, ProviderPaymentMethod.TRANSFER)


@dataclass
class IssueInvoiceResult:
    success: bool
    invoice: Invoice
    provider_name: str
    invoice_number: str | None = None
    pdf_url: str | None = None
    error: str | None = None


class InvoiceIssuer:
    """Sends draft invoices to the network's invoice provider and reconciles the result."""

    def __init__(self, db: AsyncSession, registry: InvoiceProviderRegistry | None = None):
        self.db = db
        self.audit = AuditService(db)
        self.invoices = InvoiceService(db)
        self.networks = NetworkService(db)
        self.registry = registry or get_provider_registry()

    async def _resolve_provider(
        self, network_id: int, provider_name: str | None
    ) -> tuple[str, InvoiceProvider]:
        name = provider_name or await self.networks.invoice_provider_name(network_id)
        if not name:
            raise ValidationError(
                "No invoice provider configured for this network", field="provider_name"
            )
        provider = self.registry.get(name)
        if provider is None:
            raise ValidationError(f'Invoice provider "{name}" not found', field="provider_name")
        return provider.name, provider

    def _build_request(self, invoice: Invoice, issue_date, due_date) -> CreateInvoiceRequest:
        lines = [
            InvoiceLine(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                vat_rate=item.vat_rate,
            )
            for item in invoice.items
        ]
        if invoice.discount_amount:
            # Provider totals must match the discounted net amount
            lines.append(
                InvoiceLine(
                    description=f"Volume discount ({invoice.discount_percent.normalize():f}%)",
                    quantity=1,
                    unit_price=-invoice.discount_amount,
                    vat_rate=invoice.vat_rate,
                )
            )

        comment = None
        if invoice.period_start and invoice.period_end:
            comment = f"Billing period: {invoice.period_start} - {invoice.period_end}"

        return CreateInvoiceRequest(
            customer=InvoiceCustomer(
                name=invoice.billing_name,
                address=invoice.billing_address,
                city=invoice.billing_city,
                zip_code=invoice.billing_zip_code,
                country=invoice.billing_country,
                tax_number=invoice.tax_number,
                eu_vat_number=invoice.eu_vat_number,
                email=invoice.partner_company.email if invoice.partner_company else None,
            ),
            currency=invoice.currency,
            payment_method=provider_payment_method(invoice.payment_method),
            issue_date=issue_date,
            due_date=due_date,
            comment=comment,
            items=lines,
        )

    async def issue_invoice(
        self,
        network_id: int,
        invoice_id: int,
        actor: ActorContext,
        provider_name: str | None = None,
    ) -> IssueInvoiceResult:
        """
        Issue a DRAFT invoice through a provider.

        On provider failure the invoice stays DRAFT with no number and the error is
        returned, so the same invoice can be issued again later. The invoice row
        stays locked while the provider is called.
        """
        invoice = await self.invoices.get_invoice(network_id, invoice_id, for_update=True)
        if invoice.status != InvoiceStatus.DRAFT.value:
            current = invoice.status
            await self.db.rollback()
            raise InvalidTransitionError("Invoice", current, InvoiceStatus.ISSUED.value)

        name, provider = await self._resolve_provider(network_id, provider_name)
        config = await self.networks.provider_config(network_id)

        if invoice.is_cash or invoice.partner_company is None:
            due_days = 0
        else:
            due_days = invoice.partner_company.payment_due_days
            if due_days is None:
                due_days = settings.default_payment_due_days
        issue_date = utcnow().date()
        due_date = issue_date + timedelta(days=due_days)

        request = self._build_request(invoice, issue_date, due_date)
        result = await provider.create_invoice(request, config)

        if not result.success:
            await self.db.rollback()
            logger.warning("Issuing invoice %s via %s failed: %s", invoice_id, name, result.error)
            invoice = await self.invoices.get_invoice(network_id, invoice_id)
            return IssueInvoiceResult(
                success=False, invoice=invoice, provider_name=name, error=result.error
            )

        previous = snapshot(invoice)
        invoice.status = InvoiceStatus.ISSUED.value
        invoice.issue_date = issue_date
        invoice.due_date = due_date
        invoice.invoice_number = result.invoice_number
        invoice.external_id = result.external_id
        invoice.pdf_url = result.pdf_url
        invoice.provider_name = name
        await self.db.commit()

        invoice = await self.invoices.get_invoice(network_id, invoice_id)
        logger.info("Issued invoice %s as %s via %s", invoice_id, result.invoice_number, name)
        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                action=AuditAction.UPDATE,
                entity_type="Invoice",
                entity_id=invoice_id,
                actor=actor,
                previous_data=previous,
                new_data=snapshot(invoice),
                metadata={"operation": "issue", "provider": name},
            )
        )
        return IssueInvoiceResult(
            success=True,
            invoice=invoice,
            provider_name=name,
            invoice_number=result.invoice_number,
            pdf_url=result.pdf_url,
        )

    async def cancel_invoice(
        self,
        network_id: int,
        invoice_id: int,
        actor: ActorContext,
        provider_name: str | None = None,
        reason: str | None = None,
    ) -> Invoice:
        """
        Cancel an invoice and release its wash events for re-invoicing.

        An invoice that was issued with a number is first cancelled at the provider;
        if that fails, nothing changes locally.
        """
        invoice = await self.invoices.get_invoice(network_id, invoice_id, for_update=True)
        if invoice.status in (InvoiceStatus.CANCELLED.value, InvoiceStatus.PAID.value):
            current = invoice.status
            await self.db.rollback()
            raise ConflictError(
                f"Invoice is already {current}",
                details={"invoice_id": invoice_id, "status": current},
            )

        storno_number = None
        issued = invoice.status in (InvoiceStatus.ISSUED.value, InvoiceStatus.OVERDUE.value)
        if issued and invoice.invoice_number:
            name = (
                provider_name
                or invoice.provider_name
                or await self.networks.invoice_provider_name(network_id)
            )
            if name:
                name, provider = await self._resolve_provider(network_id, name)
                config = await self.networks.provider_config(network_id)
                result = await provider.cancel_invoice(
                    CancelInvoiceRequest(
                        invoice_number=invoice.invoice_number,
                        external_id=invoice.external_id,
                        reason=reason,
                    ),
                    config,
                )
                if not result.success:
                    await self.db.rollback()
                    logger.warning(
                        "Cancelling invoice %s via %s failed: %s", invoice_id, name, result.error
                    )
                    raise ProviderError(name, result.error)
                storno_number = result.cancelled_invoice_number

        previous = snapshot(invoice)
        linked = await self.db.execute(
            select(WashEvent.id).where(
                WashEvent.network_id == network_id, WashEvent.invoice_id == invoice_id
            )
        )
        wash_event_ids = list(linked.scalars().all())
        await self.db.execute(
            update(WashEvent)
            .where(WashEvent.network_id == network_id, WashEvent.invoice_id == invoice_id)
            .values(invoice_id=None)
            .execution_options(synchronize_session=False)
        )
        invoice.status = InvoiceStatus.CANCELLED.value
        invoice.cancelled_at = utcnow()
        await self.db.commit()

        invoice = await self.invoices.get_invoice(network_id, invoice_id)
        logger.info(
            "Cancelled invoice %s, released %s wash events", invoice_id, len(wash_event_ids)
        )
        await self.audit.log(
            AuditEntry(
                network_id=network_id,
                action=AuditAction.UPDATE,
                entity_type="Invoice",
                entity_id=invoice_id,
                actor=actor,
                previous_data=previous,
                new_data=snapshot(invoice),
                metadata={
                    "operation": "cancel",
                    "reason": reason,
                    "storno_number": storno_number,
                    "unlinked_wash_event_ids": wash_event_ids,
                },
            )
        )
        return invoice
