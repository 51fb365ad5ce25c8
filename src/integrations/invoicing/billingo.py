"""Billingo API v3 provider (REST/JSON)."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

import httpx

from src.integrations.invoicing.base import (
    CancelInvoiceRequest,
    CancelResult,
    CreateInvoiceRequest,
    InvoiceCustomer,
    InvoiceProvider,
    InvoiceResult,
    ProviderConfig,
    ProviderPaymentMethod,
    describe_http_error,
)

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {
    ProviderPaymentMethod.CASH: "cash",
    ProviderPaymentMethod.TRANSFER: "wire_transfer",
    ProviderPaymentMethod.CARD: "bankcard",
    ProviderPaymentMethod.OTHER: "other",
}


class BillingoError(Exception):
    """Non-2xx answer from the Billingo API."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Billingo API error: {status_code} - {body[:500]}")


def vat_code(vat_rate: Decimal) -> str:
    """Billingo VAT code for a percentage rate, e.g. 27 -> '27%'."""
    value = Decimal(vat_rate)
    if value == value.to_integral_value():
        return f"{int(value)}%"
    return f"{value}%"


def _number(value: Decimal) -> float | int:
    value = Decimal(value)
    return int(value) if value == value.to_integral_value() else float(value)


def _id_of(payload: Any, status_code: int = 200) -> int:
    """The `id` of a Billingo object; BillingoError when the payload has none."""
    try:
        return payload["id"]
    except (KeyError, TypeError, IndexError):
        raise BillingoError(status_code, f"Missing id in response: {payload!r}") from None


class BillingoProvider(InvoiceProvider):
    """Issues invoices through the Billingo v3 API."""

    name = "billingo"

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        json: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        response = await client.request(method, path, json=json, params=params)
        if response.status_code >= 400:
            raise BillingoError(response.status_code, response.text)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise BillingoError(response.status_code, f"Invalid JSON: {response.text}") from None

    def _api_client(self, config: ProviderConfig) -> httpx.AsyncClient:
        return self._client(
            config,
            base_url=config.billingo_api_url.rstrip("/"),
            headers={"X-API-KEY": config.billingo_api_key, "Accept": "application/json"},
        )

    async def _partner_id(self, client: httpx.AsyncClient, customer: InvoiceCustomer) -> int:
        """Find the customer by tax number, or create it."""
        if customer.tax_number:
            found = await self._request(
                client, "GET", "/partners", params={"query": customer.tax_number}
            )
            if isinstance(found, dict) and found.get("data"):
                return _id_of(found["data"][0])

        payload: dict[str, Any] = {
            "name": customer.name,
            "address": {
                "country_code": customer.country or "HU",
                "post_code": customer.zip_code,
                "city": customer.city,
                "address": customer.address,
            },
            "taxcode": customer.tax_number or "",
        }
        if customer.eu_vat_number:
            payload["eutaxcode"] = customer.eu_vat_number
        if customer.email:
            payload["emails"] = [customer.email]
        created = await self._request(client, "POST", "/partners", json=payload)
        return _id_of(created)

    async def create_invoice(
        self, request: CreateInvoiceRequest, config: ProviderConfig
    ) -> InvoiceResult:
        if not config.billingo_api_key or not config.billingo_block_id:
            return InvoiceResult(
                success=False, error="Billingo API key or block id not configured"
            )

        try:
            async with self._api_client(config) as client:
                partner_id = await self._partner_id(client, request.customer)
                document: dict[str, Any] = {
                    "partner_id": partner_id,
                    "block_id": config.billingo_block_id,
                    "type": "invoice",
                    "fulfillment_date": request.issue_date.isoformat(),
                    "due_date": request.due_date.isoformat(),
                    "payment_method": PAYMENT_METHODS[request.payment_method],
                    "language": request.language,
                    "currency": request.currency,
                    "electronic": True,
                    "paid": False,
                    "items": [
                        {
                            "name": line.description,
                            "unit_price": _number(line.unit_price),
                            "unit_price_type": "net",
                            "quantity": _number(line.quantity),
                            "unit": line.unit,
                            "vat": vat_code(line.vat_rate),
                        }
                        for line in request.items
                    ],
                    "settings": {"should_send_email": request.send_email},
                }
                if config.billingo_bank_account_id:
                    document["bank_account_id"] = config.billingo_bank_account_id
                if request.comment:
                    document["comment"] = request.comment

                result = await self._request(client, "POST", "/documents", json=document)
        except BillingoError as exc:
            logger.error("Billingo rejected invoice: HTTP %s", exc.status_code)
            return InvoiceResult(success=False, error=str(exc))
        except httpx.HTTPError as exc:
            logger.error("Billingo request failed: %s", describe_http_error(exc))
            return InvoiceResult(success=False, error=describe_http_error(exc))

        if not isinstance(result, dict) or not result.get("id"):
            return InvoiceResult(success=False, error="No invoice ID returned from Billingo")

        document_id = str(result["id"])
        logger.info(
            "Billingo issued invoice %s (document %s)", result.get("invoice_number"), document_id
        )
        return InvoiceResult(
            success=True,
            invoice_number=result.get("invoice_number"),
            external_id=document_id,
            pdf_url=f"{config.billingo_api_url.rstrip('/')}/documents/{document_id}/download",
        )

    async def cancel_invoice(
        self, request: CancelInvoiceRequest, config: ProviderConfig
    ) -> CancelResult:
        if not config.billingo_api_key:
            return CancelResult(success=False, error="Billingo API key not configured")

        try:
            async with self._api_client(config) as client:
                document_id = request.external_id
                if not document_id:
                    found = await self._request(
                        client, "GET", "/documents", params={"query": request.invoice_number}
                    )
                    if not isinstance(found, dict) or not found.get("data"):
                        return CancelResult(
                            success=False, error=f"Invoice not found: {request.invoice_number}"
                        )
                    document_id = str(_id_of(found["data"][0]))

                result = await self._request(
                    client,
                    "POST",
                    f"/documents/{document_id}/cancel",
                    json={"cancellation_reason": request.reason or "Számla sztornózása"},
                )
        except BillingoError as exc:
            logger.error("Billingo rejected cancellation: HTTP %s", exc.status_code)
            return CancelResult(success=False, error=str(exc))
        except httpx.HTTPError as exc:
            logger.error("Billingo request failed: %s", describe_http_error(exc))
            return CancelResult(success=False, error=describe_http_error(exc))

        if not isinstance(result, dict) or not result.get("id"):
            return CancelResult(success=False, error="Failed to cancel invoice")

        logger.info("Billingo cancelled invoice %s", request.invoice_number)
        return CancelResult(success=True, cancelled_invoice_number=result.get("invoice_number"))
