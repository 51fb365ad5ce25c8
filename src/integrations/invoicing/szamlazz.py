"""szamlazz.hu Számla Agent provider (XML over HTTP)."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from decimal import Decimal
from urllib.parse import unquote_plus

import httpx

from src.integrations.invoicing.base import (
    CancelInvoiceRequest,
    CancelResult,
    CreateInvoiceRequest,
    InvoiceProvider,
    InvoiceResult,
    ProviderConfig,
    ProviderPaymentMethod,
    describe_http_error,
)
from src.shared.utils.dates import utcnow
from src.shared.utils.money import percent_of, round_money

logger = logging.getLogger(__name__)

INVOICE_NS = "http://www.szamlazz.hu/xmlszamla"
STORNO_NS = "http://www.szamlazz.hu/xmlszamlast"

PAYMENT_METHODS = {
    ProviderPaymentMethod.CASH: "Készpénz",
    ProviderPaymentMethod.TRANSFER: "Átutalás",
    ProviderPaymentMethod.CARD: "Bankkártya",
    ProviderPaymentMethod.OTHER: "Egyéb",
}


def _sub(parent: ET.Element, tag: str, value=None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    if value is not None:
        if isinstance(value, bool):
            element.text = "true" if value else "false"
        else:
            element.text = str(value)
    return element


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find_text(root: ET.Element, name: str) -> str | None:
    for element in root.iter():
        if _local(element.tag) == name:
            return (element.text or "").strip() or None
    return None


def build_invoice_xml(request: CreateInvoiceRequest, agent_key: str) -> bytes:
    root = ET.Element("xmlszamla", {"xmlns": INVOICE_NS})

    settings_el = _sub(root, "beallitasok")
    _sub(settings_el, "szamlaagentkulcs", agent_key)
    _sub(settings_el, "eszamla", True)
    _sub(settings_el, "szamlaLetoltes", False)
    _sub(settings_el, "valaszVerzio", 2)

    header = _sub(root, "fejlec")
    _sub(header, "keltDatum", request.issue_date.isoformat())
    _sub(header, "teljesitesDatum", request.issue_date.isoformat())
    _sub(header, "fizetesiHataridoDatum", request.due_date.isoformat())
    _sub(header, "fizmod", PAYMENT_METHODS[request.payment_method])
    _sub(header, "penznem", request.currency)
    _sub(header, "szamlaNyelve", request.language)
    _sub(header, "megjegyzes", request.comment or "")

    _sub(root, "elado")

    customer = request.customer
    buyer = _sub(root, "vevo")
    _sub(buyer, "nev", customer.name)
    _sub(buyer, "orszag", customer.country)
    _sub(buyer, "irsz", customer.zip_code)
    _sub(buyer, "telepules", customer.city)
    _sub(buyer, "cim", customer.address)
    _sub(buyer, "email", customer.email or "")
    _sub(buyer, "sendEmail", request.send_email)
    _sub(buyer, "adoszam", customer.tax_number or "")
    _sub(buyer, "adoszamEU", customer.eu_vat_number or "")

    items = _sub(root, "tetelek")
    for line in request.items:
        net = round_money(line.unit_price * line.quantity)
        vat = percent_of(net, line.vat_rate)
        item = _sub(items, "tetel")
        _sub(item, "megnevezes", line.description)
        _sub(item, "mennyiseg", line.quantity)
        _sub(item, "mennyisegiEgyseg", line.unit)
        _sub(item, "nettoEgysegar", round_money(line.unit_price))
        _sub(item, "afakulcs", _vat_key(line.vat_rate))
        _sub(item, "nettoErtek", net)
        _sub(item, "afaErtek", vat)
        _sub(item, "bruttoErtek", net + vat)

    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def build_storno_xml(request: CancelInvoiceRequest, agent_key: str, issue_date: str) -> bytes:
    root = ET.Element("xmlszamlast", {"xmlns": STORNO_NS})

    settings_el = _sub(root, "beallitasok")
    _sub(settings_el, "szamlaagentkulcs", agent_key)
    _sub(settings_el, "eszamla", True)
    _sub(settings_el, "szamlaLetoltes", False)

    header = _sub(root, "fejlec")
    _sub(header, "szamlaszam", request.invoice_number)
    _sub(header, "keltDatum", issue_date)
    _sub(header, "tipus", "SS")
    if request.reason:
        _sub(header, "megjegyzes", request.reason)

    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _vat_key(vat_rate: Decimal) -> str:
    value = Decimal(vat_rate)
    return str(int(value)) if value == value.to_integral_value() else str(value)


def _header_error(response: httpx.Response) -> str | None:
    code = response.headers.get("szlahu_error_code")
    if not code:
        return None
    message = unquote_plus(response.headers.get("szlahu_error", ""))
    return f"Error {code}: {message}".strip()


class SzamlazzProvider(InvoiceProvider):
    """Issues invoices through the szamlazz.hu Számla Agent."""

    name = "szamlazz"

    async def create_invoice(
        self, request: CreateInvoiceRequest, config: ProviderConfig
    ) -> InvoiceResult:
        if not config.szamlazz_agent_key:
            return InvoiceResult(success=False, error="szamlazz.hu agent key not configured")

        body = build_invoice_xml(request, config.szamlazz_agent_key)
        try:
            async with self._client(config) as client:
                response = await client.post(
                    config.szamlazz_api_url,
                    files={"action-xmlagentxmlfile": ("invoice.xml", body, "text/xml")},
                )
        except httpx.HTTPError as exc:
            logger.error("szamlazz.hu request failed: %s", describe_http_error(exc))
            return InvoiceResult(success=False, error=describe_http_error(exc))

        error = _header_error(response)
        if error is None and response.status_code >= 400:
            error = f"HTTP {response.status_code}: {response.text[:500]}"
        if error:
            logger.error("szamlazz.hu rejected invoice: %s", error)
            return InvoiceResult(success=False, error=error)

        try:
            root = ET.fromstring(response.content)
        except ET.ParseError:
            number = response.headers.get("szlahu_szamlaszam")
            if number:
                return InvoiceResult(success=True, invoice_number=number, external_id=number)
            return InvoiceResult(success=False, error="Unreadable response from szamlazz.hu")

        if (_find_text(root, "sikeres") or "").lower() != "true":
            code = _find_text(root, "hibakod")
            message = _find_text(root, "hibauzenet") or "Unknown error from szamlazz.hu"
            error = f"Error {code}: {message}" if code else message
            logger.error("szamlazz.hu rejected invoice: %s", error)
            return InvoiceResult(success=False, error=error)

        number = _find_text(root, "szamlaszam")
        logger.info("szamlazz.hu issued invoice %s", number)
        return InvoiceResult(
            success=True,
            invoice_number=number,
            external_id=number,
            pdf_url=_find_text(root, "vevoifiokurl"),
        )

    async def cancel_invoice(
        self, request: CancelInvoiceRequest, config: ProviderConfig
    ) -> CancelResult:
        if not config.szamlazz_agent_key:
            return CancelResult(success=False, error="szamlazz.hu agent key not configured")

        body = build_storno_xml(
            request, config.szamlazz_agent_key, utcnow().date().isoformat()
        )
        try:
            async with self._client(config) as client:
                response = await client.post(
                    config.szamlazz_api_url,
                    files={"action-szamla_agent_st": ("storno.xml", body, "text/xml")},
                )
        except httpx.HTTPError as exc:
            logger.error("szamlazz.hu storno failed: %s", describe_http_error(exc))
            return CancelResult(success=False, error=describe_http_error(exc))

        error = _header_error(response)
        if error is None and response.status_code >= 400:
            error = f"HTTP {response.status_code}: {response.text[:500]}"
        if error:
            logger.error("szamlazz.hu rejected storno of %s: %s", request.invoice_number, error)
            return CancelResult(success=False, error=error)

        cancelled = response.headers.get("szlahu_szamlaszam")
        logger.info(
            "szamlazz.hu cancelled invoice %s (storno %s)", request.invoice_number, cancelled
        )
        return CancelResult(success=True, cancelled_invoice_number=cancelled)
