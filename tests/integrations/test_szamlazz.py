"""Tests for the szamlazz.hu provider against a mocked Számla Agent."""

import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal

import httpx

from src.integrations.invoicing import (
    CancelInvoiceRequest,
    CreateInvoiceRequest,
    InvoiceCustomer,
    InvoiceLine,
    ProviderConfig,
    ProviderPaymentMethod,
)
from src.integrations.invoicing.szamlazz import SzamlazzProvider, build_invoice_xml

CONFIG = ProviderConfig(
    szamlazz_api_url="https://szamlazz.test/szamla/", szamlazz_agent_key="agent-key"
)

SUCCESS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<xmlszamlavalasz xmlns="http://www.szamlazz.hu/xmlszamlavalasz">
  <sikeres>true</sikeres>
  <szamlaszam>E-WASH-2026-1</szamlaszam>
  <vevoifiokurl>https://szamlazz.test/vevo/abc</vevoifiokurl>
</xmlszamlavalasz>"""

FAILURE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<xmlszamlavalasz xmlns="http://www.szamlazz.hu/xmlszamlavalasz">
  <sikeres>false</sikeres>
  <hibakod>7</hibakod>
  <hibauzenet>Missing buyer data</hibauzenet>
</xmlszamlavalasz>"""


def make_request(**overrides) -> CreateInvoiceRequest:
    values = {
        "customer": InvoiceCustomer(
            name="Translog Kft.",
            address="Fo utca 1.",
            city="Budapest",
            zip_code="1011",
            tax_number="12345678-2-41",
        ),
        "payment_method": ProviderPaymentMethod.TRANSFER,
        "issue_date": date(2026, 10, 1),
        "due_date": date(2026, 10, 16),
        "comment": "Billing period: 2026-09-01 - 2026-09-30",
        "items": [
            InvoiceLine(description="Wash - tractor", unit_price=Decimal("1500"), vat_rate=27),
            InvoiceLine(
                description="Volume discount (10%)", unit_price=Decimal("-150"), vat_rate=27
            ),
        ],
    }
    values.update(overrides)
    return CreateInvoiceRequest(**values)


class TestInvoiceXml:
    def test_header_buyer_and_lines(self):
        root = ET.fromstring(build_invoice_xml(make_request(), "agent-key"))
        ns = {"s": "http://www.szamlazz.hu/xmlszamla"}

        assert root.find("s:beallitasok/s:szamlaagentkulcs", ns).text == "agent-key"
        assert root.find("s:fejlec/s:fizetesiHataridoDatum", ns).text == "2026-10-16"
        assert root.find("s:fejlec/s:fizmod", ns).text == "Átutalás"
        assert root.find("s:vevo/s:nev", ns).text == "Translog Kft."
        assert root.find("s:vevo/s:adoszam", ns).text == "12345678-2-41"

        lines = root.findall("s:tetelek/s:tetel", ns)
        assert len(lines) == 2
        assert lines[0].find("s:nettoErtek", ns).text == "1500.00"
        assert lines[0].find("s:afaErtek", ns).text == "405.00"
        assert lines[0].find("s:bruttoErtek", ns).text == "1905.00"
        assert lines[0].find("s:afakulcs", ns).text == "27"
        assert lines[1].find("s:nettoErtek", ns).text == "-150.00"


class TestSzamlazzProvider:
    async def test_issue_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, content=SUCCESS_XML)

        provider = SzamlazzProvider(httpx.MockTransport(handler))
        result = await provider.create_invoice(make_request(), CONFIG)

        assert result.success is True
        assert result.invoice_number == "E-WASH-2026-1"
        assert result.external_id == "E-WASH-2026-1"
        assert result.pdf_url == "https://szamlazz.test/vevo/abc"
        assert seen["url"] == "https://szamlazz.test/szamla/"
        assert b"action-xmlagentxmlfile" in seen["body"]
        assert b"<nev>Translog Kft.</nev>" in seen["body"]

    async def test_rejection_in_body(self):
        provider = SzamlazzProvider(
            httpx.MockTransport(lambda request: httpx.Response(200, content=FAILURE_XML))
        )
        result = await provider.create_invoice(make_request(), CONFIG)

        assert result.success is False
        assert result.error == "Error 7: Missing buyer data"
        assert result.invoice_number is None

    async def test_rejection_in_headers(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"szlahu_error_code": "57", "szlahu_error": "Invalid+agent+key"},
                content=b"",
            )

        provider = SzamlazzProvider(httpx.MockTransport(handler))
        result = await provider.create_invoice(make_request(), CONFIG)

        assert result.success is False
        assert result.error == "Error 57: Invalid agent key"

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        provider = SzamlazzProvider(httpx.MockTransport(handler))
        result = await provider.create_invoice(make_request(), CONFIG)

        assert result.success is False
        assert result.error == "timeout"

    async def test_missing_agent_key(self):
        provider = SzamlazzProvider(
            httpx.MockTransport(lambda request: httpx.Response(500))
        )
        result = await provider.create_invoice(make_request(), ProviderConfig())

        assert result.success is False
        assert "agent key" in result.error

    async def test_storno(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content
            return httpx.Response(200, headers={"szlahu_szamlaszam": "E-WASH-2026-2"})

        provider = SzamlazzProvider(httpx.MockTransport(handler))
        result = await provider.cancel_invoice(
            CancelInvoiceRequest(invoice_number="E-WASH-2026-1", reason="Wrong partner"),
            CONFIG,
        )

        assert result.success is True
        assert result.cancelled_invoice_number == "E-WASH-2026-2"
        assert b"action-szamla_agent_st" in seen["body"]
        assert b"<szamlaszam>E-WASH-2026-1</szamlaszam>" in seen["body"]
