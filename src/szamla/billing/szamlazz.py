"""Számlázz.hu Agent backend (XML over HTTP).

Every request is an XML document posted to the Agent endpoint. The Agent
key travels inside the document (``szamlaagentkulcs``). A successful
issue answers 200 with the PDF as body and the vendor's invoice number in
the ``szlahu_szamlaszam`` header; errors come back in the ``szlahu_error``
and ``szlahu_error_code`` headers, usually with a non-200 status.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from szamla.billing.base import BackendType, BillingBackend, BillingResult
from szamla.billing.http import HttpClient, HttpResponse
from szamla.domain.amounts import Exempt, VatTreatment, round_money
from szamla.domain.entities import CompanySettings, Invoice, InvoiceItem, PaymentMethod
from szamla.domain.errors import ExternalBackendError

logger = logging.getLogger(__name__)

API_URL = "https://www.szamlazz.hu/szamla/"

INVOICE_NAMESPACE = "http://www.szamlazz.hu/xmlszamla"
STORNO_NAMESPACE = "http://www.szamlazz.hu/xmlszamlast"
PDF_NAMESPACE = "http://www.szamlazz.hu/xmlszamlapdf"

HEADERS = {"Content-Type": "application/xml; charset=UTF-8"}

PAYMENT_METHODS = {
    PaymentMethod.BANK_TRANSFER: "Átutalás",
    PaymentMethod.CASH: "Készpénz",
    PaymentMethod.CARD: "Bankkártya",
    PaymentMethod.OTHER: "Egyéb",
}


class SzamlazzBackend(BillingBackend):
    """Issues invoices through the Számlázz.hu Agent API."""

    backend_type = BackendType.SZAMLAZZ_HU
    transmits = True

    def __init__(
        self,
        settings_provider: Callable[[], CompanySettings],
        http_client: HttpClient,
        api_url: str = API_URL,
        today: Callable[[], date] = date.today,
    ):
        self.settings_provider = settings_provider
        self.http = http_client
        self.api_url = api_url
        self.today = today

    def is_available(self) -> bool:
        return bool(self.settings_provider().szamlazz_agent_key)

    def issue(self, invoice: Invoice) -> BillingResult:
        settings = self.settings_provider()
        if not settings.szamlazz_agent_key:
            return BillingResult.failure("Számlázz.hu Agent key is not configured")

        logger.info("Issuing invoice %s on Számlázz.hu", invoice.invoice_number)
        body = self.build_invoice_xml(invoice, settings)
        try:
            response = self.http.post(self.api_url, HEADERS, body)
        except ExternalBackendError as e:
            logger.error("Számlázz.hu unreachable for invoice %s: %s", invoice.invoice_number, e)
            return BillingResult.failure(f"Számlázz.hu error: {e}")

        error = _error_text(response)
        if error is not None:
            logger.error("Számlázz.hu rejected invoice %s: %s", invoice.invoice_number, error)
            return BillingResult.failure(f"Számlázz.hu error: {error}")

        vendor_number = response.header("szlahu_szamlaszam")
        logger.info("Invoice %s issued on Számlázz.hu as %s", invoice.invoice_number, vendor_number)
        return BillingResult(
            success=True,
            message="Invoice issued on Számlázz.hu",
            external_id=vendor_number,
            document_url=self.api_url,
            document=response.content or None,
        )

    def cancel(self, invoice: Invoice, reason: str) -> bool:
        settings = self.settings_provider()
        if not settings.szamlazz_agent_key:
            logger.error("Cannot cancel invoice %s: Számlázz.hu Agent key is not configured", invoice.invoice_number)
            return False

        body = self.build_storno_xml(invoice, settings, reason)
        try:
            response = self.http.post(self.api_url, HEADERS, body)
        except ExternalBackendError as e:
            logger.error("Számlázz.hu unreachable while cancelling %s: %s", invoice.invoice_number, e)
            return False

        error = _error_text(response)
        if error is not None:
            logger.error("Számlázz.hu refused to cancel %s: %s", invoice.invoice_number, error)
            return False
        logger.info("Invoice %s cancelled on Számlázz.hu", invoice.invoice_number)
        return True

    def download_document(self, invoice: Invoice) -> bytes:
        settings = self.settings_provider()
        if not settings.szamlazz_agent_key:
            raise ExternalBackendError("Számlázz.hu Agent key is not configured")

        root = ET.Element("xmlszamlapdf", {"xmlns": PDF_NAMESPACE})
        _text(root, "szamlaagentkulcs", settings.szamlazz_agent_key)
        _text(root, "szamlaszam", _vendor_number(invoice))
        _text(root, "valaszVerzio", "1")

        response = self.http.post(self.api_url, HEADERS, _serialize(root))
        error = _error_text(response)
        if error is not None:
            raise ExternalBackendError(
                f"Failed to download invoice {invoice.invoice_number} from Számlázz.hu",
                detail=error,
                status_code=response.status_code,
            )
        return response.content

    def build_invoice_xml(self, invoice: Invoice, settings: CompanySettings) -> bytes:
        """Build the ``xmlszamla`` request document."""
        root = ET.Element("xmlszamla", {"xmlns": INVOICE_NAMESPACE})

        options = ET.SubElement(root, "beallitasok")
        _text(options, "szamlaagentkulcs", settings.szamlazz_agent_key)
        _text(options, "eszamla", "true")
        _text(options, "szamlaLetoltes", "true")
        _text(options, "valaszVerzio", "1")

        header = ET.SubElement(root, "fejlec")
        _text(header, "keltDatum", invoice.issue_date.isoformat())
        _text(header, "teljesitesDatum", invoice.delivery_date.isoformat())
        _text(header, "fizetesiHataridoDatum", invoice.payment_deadline.isoformat())
        _text(header, "fizmod", PAYMENT_METHODS.get(invoice.payment_method, "Átutalás"))
        _text(header, "penznem", invoice.currency)
        _text(header, "szamlaNyelve", "hu")
        _text(header, "megjegyzes", _notes(invoice))
        if invoice.currency != "HUF":
            _text(header, "arfolyamBank", "MNB")
            _text(header, "arfolyam", f"{invoice.exchange_rate:f}")
        _text(header, "rendelesSzam", invoice.invoice_number)

        seller = ET.SubElement(root, "elado")
        _text(seller, "bank", settings.bank_name)
        _text(seller, "bankszamlaszam", settings.bank_account)

        customer = invoice.customer
        buyer = ET.SubElement(root, "vevo")
        _text(buyer, "nev", customer.name)
        _text(buyer, "orszag", customer.country)
        _text(buyer, "irsz", customer.zip_code)
        _text(buyer, "telepules", customer.city)
        _text(buyer, "cim", customer.address)
        if customer.email:
            _text(buyer, "email", customer.email)
            _text(buyer, "sendEmail", "false")
        if customer.tax_number:
            _text(buyer, "adoszam", customer.tax_number)
        if customer.eu_tax_number:
            _text(buyer, "adoszamEU", customer.eu_tax_number)

        items = ET.SubElement(root, "tetelek")
        for item in invoice.items:
            self._item(items, item)

        return _serialize(root)

    def build_storno_xml(self, invoice: Invoice, settings: CompanySettings, reason: str) -> bytes:
        """Build the ``xmlszamlast`` (reversal invoice) request document."""
        root = ET.Element("xmlszamlast", {"xmlns": STORNO_NAMESPACE})

        options = ET.SubElement(root, "beallitasok")
        _text(options, "szamlaagentkulcs", settings.szamlazz_agent_key)
        _text(options, "eszamla", "true")
        _text(options, "szamlaLetoltes", "false")

        header = ET.SubElement(root, "fejlec")
        _text(header, "szamlaszam", _vendor_number(invoice))
        _text(header, "keltDatum", self.today().isoformat())
        _text(header, "tipus", "SS")
        _text(header, "megjegyzes", f"Sztornó oka: {reason}")

        return _serialize(root)

    def _item(self, parent: ET.Element, item: InvoiceItem) -> None:
        row = ET.SubElement(parent, "tetel")
        _text(row, "megnevezes", item.description)
        _text(row, "mennyiseg", _amount(item.quantity))
        _text(row, "mennyisegiEgyseg", item.unit_of_measure)
        _text(row, "nettoEgysegar", _amount(item.unit_price))
        _text(row, "afakulcs", vat_code(item.vat))
        _text(row, "nettoErtek", _amount(item.net_amount))
        _text(row, "afaErtek", _amount(item.vat_amount))
        _text(row, "bruttoErtek", _amount(item.gross_amount))
        if item.discount_amount > 0:
            _text(row, "megjegyzes", f"{item.discount_percent.normalize():f}% kedvezmény: {_amount(item.discount_amount)}")
        elif item.notes:
            _text(row, "megjegyzes", item.notes)


def vat_code(vat: VatTreatment) -> str:
    """VAT key as Számlázz.hu expects it: ``27`` for 27%, or the exemption code."""
    if isinstance(vat, Exempt):
        return vat.code
    return str(int(vat.rate))


def _error_text(response: HttpResponse) -> Optional[str]:
    """Return the vendor's error text, or None if the response is a success."""
    error = response.header("szlahu_error")
    if error is None and response.status_code == 200:
        return None
    code = response.header("szlahu_error_code")
    text = error or response.text or f"HTTP {response.status_code}"
    return f"[{code}] {text}" if code else text


def _vendor_number(invoice: Invoice) -> str:
    return invoice.external_id or invoice.invoice_number


def _notes(invoice: Invoice) -> str:
    parts = [p for p in (invoice.notes, invoice.footer_text) if p]
    if invoice.is_reverse_charge:
        parts.append("Fordított adózás")
    if invoice.is_cash_accounting:
        parts.append("Pénzforgalmi elszámolás")
    return "\n".join(parts)


def _amount(value: Decimal) -> str:
    return f"{round_money(value):f}"


def _text(parent: ET.Element, tag: str, value: Optional[str]) -> None:
    ET.SubElement(parent, tag).text = value if value is not None else ""


def _serialize(root: ET.Element) -> bytes:
    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
