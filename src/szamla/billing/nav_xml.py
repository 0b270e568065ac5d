"""NAV Online Számla 3.0 invoice data XML.

Produces the ``InvoiceData`` document a taxpayer uploads to the NAV portal
by hand. Amounts are written exactly as computed on the invoice; nothing is
recalculated here except the HUF equivalents of foreign currency amounts.
"""

import logging
import re
import xml.etree.ElementTree as ET
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from szamla.domain.amounts import Exempt, HUNDRED, VatTreatment, round_money, summarize_by_vat
from szamla.domain.entities import CompanySettings, Customer, Invoice, InvoiceItem, PaymentMethod
from szamla.domain.errors import RenderError

logger = logging.getLogger(__name__)

NAV_DATA_NAMESPACE = "http://schemas.nav.gov.hu/OSA/3.0/data"
NAV_BASE_NAMESPACE = "http://schemas.nav.gov.hu/OSA/3.0/base"

EXCHANGE_RATE_PLACES = Decimal("0.000001")
VAT_PERCENTAGE_PLACES = Decimal("0.0001")

PAYMENT_METHODS = {
    PaymentMethod.BANK_TRANSFER: "TRANSFER",
    PaymentMethod.CASH: "CASH",
    PaymentMethod.CARD: "CARD",
    PaymentMethod.OTHER: "OTHER",
}

# Hungarian units of measure mapped to the NAV enumeration; anything else is OWN.
UNITS_OF_MEASURE = {
    "db": "PIECE",
    "darab": "PIECE",
    "óra": "HOUR",
    "ora": "HOUR",
    "perc": "MINUTE",
    "nap": "DAY",
    "hó": "MONTH",
    "hónap": "MONTH",
    "kg": "KILOGRAM",
    "t": "TON",
    "km": "KILOMETER",
    "m": "METER",
    "fm": "LINEAR_METER",
    "m3": "CUBIC_METER",
    "l": "LITER",
    "kwh": "KWH",
    "karton": "CARTON",
    "csomag": "PACK",
}

REVERSE_CHARGE_DATA = ("X00001_FORDITOTT_ADOZAS", "Fordított adózás", "Fordított adózás alá eső ügylet")
CASH_ACCOUNTING_DATA = ("X00002_PENZFORGALMI_ELSZAMOLAS", "Pénzforgalmi elszámolás", "Pénzforgalmi elszámolás")


class NavInvoiceXmlRenderer:
    """Renders an issued invoice into NAV 3.0 ``InvoiceData`` XML."""

    def render(self, invoice: Invoice, settings: CompanySettings) -> bytes:
        """Render the invoice as UTF-8 encoded, indented XML.

        Args:
            invoice: Invoice with a number, customer, dates and items
            settings: Seller data

        Returns:
            XML document bytes; identical input always gives identical bytes

        Raises:
            RenderError: If mandatory invoice or seller data is missing
        """
        self._check(invoice, settings)

        root = ET.Element("InvoiceData", {"xmlns": NAV_DATA_NAMESPACE, "xmlns:base": NAV_BASE_NAMESPACE})
        _text(root, "invoiceNumber", invoice.invoice_number)
        _text(root, "invoiceIssueDate", invoice.issue_date.isoformat())
        _text(root, "completenessIndicator", "false")

        invoice_element = ET.SubElement(ET.SubElement(root, "invoiceMain"), "invoice")

        head = ET.SubElement(invoice_element, "invoiceHead")
        self._supplier(head, settings)
        self._customer(head, invoice.customer)
        self._detail(head, invoice)

        lines = ET.SubElement(invoice_element, "invoiceLines")
        _text(lines, "mergedItemIndicator", "false")
        for item in invoice.items:
            self._line(lines, item, _invoice_rate(invoice))

        self._summary(invoice_element, invoice)

        ET.indent(root, space="  ")
        xml = ET.tostring(root, encoding="utf-8", xml_declaration=True)
        logger.debug("Rendered NAV XML for invoice %s (%d bytes)", invoice.invoice_number, len(xml))
        return xml

    @staticmethod
    def missing_seller_data(settings: CompanySettings) -> list[str]:
        """Return the seller fields a NAV export needs but the settings lack."""
        missing = []
        if not settings.company_name:
            missing.append("seller name")
        if not _digits(settings.tax_number):
            missing.append("seller tax number")
        return missing

    def _check(self, invoice: Invoice, settings: CompanySettings) -> None:
        missing = []
        if not invoice.invoice_number:
            missing.append("invoice number")
        if invoice.customer is None:
            missing.append("customer")
        if invoice.issue_date is None:
            missing.append("issue date")
        if not invoice.items:
            missing.append("line items")
        missing.extend(self.missing_seller_data(settings))
        if missing:
            raise RenderError(f"Cannot export invoice {invoice.invoice_number or invoice.id}: missing {', '.join(missing)}")

    def _supplier(self, head: ET.Element, settings: CompanySettings) -> None:
        supplier = ET.SubElement(head, "supplierInfo")
        _tax_number(supplier, "supplierTaxNumber", settings.tax_number)
        if settings.eu_tax_number:
            _text(supplier, "communityVatNumber", settings.eu_tax_number.replace(" ", ""))
        _text(supplier, "supplierName", settings.company_name)
        _address(
            supplier,
            "supplierAddress",
            settings.country_code or "HU",
            settings.zip_code,
            settings.city,
            settings.address,
        )
        if settings.bank_account:
            _text(supplier, "supplierBankAccountNumber", settings.bank_account.strip())

    def _customer(self, head: ET.Element, customer: Customer) -> None:
        info = ET.SubElement(head, "customerInfo")
        country = customer.country or "HU"

        if not customer.is_company:
            _text(info, "customerVatStatus", "PRIVATE_PERSON")
        elif country == "HU":
            _text(info, "customerVatStatus", "DOMESTIC")
        else:
            _text(info, "customerVatStatus", "OTHER")

        if customer.is_company and (_digits(customer.tax_number) or customer.eu_tax_number):
            vat_data = ET.SubElement(info, "customerVatData")
            if country == "HU" and _digits(customer.tax_number):
                _tax_number(vat_data, "customerTaxNumber", customer.tax_number)
            elif customer.eu_tax_number:
                _text(vat_data, "communityVatNumber", customer.eu_tax_number.replace(" ", ""))
            else:
                _text(vat_data, "thirdStateTaxId", customer.tax_number)

        if customer.is_company:
            _text(info, "customerName", customer.name)
            _address(info, "customerAddress", country, customer.zip_code, customer.city, customer.address)

    def _detail(self, head: ET.Element, invoice: Invoice) -> None:
        detail = ET.SubElement(head, "invoiceDetail")
        _text(detail, "invoiceCategory", "NORMAL")
        _text(detail, "invoiceDeliveryDate", (invoice.delivery_date or invoice.issue_date).isoformat())
        _text(detail, "currencyCode", invoice.currency or "HUF")
        _text(detail, "exchangeRate", _exchange_rate(_invoice_rate(invoice)))
        if invoice.payment_method is not None:
            _text(detail, "paymentMethod", PAYMENT_METHODS[invoice.payment_method])
        if invoice.payment_deadline is not None:
            _text(detail, "paymentDate", invoice.payment_deadline.isoformat())
        if invoice.is_cash_accounting:
            _text(detail, "cashAccountingIndicator", "true")
        _text(detail, "invoiceAppearance", "PAPER")

        if invoice.is_reverse_charge:
            _additional_data(detail, *REVERSE_CHARGE_DATA)
        if invoice.is_cash_accounting:
            _additional_data(detail, *CASH_ACCOUNTING_DATA)

    def _line(self, lines: ET.Element, item: InvoiceItem, exchange_rate: Optional[Decimal]) -> None:
        line = ET.SubElement(lines, "line")
        _text(line, "lineNumber", str(item.line_number))
        _text(line, "lineExpressionIndicator", "true")
        _text(line, "lineDescription", item.description)
        _text(line, "quantity", _number(item.quantity))

        unit = UNITS_OF_MEASURE.get((item.unit_of_measure or "").strip().lower(), "OWN")
        _text(line, "unitOfMeasure", unit)
        if unit == "OWN":
            _text(line, "unitOfMeasureOwn", item.unit_of_measure)

        _text(line, "unitPrice", _money(item.unit_price))
        _text(line, "unitPriceHUF", _money(_huf(item.unit_price, exchange_rate)))

        if item.discount_amount > 0:
            discount = ET.SubElement(line, "lineDiscountData")
            _text(discount, "discountDescription", f"{_number(item.discount_percent)}% kedvezmény")
            _text(discount, "discountValue", _money(item.discount_amount))
            _text(discount, "discountRate", _number(item.discount_percent / HUNDRED))

        amounts = ET.SubElement(line, "lineAmountsNormal")
        net = ET.SubElement(amounts, "lineNetAmountData")
        _text(net, "lineNetAmount", _money(item.net_amount))
        _text(net, "lineNetAmountHUF", _money(_huf(item.net_amount, exchange_rate)))
        _vat_rate(amounts, "lineVatRate", item.vat)
        vat = ET.SubElement(amounts, "lineVatData")
        _text(vat, "lineVatAmount", _money(item.vat_amount))
        _text(vat, "lineVatAmountHUF", _money(_huf(item.vat_amount, exchange_rate)))
        gross = ET.SubElement(amounts, "lineGrossAmountData")
        _text(gross, "lineGrossAmountNormal", _money(item.gross_amount))
        _text(gross, "lineGrossAmountNormalHUF", _money(_huf(item.gross_amount, exchange_rate)))

    def _summary(self, parent: ET.Element, invoice: Invoice) -> None:
        rate = _invoice_rate(invoice)
        summary = ET.SubElement(parent, "invoiceSummary")
        normal = ET.SubElement(summary, "summaryNormal")

        for group in summarize_by_vat(invoice.items):
            by_rate = ET.SubElement(normal, "summaryByVatRate")
            _vat_rate(by_rate, "vatRate", group.vat)
            net = ET.SubElement(by_rate, "vatRateNetData")
            _text(net, "vatRateNetAmount", _money(group.net))
            _text(net, "vatRateNetAmountHUF", _money(_huf(group.net, rate)))
            vat = ET.SubElement(by_rate, "vatRateVatData")
            _text(vat, "vatRateVatAmount", _money(group.vat_amount))
            _text(vat, "vatRateVatAmountHUF", _money(_huf(group.vat_amount, rate)))
            gross = ET.SubElement(by_rate, "vatRateGrossData")
            _text(gross, "vatRateGrossAmount", _money(group.gross))
            _text(gross, "vatRateGrossAmountHUF", _money(_huf(group.gross, rate)))

        _text(normal, "invoiceNetAmount", _money(invoice.net_amount))
        _text(normal, "invoiceNetAmountHUF", _money(_huf(invoice.net_amount, rate)))
        _text(normal, "invoiceVatAmount", _money(invoice.vat_amount))
        _text(normal, "invoiceVatAmountHUF", _money(_huf(invoice.vat_amount, rate)))

        gross_data = ET.SubElement(summary, "summaryGrossData")
        _text(gross_data, "invoiceGrossAmount", _money(invoice.gross_amount))
        _text(gross_data, "invoiceGrossAmountHUF", _money(_huf(invoice.gross_amount, rate)))


def _text(parent: ET.Element, tag: str, value: Optional[str]) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = value if value is not None else ""
    return element


def _digits(value: Optional[str]) -> str:
    return re.sub(r"[^0-9]", "", value or "")


def _tax_number(parent: ET.Element, tag: str, tax_number: Optional[str]) -> None:
    """Write a Hungarian tax number (12345678-2-42) split into its three parts."""
    digits = _digits(tax_number)
    element = ET.SubElement(parent, tag)
    _text(element, "base:taxpayerId", digits[:8])
    if len(digits) == 11:
        _text(element, "base:vatCode", digits[8])
        _text(element, "base:countyCode", digits[9:])


def _address(
    parent: ET.Element,
    tag: str,
    country: str,
    postal_code: Optional[str],
    city: Optional[str],
    detail: Optional[str],
) -> None:
    simple = ET.SubElement(ET.SubElement(parent, tag), "base:simpleAddress")
    _text(simple, "base:countryCode", country)
    _text(simple, "base:postalCode", postal_code)
    _text(simple, "base:city", city)
    _text(simple, "base:additionalAddressDetail", detail)


def _additional_data(parent: ET.Element, name: str, description: str, value: str) -> None:
    data = ET.SubElement(parent, "additionalInvoiceData")
    _text(data, "dataName", name)
    _text(data, "dataDescription", description)
    _text(data, "dataValue", value)


def _vat_rate(parent: ET.Element, tag: str, vat: VatTreatment) -> None:
    element = ET.SubElement(parent, tag)
    if isinstance(vat, Exempt):
        exemption = ET.SubElement(element, "vatExemption")
        _text(exemption, "case", vat.code)
        _text(exemption, "reason", vat.reason)
    else:
        # NAV expects the rate as a fraction: 27% is 0.27
        _text(element, "vatPercentage", _number((vat.rate / HUNDRED).quantize(VAT_PERCENTAGE_PLACES)))


def _invoice_rate(invoice: Invoice) -> Optional[Decimal]:
    # HUF invoices are always reported at 1 whatever was stored
    if (invoice.currency or "HUF") == "HUF":
        return Decimal("1")
    return invoice.exchange_rate


def _huf(amount: Decimal, exchange_rate: Optional[Decimal]) -> Decimal:
    if exchange_rate is None or exchange_rate == 1:
        return amount
    return round_money(amount * exchange_rate)


def _money(value: Decimal) -> str:
    return f"{round_money(value):f}"


def _number(value: Decimal) -> str:
    """Shortest plain notation: 2, 1.5, 0.27."""
    text = f"{value:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def _exchange_rate(value: Optional[Decimal]) -> str:
    rate = value if value is not None else Decimal("1")
    return f"{rate.quantize(EXCHANGE_RATE_PLACES, rounding=ROUND_HALF_UP):f}"
