"""Billingo API v3 backend (JSON over HTTP)."""

import json
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Optional

from szamla.billing.base import BackendType, BillingBackend, BillingResult
from szamla.billing.http import HttpClient, HttpResponse
from szamla.domain.amounts import Exempt, VatTreatment
from szamla.domain.entities import CompanySettings, Customer, Invoice, InvoiceItem, PaymentMethod
from szamla.domain.errors import ExternalBackendError

logger = logging.getLogger(__name__)

API_URL = "https://api.billingo.hu/v3"

UNIT_PRICE_PLACES = Decimal("0.0001")

PAYMENT_METHODS = {
    PaymentMethod.BANK_TRANSFER: "wire_transfer",
    PaymentMethod.CASH: "cash",
    PaymentMethod.CARD: "bankcard",
    PaymentMethod.OTHER: "other",
}


class BillingoBackend(BillingBackend):
    """Issues invoices through the Billingo REST API.

    Billingo has no upsert for partners, so the customer is looked up by
    name first and created only when missing. If creation is rejected with
    422 (it already exists after all) the lookup is repeated.
    """

    backend_type = BackendType.BILLINGO
    transmits = True

    def __init__(
        self,
        settings_provider: Callable[[], CompanySettings],
        http_client: HttpClient,
        api_url: str = API_URL,
    ):
        self.settings_provider = settings_provider
        self.http = http_client
        self.api_url = api_url.rstrip("/")

    def is_available(self) -> bool:
        return bool(self.settings_provider().billingo_api_key)

    def issue(self, invoice: Invoice) -> BillingResult:
        settings = self.settings_provider()
        api_key = settings.billingo_api_key
        if not api_key:
            return BillingResult.failure("Billingo API key is not configured")

        logger.info("Issuing invoice %s on Billingo", invoice.invoice_number)
        try:
            partner_id = self.resolve_partner(invoice.customer, api_key)
            response = self.http.post(
                f"{self.api_url}/documents",
                _headers(api_key),
                _json(self.build_document(invoice, partner_id, settings)),
            )
        except ExternalBackendError as e:
            logger.error("Billingo failed for invoice %s: %s", invoice.invoice_number, e.detail or e)
            return BillingResult.failure(f"Billingo error: {e.detail or e}")

        if response.status_code != 201:
            logger.error("Billingo rejected invoice %s: %s %s", invoice.invoice_number, response.status_code, response.text)
            return BillingResult.failure(f"Billingo error ({response.status_code}): {response.text}")

        try:
            document = _read_json(response, "document creation")
            document_id = str(document["id"])
            document_url = document.get("public_url")
        except (ExternalBackendError, KeyError, TypeError):
            logger.error("Unexpected Billingo response for invoice %s: %s", invoice.invoice_number, response.text)
            return BillingResult.failure(f"Billingo error: unexpected response {response.text}")
        logger.info("Invoice %s issued on Billingo as document %s", invoice.invoice_number, document_id)

        return BillingResult(
            success=True,
            message="Invoice issued on Billingo",
            external_id=document_id,
            document_url=document_url,
            document=self._fetch_pdf_after_issue(document_id, api_key),
        )

    def cancel(self, invoice: Invoice, reason: str) -> bool:
        api_key = self.settings_provider().billingo_api_key
        if not api_key or not invoice.external_id:
            logger.error("Cannot cancel invoice %s on Billingo: missing API key or document id", invoice.invoice_number)
            return False

        body = _json({"cancellation_reason": reason}) if reason else b""
        try:
            response = self.http.post(f"{self.api_url}/documents/{invoice.external_id}/cancel", _headers(api_key), body)
        except ExternalBackendError as e:
            logger.error("Billingo unreachable while cancelling %s: %s", invoice.invoice_number, e)
            return False

        if _is_success(response):
            logger.info("Invoice %s cancelled on Billingo", invoice.invoice_number)
            return True
        logger.error("Billingo refused to cancel %s: %s %s", invoice.invoice_number, response.status_code, response.text)
        return False

    def download_document(self, invoice: Invoice) -> bytes:
        api_key = self.settings_provider().billingo_api_key
        if not api_key:
            raise ExternalBackendError("Billingo API key is not configured")
        if not invoice.external_id:
            raise ExternalBackendError(f"Invoice {invoice.invoice_number} has no Billingo document id")
        return self._download(invoice.external_id, api_key)

    def resolve_partner(self, customer: Customer, api_key: str) -> int:
        """Return the Billingo partner id of the customer, creating the partner if needed.

        Raises:
            ExternalBackendError: If the partner can be neither found nor created
        """
        partner_id = self._find_partner(customer.name, api_key)
        if partner_id is not None:
            return partner_id

        response = self.http.post(f"{self.api_url}/partners", _headers(api_key), _json(build_partner(customer)))
        if response.status_code == 201:
            partner_id = _read_id(response, "partner creation")
            logger.info("Created Billingo partner %s for customer %r", partner_id, customer.name)
            return partner_id

        if response.status_code == 422:
            logger.info("Billingo partner %r already exists, searching again", customer.name)
            partner_id = self._find_partner(customer.name, api_key)
            if partner_id is not None:
                return partner_id

        raise ExternalBackendError(
            f"Could not create Billingo partner for customer '{customer.name}'",
            detail=response.text,
            status_code=response.status_code,
        )

    def build_document(self, invoice: Invoice, partner_id: int, settings: CompanySettings) -> dict[str, Any]:
        """Build the ``POST /documents`` payload."""
        document: dict[str, Any] = {
            "partner_id": partner_id,
            "type": "invoice",
            "fulfillment_date": invoice.delivery_date.isoformat(),
            "due_date": invoice.payment_deadline.isoformat(),
            "payment_method": PAYMENT_METHODS.get(invoice.payment_method, "wire_transfer"),
            "language": "hu",
            "currency": invoice.currency,
            "conversion_rate": float(invoice.exchange_rate),
            "electronic": False,
            "paid": invoice.is_paid,
            "comment": invoice.notes or "",
            "items": [build_item(item) for item in invoice.items],
        }
        if settings.billingo_block_id:
            document["block_id"] = settings.billingo_block_id
        return document

    def _find_partner(self, name: str, api_key: str) -> Optional[int]:
        response = self.http.get(f"{self.api_url}/partners", _headers(api_key), params={"query": name})
        if response.status_code != 200:
            raise ExternalBackendError(
                f"Billingo partner search failed for '{name}'",
                detail=response.text,
                status_code=response.status_code,
            )
        payload = _read_json(response, "partner search")
        try:
            partners = payload.get("data", []) if isinstance(payload, dict) else payload
            for partner in partners:
                if partner.get("name") == name:
                    return int(partner["id"])
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise _unexpected(response, "partner search") from e
        return None

    def _fetch_pdf_after_issue(self, document_id: str, api_key: str) -> Optional[bytes]:
        # The document exists from here on; a missing PDF is not an issue failure.
        try:
            return self._download(document_id, api_key)
        except ExternalBackendError as e:
            logger.warning("Billingo document %s issued but PDF not available yet: %s", document_id, e)
            return None

    def _download(self, document_id: str, api_key: str) -> bytes:
        response = self.http.get(f"{self.api_url}/documents/{document_id}/download", _headers(api_key))
        if response.status_code != 200:
            raise ExternalBackendError(
                f"Failed to download Billingo document {document_id}",
                detail=response.text,
                status_code=response.status_code,
            )
        return response.content


def build_partner(customer: Customer) -> dict[str, Any]:
    """Map a customer to a Billingo partner."""
    partner: dict[str, Any] = {
        "name": customer.name,
        "address": {
            "country_code": customer.country or "HU",
            "post_code": customer.zip_code or "",
            "city": customer.city or "",
            "address": customer.address or "",
        },
        "emails": [customer.email] if customer.email else [],
        "taxcode": customer.tax_number or "",
    }
    if customer.eu_tax_number:
        partner["tax_type"] = "FOREIGN" if customer.country != "HU" else "HAS_TAX_NUMBER"
    elif not customer.is_company:
        partner["tax_type"] = "NO_TAX_NUMBER"
    return partner


def build_item(item: InvoiceItem) -> dict[str, Any]:
    """Map an invoice line to a Billingo document item."""
    row: dict[str, Any] = {
        "name": item.description,
        "unit_price": float(item.unit_price),
        "unit_price_type": "net",
        "quantity": float(item.quantity),
        "unit": item.unit_of_measure,
        "vat": vat_code(item.vat),
    }
    comment = item.notes or ""
    if item.discount_amount > 0:
        discount = f"{item.discount_percent.normalize():f}% kedvezmény"
        comment = f"{discount} {comment}".strip()
        # Billingo has no per-line discount and recomputes the line total from
        # the discounted net unit price, so it is sent with 4 decimals.
        row["unit_price"] = float(_unit_price(item.net_amount, item.quantity))
    if comment:
        row["comment"] = comment
    return row


def vat_code(vat: VatTreatment) -> str:
    """VAT key as Billingo expects it: ``27%`` or the exemption code (``AAM``, ``TAM``...)."""
    if isinstance(vat, Exempt):
        return vat.code
    return f"{int(vat.rate)}%"


def _headers(api_key: str) -> dict[str, str]:
    return {"X-API-KEY": api_key, "Content-Type": "application/json", "Accept": "application/json"}


def _json(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _is_success(response: HttpResponse) -> bool:
    return 200 <= response.status_code < 300


def _unit_price(net_amount: Decimal, quantity: Decimal) -> Decimal:
    if not quantity:
        return Decimal("0")
    return (net_amount / quantity).quantize(UNIT_PRICE_PLACES, rounding=ROUND_HALF_UP)


def _read_json(response: HttpResponse, what: str) -> Any:
    try:
        return json.loads(response.content)
    except ValueError as e:
        raise _unexpected(response, what) from e


def _read_id(response: HttpResponse, what: str) -> int:
    payload = _read_json(response, what)
    try:
        return int(payload["id"])
    except (KeyError, TypeError, ValueError) as e:
        raise _unexpected(response, what) from e


def _unexpected(response: HttpResponse, what: str) -> ExternalBackendError:
    return ExternalBackendError(
        f"Unexpected Billingo response to {what}",
        detail=response.text,
        status_code=response.status_code,
    )
