"""Local NAV XML export backend: generate the file, upload it by hand."""

import logging
from typing import Callable, Optional

from szamla.billing.base import BackendType, BillingBackend, BillingResult, DocumentRenderer
from szamla.billing.nav_xml import NavInvoiceXmlRenderer
from szamla.domain.entities import CompanySettings, Invoice
from szamla.domain.errors import RenderError

logger = logging.getLogger(__name__)


class NavExportBackend(BillingBackend):
    """Issues invoices by producing NAV Online Számla XML locally.

    Needs no credential and no network, so it is always available and is
    the fallback whenever the configured backend is unknown.
    """

    backend_type = BackendType.NAV_EXPORT
    transmits = False

    def __init__(
        self,
        settings_provider: Callable[[], CompanySettings],
        xml_renderer: Optional[NavInvoiceXmlRenderer] = None,
        document_renderer: Optional[DocumentRenderer] = None,
    ):
        self.settings_provider = settings_provider
        self.xml_renderer = xml_renderer or NavInvoiceXmlRenderer()
        self.document_renderer = document_renderer

    def issue(self, invoice: Invoice) -> BillingResult:
        try:
            xml = self.xml_renderer.render(invoice, self.settings_provider())
        except RenderError as e:
            logger.error("NAV XML export failed for invoice %s: %s", invoice.invoice_number, e)
            return BillingResult.failure(f"NAV XML export failed: {e}")

        logger.info("Generated NAV XML for invoice %s (%d bytes)", invoice.invoice_number, len(xml))
        return BillingResult(
            success=True,
            message="NAV XML generated; upload it to the NAV Online Számla portal",
            external_id=invoice.invoice_number,
            document=xml,
        )

    def issue_problems(self, invoice: Invoice) -> list[str]:
        return self.xml_renderer.missing_seller_data(self.settings_provider())

    def cancel(self, invoice: Invoice, reason: str) -> bool:
        # Nothing was transmitted; the storno is uploaded on the NAV portal by hand.
        logger.info("Invoice %s cancelled locally; record the storno on the NAV portal", invoice.invoice_number)
        return True

    def download_document(self, invoice: Invoice) -> bytes:
        """Return the printable document, or the NAV XML if no renderer is configured."""
        settings = self.settings_provider()
        if self.document_renderer is not None:
            return self.document_renderer.render(invoice, settings)
        return self.xml_renderer.render(invoice, settings)

    def is_available(self) -> bool:
        return True
