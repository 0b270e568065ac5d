"""Maps the configured backend code to a billing backend."""

import logging
from typing import Callable, Iterable, Optional

from szamla.billing.base import BackendType, BillingBackend, DocumentRenderer
from szamla.billing.billingo import BillingoBackend
from szamla.billing.http import HttpClient, HttpxClient
from szamla.billing.nav_export import NavExportBackend
from szamla.billing.szamlazz import SzamlazzBackend
from szamla.database.base import Database
from szamla.domain.entities import CompanySettings, Invoice

logger = logging.getLogger(__name__)


class BillingBackendSelector:
    """Chooses the backend for new and already issued invoices.

    A missing or unknown configuration selects NAV_EXPORT, which must
    therefore always be registered.
    """

    def __init__(self, backends: Iterable[BillingBackend], settings_provider: Callable[[], CompanySettings]):
        self.backends = {backend.backend_type: backend for backend in backends}
        if BackendType.NAV_EXPORT not in self.backends:
            raise ValueError("The NAV_EXPORT backend must always be available")
        self.settings_provider = settings_provider

    def current_type(self) -> BackendType:
        return BackendType.from_code(self.settings_provider().invoicing_backend)

    def current(self) -> BillingBackend:
        """Backend for issuing new invoices."""
        return self.for_type(self.current_type())

    def for_type(self, backend_type: BackendType) -> BillingBackend:
        backend = self.backends.get(backend_type)
        if backend is None:
            logger.warning("No %s backend registered, using %s", backend_type.value, BackendType.NAV_EXPORT.value)
            return self.backends[BackendType.NAV_EXPORT]
        return backend

    def for_invoice(self, invoice: Invoice) -> BillingBackend:
        """Backend that issued ``invoice``, or the current one if it was never issued."""
        if invoice.billing_backend:
            return self.for_type(BackendType.from_code(invoice.billing_backend))
        return self.current()


def create_billing_selector(
    db: Database,
    http_client: Optional[HttpClient] = None,
    document_renderer: Optional[DocumentRenderer] = None,
) -> BillingBackendSelector:
    """Wire the three backends to the company settings stored in ``db``.

    Args:
        db: Database holding the company settings
        http_client: HTTP client for the online vendors (httpx by default)
        document_renderer: Optional PDF renderer for locally exported invoices
    """
    settings_provider = db.get_company_settings
    http = http_client or HttpxClient()
    return BillingBackendSelector(
        [
            NavExportBackend(settings_provider, document_renderer=document_renderer),
            SzamlazzBackend(settings_provider, http),
            BillingoBackend(settings_provider, http),
        ],
        settings_provider,
    )
