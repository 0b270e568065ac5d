"""Billing backend contract shared by the local export and the online vendors."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from szamla.domain.entities import CompanySettings, Invoice

logger = logging.getLogger(__name__)


class BackendType(str, Enum):
    """Configured invoicing backend."""

    NAV_EXPORT = "NAV_EXPORT"
    SZAMLAZZ_HU = "SZAMLAZZ_HU"
    BILLINGO = "BILLINGO"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "BackendType":
        """Map a stored backend code to a BackendType.

        Missing or unknown codes map to NAV_EXPORT, the only backend that
        needs no credential, so a bad setting never blocks issuing.
        """
        if code:
            try:
                return cls(code.strip().upper())
            except ValueError:
                logger.warning("Unknown invoicing backend %r, falling back to %s", code, cls.NAV_EXPORT.value)
        return cls.NAV_EXPORT


@dataclass(frozen=True)
class BillingResult:
    """Normalized outcome of issuing an invoice through a backend."""

    success: bool
    message: str
    external_id: Optional[str] = None
    document_url: Optional[str] = None
    document: Optional[bytes] = None

    @classmethod
    def failure(cls, message: str) -> "BillingResult":
        return cls(success=False, message=message)


class DocumentRenderer(Protocol):
    """Produces a printable document (PDF) for an invoice."""

    def render(self, invoice: Invoice, settings: CompanySettings) -> bytes:
        ...


class BillingBackend(ABC):
    """One way of issuing invoices.

    ``issue`` is called exactly once per issuance or retry request;
    implementations never retry on their own.
    """

    backend_type: BackendType

    #: True if ``issue`` transmits the invoice to an external system.
    transmits: bool = False

    @abstractmethod
    def issue(self, invoice: Invoice) -> BillingResult:
        """Issue the (already numbered) invoice.

        Vendor rejections and transport failures are returned as an
        unsuccessful result carrying the vendor's message.
        """
        pass

    def issue_problems(self, invoice: Invoice) -> list[str]:
        """Return reasons ``issue`` would certainly fail, checked before numbering."""
        return []

    @abstractmethod
    def cancel(self, invoice: Invoice, reason: str) -> bool:
        """Cancel (storno) an issued invoice. Returns True on success."""
        pass

    @abstractmethod
    def download_document(self, invoice: Invoice) -> bytes:
        """Fetch the document of an issued invoice.

        Raises:
            ExternalBackendError: If the document cannot be obtained
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the backend is configured well enough to be used."""
        pass
