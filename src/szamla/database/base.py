"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional
from datetime import date

# Import entities directly to avoid circular import through domain/__init__.py
from szamla.domain.entities import (
    CompanySettings,
    Customer,
    Invoice,
    InvoiceStatus,
    SequenceCounter,
)


class Database(ABC):
    """Abstract database interface for szamla."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Customer operations
    @abstractmethod
    def create_customer(
        self,
        name: str,
        tax_number: Optional[str] = None,
        eu_tax_number: Optional[str] = None,
        zip_code: Optional[str] = None,
        city: Optional[str] = None,
        address: Optional[str] = None,
        country: str = "HU",
        email: Optional[str] = None,
        phone: Optional[str] = None,
        payment_deadline_days: int = 8,
        is_company: bool = True,
    ) -> int:
        """Create a customer. Returns customer ID."""
        pass

    @abstractmethod
    def get_customer(self, customer_id: int) -> Optional[Customer]:
        """Get customer by ID."""
        pass

    @abstractmethod
    def get_customer_by_name(self, name: str) -> Optional[Customer]:
        """Get customer by exact name."""
        pass

    @abstractmethod
    def list_customers(self, active_only: bool = False) -> list[Customer]:
        """List customers ordered by name."""
        pass

    # Company settings operations
    @abstractmethod
    def get_company_settings(self) -> CompanySettings:
        """Get the company settings, creating the default record on first use."""
        pass

    @abstractmethod
    def save_company_settings(self, settings: CompanySettings) -> CompanySettings:
        """Persist company settings."""
        pass

    # Invoice number sequence
    @abstractmethod
    def allocate_next_number(self, sequence_key: str, default_prefix: str) -> str:
        """Atomically hand out the next invoice number for ``sequence_key``.

        Implementations must perform the read-increment-write inside one
        storage transaction holding a write lock, and must create a missing
        counter (starting at 1 with ``default_prefix``) without letting two
        callers both initialize it. Never returns the same number twice.
        """
        pass

    @abstractmethod
    def get_sequence_counter(self, sequence_key: str) -> Optional[SequenceCounter]:
        """Read the counter state for display. Returns None if never used."""
        pass

    @abstractmethod
    def set_sequence_counter(self, sequence_key: str, prefix: str, next_number: int) -> SequenceCounter:
        """Set prefix and next number of a counter.

        Raises:
            ValueError: If ``next_number`` is lower than the stored next number
        """
        pass

    # Invoice operations
    @abstractmethod
    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        """Get invoice (with items and customer) by ID."""
        pass

    @abstractmethod
    def get_invoice_by_number(self, invoice_number: str) -> Optional[Invoice]:
        """Get invoice by its invoice number."""
        pass

    @abstractmethod
    def save_invoice(self, invoice: Invoice) -> Invoice:
        """Insert or update an invoice header together with all of its items.

        Header and items are written in one transaction. Items missing from
        ``invoice.items`` are deleted. Returns the stored invoice with IDs
        and audit timestamps filled in.
        """
        pass

    @abstractmethod
    def delete_invoice(self, invoice_id: int) -> None:
        """Delete a DRAFT invoice and its items."""
        pass

    @abstractmethod
    def list_invoices(
        self,
        status: Optional[InvoiceStatus] = None,
        customer_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        is_paid: Optional[bool] = None,
        is_sent: Optional[bool] = None,
    ) -> list[Invoice]:
        """List invoices with optional filters.

        Args:
            status: Optional stored status filter
            customer_id: Optional customer ID filter
            start_date: Optional issue date lower bound
            end_date: Optional issue date upper bound
            is_paid: Optional paid flag filter
            is_sent: Optional sent flag filter
        """
        pass
