"""Shared pytest fixtures for szamla tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from szamla.billing.base import BackendType, BillingBackend, BillingResult
from szamla.billing.nav_export import NavExportBackend
from szamla.billing.selector import BillingBackendSelector
from szamla.database.factories import create_sqlite_database
from szamla.domain.customer import CustomerService
from szamla.domain.invoice import InvoiceService
from szamla.domain.numbering import InvoiceNumberSequencer
from szamla.domain.settings import CompanySettingsService

TODAY = date(2024, 3, 15)


class FakeBackend(BillingBackend):
    """In-memory billing backend that records calls and returns queued results."""

    def __init__(self, backend_type=BackendType.SZAMLAZZ_HU, transmits=True):
        self.backend_type = backend_type
        self.transmits = transmits
        self.results = []
        self.issued = []
        self.cancelled = []
        self.cancel_result = True
        self.document = b"%PDF-fake"

    def issue(self, invoice):
        self.issued.append(invoice)
        if self.results:
            return self.results.pop(0)
        return BillingResult(
            success=True,
            message="Issued by fake backend",
            external_id=f"EXT-{invoice.invoice_number}",
            document_url="https://example.test/invoice",
            document=self.document,
        )

    def cancel(self, invoice, reason):
        self.cancelled.append((invoice, reason))
        return self.cancel_result

    def download_document(self, invoice):
        return self.document

    def is_available(self):
        return True


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def customer_service(temp_db):
    """Create a CustomerService with a temporary database."""
    return CustomerService(temp_db)


@pytest.fixture
def settings_service(temp_db):
    """Create a CompanySettingsService with a temporary database."""
    return CompanySettingsService(temp_db)


@pytest.fixture
def sequencer(temp_db):
    """Create an InvoiceNumberSequencer with a temporary database."""
    return InvoiceNumberSequencer(temp_db)


@pytest.fixture
def company_settings(settings_service):
    """Seller data complete enough to export NAV XML."""
    return settings_service.update_settings(
        company_name="Minta Kft.",
        tax_number="12345678-2-42",
        zip_code="1011",
        city="Budapest",
        address="Fő utca 1.",
        bank_name="Minta Bank",
        bank_account="11111111-22222222-33333333",
    )


@pytest.fixture
def sample_customer(customer_service):
    """Create a sample company customer."""
    customer_id = customer_service.create_customer(
        name="Példa Kft.",
        tax_number="87654321-2-13",
        zip_code="6720",
        city="Szeged",
        address="Kárász utca 5.",
        email="szamla@pelda.hu",
        payment_deadline_days=15,
    )
    return customer_service.get_customer(customer_id)


@pytest.fixture
def fake_backend():
    """Online backend stand-in registered as SZAMLAZZ_HU."""
    return FakeBackend()


@pytest.fixture
def selector(temp_db, fake_backend):
    """Selector with the real NAV export backend and the fake online backend."""
    return BillingBackendSelector(
        [NavExportBackend(temp_db.get_company_settings), fake_backend],
        temp_db.get_company_settings,
    )


@pytest.fixture
def invoice_service(temp_db, selector):
    """Create an InvoiceService with a fixed clock and no network access."""
    return InvoiceService(temp_db, selector=selector, today=lambda: TODAY)


@pytest.fixture
def draft_invoice(invoice_service, sample_customer, company_settings):
    """A draft with one 27% line: 10 x 15 000 HUF."""
    draft = invoice_service.create_draft(customer_id=sample_customer.id)
    return invoice_service.add_item(
        draft.id,
        description="Tanácsadás",
        quantity=Decimal("10"),
        unit_price=Decimal("15000"),
        unit_of_measure="óra",
    )


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
