"""Tests for the invoice lifecycle service."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from szamla.billing.base import BillingResult
from szamla.domain.amounts import Exempt, Rated
from szamla.domain.entities import InvoiceStatus, PaymentMethod
from szamla.domain.errors import ExternalBackendError, NotFoundError, TransitionError, ValidationError


@pytest.fixture
def online(settings_service, company_settings):
    """Configure the fake SZAMLAZZ_HU backend as the active one."""
    settings_service.update_settings(invoicing_backend="SZAMLAZZ_HU", szamlazz_agent_key="agent-key")


def test_create_draft_defaults(invoice_service, sample_customer, company_settings):
    draft = invoice_service.create_draft(customer_id=sample_customer.id)

    assert draft.status == InvoiceStatus.DRAFT
    assert draft.invoice_number is None
    assert draft.issue_date == date(2024, 3, 15)
    assert draft.delivery_date == date(2024, 3, 15)
    assert draft.payment_deadline == date(2024, 3, 30)
    assert draft.payment_method == PaymentMethod.BANK_TRANSFER
    assert draft.currency == "HUF"
    assert draft.exchange_rate == Decimal("1")


def test_create_draft_unknown_customer(invoice_service):
    with pytest.raises(NotFoundError):
        invoice_service.create_draft(customer_id=999)


def test_create_draft_rejects_bad_currency(invoice_service, sample_customer):
    with pytest.raises(ValidationError, match="currency"):
        invoice_service.create_draft(customer_id=sample_customer.id, currency="EURO")


def test_add_item_uses_default_vat_rate(draft_invoice):
    assert len(draft_invoice.items) == 1
    item = draft_invoice.items[0]
    assert item.vat == Rated(Decimal("27"))
    assert item.net_amount == Decimal("150000.00")
    assert draft_invoice.vat_amount == Decimal("40500.00")
    assert draft_invoice.gross_amount == Decimal("190500.00")


def test_add_exempt_item(invoice_service, draft_invoice):
    invoice = invoice_service.add_item(
        draft_invoice.id,
        description="Képzés",
        quantity=Decimal("1"),
        unit_price=Decimal("20000"),
        vat_exemption_reason="Tárgyi adómentes oktatás",
        vat_exemption_code="TAM",
    )

    assert invoice.items[1].vat == Exempt(reason="Tárgyi adómentes oktatás", code="TAM")
    assert invoice.net_amount == Decimal("170000.00")
    assert invoice.vat_amount == Decimal("40500.00")


@pytest.mark.parametrize(
    "quantity,unit_price,discount,description",
    [
        (Decimal("-1"), Decimal("100"), Decimal("0"), "Munka"),
        (Decimal("1"), Decimal("-100"), Decimal("0"), "Munka"),
        (Decimal("1"), Decimal("100"), Decimal("120"), "Munka"),
        (Decimal("1"), Decimal("100"), Decimal("0"), "   "),
    ],
)
def test_add_item_validation(invoice_service, draft_invoice, quantity, unit_price, discount, description):
    with pytest.raises(ValidationError):
        invoice_service.add_item(
            draft_invoice.id,
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            discount_percent=discount,
        )


def test_remove_and_move_items(invoice_service, draft_invoice):
    for name in ("Második", "Harmadik"):
        invoice_service.add_item(draft_invoice.id, description=name, quantity=Decimal("1"), unit_price=Decimal("100"))

    moved = invoice_service.move_item(draft_invoice.id, 3, 1)
    assert [item.description for item in moved.items] == ["Harmadik", "Tanácsadás", "Második"]

    removed = invoice_service.remove_item(draft_invoice.id, 2)
    assert [item.description for item in removed.items] == ["Harmadik", "Második"]
    assert [item.line_number for item in removed.items] == [1, 2]

    with pytest.raises(NotFoundError):
        invoice_service.remove_item(draft_invoice.id, 5)


def test_replace_items(invoice_service, draft_invoice):
    items = [
        invoice_service.build_item("Licenc", Decimal("1"), Decimal("50000")),
        invoice_service.build_item("Támogatás", Decimal("12"), Decimal("5000"), vat=Rated(Decimal("5"))),
    ]

    invoice = invoice_service.replace_items(draft_invoice.id, items)

    assert [item.description for item in invoice.items] == ["Licenc", "Támogatás"]
    assert invoice.net_amount == Decimal("110000.00")
    assert invoice.vat_amount == Decimal("16500.00")

    with pytest.raises(ValidationError):
        invoice_service.build_item("Hibás", Decimal("1"), Decimal("10"), vat=Rated(Decimal("150")))


def test_update_draft(invoice_service, draft_invoice):
    updated = invoice_service.update_draft(draft_invoice.id, currency="eur", exchange_rate=Decimal("395.5"), notes="Megrendelés #12")

    assert updated.currency == "EUR"
    assert updated.exchange_rate == Decimal("395.5")
    assert updated.notes == "Megrendelés #12"

    with pytest.raises(ValidationError, match="status"):
        invoice_service.update_draft(draft_invoice.id, status=InvoiceStatus.PAID)


def test_issue_with_nav_export(invoice_service, draft_invoice, sequencer):
    outcome = invoice_service.issue_invoice(draft_invoice.id)

    assert outcome.success
    invoice = outcome.invoice
    assert invoice.invoice_number == "INV-0001"
    assert invoice.status == InvoiceStatus.ISSUED
    assert invoice.is_sent is False
    assert invoice.billing_backend == "NAV_EXPORT"
    assert invoice.external_id == "INV-0001"
    assert b"<invoiceNumber>INV-0001</invoiceNumber>" in outcome.result.document
    assert sequencer.peek_next() == "INV-0002"


def test_issue_with_online_backend_marks_sent(invoice_service, draft_invoice, fake_backend, online):
    outcome = invoice_service.issue_invoice(draft_invoice.id)

    invoice = invoice_service.get_invoice(draft_invoice.id)
    assert outcome.success
    assert invoice.status == InvoiceStatus.SENT
    assert invoice.is_sent is True
    assert invoice.transaction_id == "EXT-INV-0001"
    assert invoice.external_id == "EXT-INV-0001"
    assert invoice.document_url == "https://example.test/invoice"
    assert invoice.sent_at is not None
    assert len(fake_backend.issued) == 1
    assert fake_backend.issued[0].invoice_number == "INV-0001"


def test_failed_transmission_keeps_number_and_can_be_retried(
    invoice_service, draft_invoice, fake_backend, online, sequencer
):
    fake_backend.results.append(BillingResult.failure("Számlázz.hu error: [57] Hibás adószám"))

    outcome = invoice_service.issue_invoice(draft_invoice.id)

    assert not outcome.success
    assert "Hibás adószám" in outcome.result.message
    stored = invoice_service.get_invoice(draft_invoice.id)
    assert stored.status == InvoiceStatus.ISSUED
    assert stored.invoice_number == "INV-0001"
    assert stored.is_sent is False
    assert [inv.id for inv in invoice_service.list_unsent()] == [draft_invoice.id]

    retry = invoice_service.transmit_invoice(draft_invoice.id)

    assert retry.success
    assert retry.invoice.status == InvoiceStatus.SENT
    assert retry.invoice.invoice_number == "INV-0001"
    assert sequencer.peek_next() == "INV-0002"
    assert invoice_service.list_unsent() == []

    with pytest.raises(ValidationError):
        invoice_service.transmit_invoice(draft_invoice.id)


def test_failed_validation_burns_no_number(invoice_service, sample_customer, company_settings, sequencer):
    empty = invoice_service.create_draft(customer_id=sample_customer.id)
    foreign = invoice_service.create_draft(customer_id=sample_customer.id, currency="EUR")
    invoice_service.add_item(foreign.id, description="Licenc", quantity=Decimal("1"), unit_price=Decimal("100"))

    with pytest.raises(ValidationError, match="no items"):
        invoice_service.issue_invoice(empty.id)
    with pytest.raises(ValidationError, match="exchange rate"):
        invoice_service.issue_invoice(foreign.id)

    assert sequencer.get_counter() is None
    assert invoice_service.get_invoice(empty.id).status == InvoiceStatus.DRAFT

    invoice_service.update_draft(foreign.id, exchange_rate=Decimal("395"))
    assert invoice_service.issue_invoice(foreign.id).invoice.invoice_number == "INV-0001"


@pytest.mark.parametrize(
    "field,problem",
    [
        ("customer", "customer is missing"),
        ("issue_date", "issue date is missing"),
        ("payment_method", "payment method is missing"),
        ("currency", "currency is missing"),
        ("exchange_rate", "exchange rate is missing"),
    ],
)
def test_missing_mandatory_field_burns_no_number(invoice_service, temp_db, draft_invoice, sequencer, field, problem):
    temp_db.save_invoice(replace(draft_invoice, **{field: None}))

    with pytest.raises(ValidationError, match=problem):
        invoice_service.issue_invoice(draft_invoice.id)

    assert sequencer.get_counter() is None
    assert invoice_service.get_invoice(draft_invoice.id).status == InvoiceStatus.DRAFT


def test_missing_seller_data_burns_no_number(invoice_service, sample_customer, sequencer):
    draft = invoice_service.create_draft(customer_id=sample_customer.id)
    invoice_service.add_item(draft.id, description="Tanácsadás", quantity=Decimal("1"), unit_price=Decimal("1000"))

    with pytest.raises(ValidationError, match="seller name; seller tax number"):
        invoice_service.issue_invoice(draft.id)

    assert sequencer.get_counter() is None
    assert invoice_service.get_invoice(draft.id).status == InvoiceStatus.DRAFT


def test_huf_invoice_exchange_rate_is_one(invoice_service, sample_customer, company_settings):
    with pytest.raises(ValidationError, match="HUF invoice must be 1"):
        invoice_service.create_draft(customer_id=sample_customer.id, currency="HUF", exchange_rate=Decimal("395"))

    draft = invoice_service.create_draft(customer_id=sample_customer.id, currency="EUR", exchange_rate=Decimal("395"))
    with pytest.raises(ValidationError, match="HUF invoice must be 1"):
        invoice_service.update_draft(draft.id, currency="HUF", exchange_rate=Decimal("395"))

    switched = invoice_service.update_draft(draft.id, currency="huf")
    assert switched.currency == "HUF"
    assert switched.exchange_rate == Decimal("1")

    huf = invoice_service.create_draft(customer_id=sample_customer.id, exchange_rate=Decimal("1.0"))
    assert huf.exchange_rate == Decimal("1")


def test_issue_only_drafts(invoice_service, draft_invoice):
    invoice_service.issue_invoice(draft_invoice.id)

    with pytest.raises(TransitionError):
        invoice_service.issue_invoice(draft_invoice.id)
    with pytest.raises(ValidationError, match="only DRAFT"):
        invoice_service.add_item(draft_invoice.id, description="Késői", quantity=Decimal("1"), unit_price=Decimal("1"))


def test_mark_as_sent_after_manual_upload(invoice_service, draft_invoice):
    invoice_service.issue_invoice(draft_invoice.id)

    with pytest.raises(ValidationError):
        invoice_service.mark_as_sent(draft_invoice.id, "  ")

    sent = invoice_service.mark_as_sent(draft_invoice.id, "NAV-TX-123")
    assert sent.status == InvoiceStatus.SENT
    assert sent.is_sent is True
    assert sent.transaction_id == "NAV-TX-123"


def test_mark_as_paid(invoice_service, draft_invoice):
    invoice_service.issue_invoice(draft_invoice.id)

    paid = invoice_service.mark_as_paid(draft_invoice.id)
    assert paid.status == InvoiceStatus.PAID
    assert paid.is_paid is True
    assert paid.payment_date == date(2024, 3, 15)

    with pytest.raises(TransitionError):
        invoice_service.mark_as_paid(draft_invoice.id)
    with pytest.raises(TransitionError):
        invoice_service.cancel_invoice(draft_invoice.id)


def test_cancel_draft_does_not_call_backend(invoice_service, draft_invoice, fake_backend):
    cancelled = invoice_service.cancel_invoice(draft_invoice.id, "Téves")

    assert cancelled.status == InvoiceStatus.CANCELLED
    assert cancelled.notes == "Cancelled: Téves"
    assert fake_backend.cancelled == []


def test_cancel_sent_invoice_cancels_on_vendor(invoice_service, draft_invoice, fake_backend, online):
    invoice_service.issue_invoice(draft_invoice.id)

    cancelled = invoice_service.cancel_invoice(draft_invoice.id, "Hibás összeg")

    assert cancelled.status == InvoiceStatus.CANCELLED
    assert fake_backend.cancelled[0][1] == "Hibás összeg"


def test_vendor_refusing_cancel_changes_nothing(invoice_service, draft_invoice, fake_backend, online):
    invoice_service.issue_invoice(draft_invoice.id)
    fake_backend.cancel_result = False

    with pytest.raises(ExternalBackendError):
        invoice_service.cancel_invoice(draft_invoice.id, "Hibás összeg")

    assert invoice_service.get_invoice(draft_invoice.id).status == InvoiceStatus.SENT


def test_cancel_unsent_online_invoice_is_local(invoice_service, draft_invoice, fake_backend, online):
    fake_backend.results.append(BillingResult.failure("timeout"))
    invoice_service.issue_invoice(draft_invoice.id)

    cancelled = invoice_service.cancel_invoice(draft_invoice.id)

    assert cancelled.status == InvoiceStatus.CANCELLED
    assert fake_backend.cancelled == []


def test_delete_only_drafts(invoice_service, draft_invoice, sample_customer):
    other = invoice_service.create_draft(customer_id=sample_customer.id)
    invoice_service.delete_invoice(other.id)
    assert invoice_service.get_invoice(other.id) is None

    invoice_service.issue_invoice(draft_invoice.id)
    with pytest.raises(ValidationError, match="cancel it instead"):
        invoice_service.delete_invoice(draft_invoice.id)


def test_export_xml(invoice_service, draft_invoice):
    with pytest.raises(ValidationError, match="draft"):
        invoice_service.export_xml(draft_invoice.id)

    invoice_service.issue_invoice(draft_invoice.id)
    xml = invoice_service.export_xml(draft_invoice.id)

    assert b"<invoiceNumber>INV-0001</invoiceNumber>" in xml
    assert xml == invoice_service.export_xml(draft_invoice.id)


def test_download_document_from_issuing_backend(invoice_service, draft_invoice, fake_backend, online):
    with pytest.raises(ValidationError):
        invoice_service.download_document(draft_invoice.id)

    invoice_service.issue_invoice(draft_invoice.id)

    assert invoice_service.download_document(draft_invoice.id) == b"%PDF-fake"


def test_overdue_is_derived(invoice_service, sample_customer, company_settings):
    late = invoice_service.create_draft(customer_id=sample_customer.id, payment_deadline=date(2024, 3, 1))
    invoice_service.add_item(late.id, description="Munka", quantity=Decimal("1"), unit_price=Decimal("1000"))
    invoice_service.issue_invoice(late.id)

    stored = invoice_service.get_invoice(late.id)
    assert stored.status == InvoiceStatus.ISSUED
    assert invoice_service.display_status(stored) == InvoiceStatus.OVERDUE
    assert [inv.id for inv in invoice_service.list_overdue()] == [late.id]
    assert [inv.id for inv in invoice_service.list_invoices(status=InvoiceStatus.OVERDUE)] == [late.id]
    assert invoice_service.list_overdue(today=date(2024, 3, 1)) == []

    invoice_service.mark_as_paid(late.id)
    assert invoice_service.list_overdue() == []


def test_statistics(invoice_service, draft_invoice, sample_customer):
    invoice_service.issue_invoice(draft_invoice.id)

    invoice_service.create_draft(customer_id=sample_customer.id)

    paid = invoice_service.create_draft(customer_id=sample_customer.id)
    invoice_service.add_item(paid.id, description="Munka", quantity=Decimal("2"), unit_price=Decimal("1000"))
    invoice_service.issue_invoice(paid.id)
    invoice_service.mark_as_paid(paid.id)

    stats = invoice_service.get_statistics()

    assert stats.total_count == 3
    assert stats.draft_count == 1
    assert stats.issued_count == 1
    assert stats.paid_count == 1
    assert stats.overdue_count == 0
    assert stats.total_net_amount == Decimal("152000.00")
    assert stats.total_gross_amount == Decimal("193040.00")
    assert stats.unpaid_amount == Decimal("190500.00")
