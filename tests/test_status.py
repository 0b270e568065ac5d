"""Tests for invoice entities and status transitions."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from szamla.domain.amounts import Rated
from szamla.domain.entities import Customer, Invoice, InvoiceItem, InvoiceStatus, SequenceCounter
from szamla.domain.errors import TransitionError, ValidationError
from szamla.domain.status import (
    can_transition,
    display_status,
    ensure_deletable,
    ensure_editable,
    transition,
    validate_for_issue,
)


def _invoice(**overrides) -> Invoice:
    invoice = Invoice(
        customer=Customer(id=1, name="Példa Kft."),
        issue_date=date(2024, 3, 1),
        delivery_date=date(2024, 3, 1),
        payment_deadline=date(2024, 3, 9),
        invoice_number="INV-0001",
        items=(InvoiceItem(description="Munka", quantity=Decimal("1"), unit_price=Decimal("1000")),),
    )
    return replace(invoice, **overrides)


def test_invoice_numbers_lines_and_totals():
    invoice = _invoice(
        items=(
            InvoiceItem(description="A", quantity=Decimal("2"), unit_price=Decimal("1000"), line_number=7),
            InvoiceItem(description="B", quantity=Decimal("1"), unit_price=Decimal("100"), vat=Rated(Decimal("5"))),
        )
    )

    assert [item.line_number for item in invoice.items] == [1, 2]
    assert invoice.net_amount == Decimal("2100.00")
    assert invoice.vat_amount == Decimal("545.00")
    assert invoice.gross_amount == Decimal("2645.00")


def test_replace_recomputes_totals():
    invoice = _invoice()
    changed = replace(invoice, items=invoice.items + invoice.items)

    assert changed.net_amount == Decimal("2000.00")
    assert invoice.net_amount == Decimal("1000.00")


def test_sequence_counter_preview():
    assert SequenceCounter(sequence_key="invoice", prefix="INV", next_number=7).preview() == "INV-0007"
    assert SequenceCounter(sequence_key="invoice", prefix="SZ", next_number=12345).preview() == "SZ-12345"


def test_draft_can_be_cancelled():
    cancelled = transition(_invoice(invoice_number=None), InvoiceStatus.CANCELLED)

    assert cancelled.status == InvoiceStatus.CANCELLED


@pytest.mark.parametrize("target", list(InvoiceStatus))
def test_paid_cannot_change(target):
    with pytest.raises(TransitionError):
        transition(_invoice(status=InvoiceStatus.PAID), target)


def test_sent_cannot_go_back_to_issued():
    with pytest.raises(TransitionError):
        transition(_invoice(status=InvoiceStatus.SENT), InvoiceStatus.ISSUED)


def test_overdue_is_never_a_transition_target():
    assert not can_transition(InvoiceStatus.ISSUED, InvoiceStatus.OVERDUE)
    with pytest.raises(TransitionError):
        transition(_invoice(status=InvoiceStatus.ISSUED), InvoiceStatus.OVERDUE)


def test_allowed_forward_transitions():
    assert can_transition(InvoiceStatus.ISSUED, InvoiceStatus.SENT)
    assert can_transition(InvoiceStatus.ISSUED, InvoiceStatus.PAID)
    assert can_transition(InvoiceStatus.SENT, InvoiceStatus.PAID)
    assert not can_transition(InvoiceStatus.CANCELLED, InvoiceStatus.DRAFT)


def test_issue_requirements_all_reported():
    invoice = Invoice(
        customer=None,
        issue_date=None,
        delivery_date=None,
        payment_deadline=None,
        payment_method=None,
        currency=None,
        exchange_rate=None,
    )

    problems = validate_for_issue(invoice)

    assert problems == [
        "invoice number is missing",
        "customer is missing",
        "issue date is missing",
        "delivery date is missing",
        "payment deadline is missing",
        "payment method is missing",
        "currency is missing",
        "exchange rate is missing",
        "invoice has no items",
    ]


def test_issue_requires_positive_net_amount():
    invoice = _invoice(items=(InvoiceItem(description="Ingyen", quantity=Decimal("1"), unit_price=Decimal("0")),))

    assert validate_for_issue(invoice) == ["net amount must be greater than zero"]


def test_number_check_can_be_skipped():
    assert validate_for_issue(_invoice(invoice_number=None), require_number=False) == []


def test_issuing_incomplete_draft_raises_validation_error():
    with pytest.raises(ValidationError, match="exchange rate is missing"):
        transition(_invoice(exchange_rate=None), InvoiceStatus.ISSUED)


def test_display_status_marks_overdue():
    issued = _invoice(status=InvoiceStatus.ISSUED)

    assert display_status(issued, date(2024, 3, 9)) == InvoiceStatus.ISSUED
    assert display_status(issued, date(2024, 3, 10)) == InvoiceStatus.OVERDUE
    assert display_status(replace(issued, is_paid=True), date(2024, 4, 1)) == InvoiceStatus.ISSUED
    assert display_status(_invoice(), date(2024, 4, 1)) == InvoiceStatus.DRAFT


def test_only_drafts_are_editable_and_deletable():
    ensure_editable(_invoice())
    ensure_deletable(_invoice())

    with pytest.raises(ValidationError, match="only DRAFT"):
        ensure_editable(_invoice(status=InvoiceStatus.ISSUED), "add items to")
    with pytest.raises(ValidationError, match="cancel it instead"):
        ensure_deletable(_invoice(status=InvoiceStatus.SENT))
