"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, including the translation between
the two nullable VAT columns and the ``Rated | Exempt`` VAT treatment.
"""

from decimal import Decimal
from typing import Optional

from szamla.domain import entities as domain
from szamla.domain.amounts import Exempt, vat_treatment
from szamla.database.models import (
    Customer as ORMCustomer,
    CompanySettings as ORMCompanySettings,
    SequenceCounter as ORMSequenceCounter,
    Invoice as ORMInvoice,
    InvoiceItem as ORMInvoiceItem,
)


def customer_to_domain(orm_customer: ORMCustomer) -> domain.Customer:
    """Convert SQLAlchemy Customer model to domain Customer entity."""
    return domain.Customer(
        id=orm_customer.id,
        name=orm_customer.name,
        tax_number=orm_customer.tax_number,
        eu_tax_number=orm_customer.eu_tax_number,
        zip_code=orm_customer.zip_code,
        city=orm_customer.city,
        address=orm_customer.address,
        country=orm_customer.country,
        email=orm_customer.email,
        phone=orm_customer.phone,
        payment_deadline_days=orm_customer.payment_deadline_days,
        is_active=orm_customer.is_active,
        is_company=orm_customer.is_company,
        created_at=orm_customer.created_at,
    )


def company_settings_to_domain(orm_settings: ORMCompanySettings) -> domain.CompanySettings:
    """Convert SQLAlchemy CompanySettings model to domain CompanySettings entity."""
    return domain.CompanySettings(
        company_name=orm_settings.company_name,
        address=orm_settings.address,
        zip_code=orm_settings.zip_code,
        city=orm_settings.city,
        country_code=orm_settings.country_code,
        tax_number=orm_settings.tax_number,
        eu_tax_number=orm_settings.eu_tax_number,
        bank_name=orm_settings.bank_name,
        bank_account=orm_settings.bank_account,
        email=orm_settings.email,
        phone=orm_settings.phone,
        invoicing_backend=orm_settings.invoicing_backend,
        szamlazz_agent_key=orm_settings.szamlazz_agent_key,
        billingo_api_key=orm_settings.billingo_api_key,
        billingo_block_id=orm_settings.billingo_block_id,
        default_currency=orm_settings.default_currency,
        default_payment_deadline_days=orm_settings.default_payment_deadline_days,
        default_vat_rate=Decimal(orm_settings.default_vat_rate),
        invoice_footer_text=orm_settings.invoice_footer_text,
        updated_at=orm_settings.updated_at,
    )


def apply_company_settings(orm_settings: ORMCompanySettings, settings: domain.CompanySettings) -> None:
    """Copy domain CompanySettings fields onto the ORM row."""
    orm_settings.company_name = settings.company_name
    orm_settings.address = settings.address
    orm_settings.zip_code = settings.zip_code
    orm_settings.city = settings.city
    orm_settings.country_code = settings.country_code
    orm_settings.tax_number = settings.tax_number
    orm_settings.eu_tax_number = settings.eu_tax_number
    orm_settings.bank_name = settings.bank_name
    orm_settings.bank_account = settings.bank_account
    orm_settings.email = settings.email
    orm_settings.phone = settings.phone
    orm_settings.invoicing_backend = settings.invoicing_backend
    orm_settings.szamlazz_agent_key = settings.szamlazz_agent_key
    orm_settings.billingo_api_key = settings.billingo_api_key
    orm_settings.billingo_block_id = settings.billingo_block_id
    orm_settings.default_currency = settings.default_currency
    orm_settings.default_payment_deadline_days = settings.default_payment_deadline_days
    orm_settings.default_vat_rate = settings.default_vat_rate
    orm_settings.invoice_footer_text = settings.invoice_footer_text


def sequence_counter_to_domain(orm_counter: ORMSequenceCounter) -> domain.SequenceCounter:
    """Convert SQLAlchemy SequenceCounter model to domain SequenceCounter entity."""
    return domain.SequenceCounter(
        sequence_key=orm_counter.sequence_key,
        prefix=orm_counter.prefix,
        next_number=orm_counter.next_number,
    )


def invoice_item_to_domain(orm_item: ORMInvoiceItem) -> domain.InvoiceItem:
    """Convert SQLAlchemy InvoiceItem model to domain InvoiceItem entity."""
    return domain.InvoiceItem(
        id=orm_item.id,
        line_number=orm_item.line_number,
        description=orm_item.description,
        unit_of_measure=orm_item.unit_of_measure,
        quantity=_decimal(orm_item.quantity),
        unit_price=_decimal(orm_item.unit_price),
        vat=vat_treatment(
            _decimal(orm_item.vat_rate),
            orm_item.vat_exemption_reason,
            orm_item.vat_exemption_code,
        ),
        discount_percent=_decimal(orm_item.discount_percent) or Decimal("0"),
        notes=orm_item.notes,
    )


def apply_invoice_item(orm_item: ORMInvoiceItem, item: domain.InvoiceItem) -> None:
    """Copy a domain InvoiceItem onto the ORM row, including computed amounts."""
    orm_item.line_number = item.line_number
    orm_item.description = item.description
    orm_item.unit_of_measure = item.unit_of_measure
    orm_item.quantity = item.quantity
    orm_item.unit_price = item.unit_price
    if isinstance(item.vat, Exempt):
        orm_item.vat_rate = None
        orm_item.vat_exemption_reason = item.vat.reason
        orm_item.vat_exemption_code = item.vat.code
    else:
        orm_item.vat_rate = item.vat.rate
        orm_item.vat_exemption_reason = None
        orm_item.vat_exemption_code = None
    orm_item.discount_percent = item.discount_percent
    orm_item.discount_amount = item.discount_amount
    orm_item.net_amount = item.net_amount
    orm_item.vat_amount = item.vat_amount
    orm_item.gross_amount = item.gross_amount
    orm_item.notes = item.notes


def invoice_to_domain(orm_invoice: ORMInvoice) -> domain.Invoice:
    """Convert SQLAlchemy Invoice model (with items) to domain Invoice entity."""
    return domain.Invoice(
        id=orm_invoice.id,
        invoice_number=orm_invoice.invoice_number,
        customer=customer_to_domain(orm_invoice.customer) if orm_invoice.customer is not None else None,
        issue_date=orm_invoice.issue_date,
        delivery_date=orm_invoice.delivery_date,
        payment_deadline=orm_invoice.payment_deadline,
        payment_date=orm_invoice.payment_date,
        payment_method=domain.PaymentMethod(orm_invoice.payment_method) if orm_invoice.payment_method else None,
        currency=orm_invoice.currency,
        exchange_rate=_decimal(orm_invoice.exchange_rate),
        items=tuple(invoice_item_to_domain(item) for item in orm_invoice.items),
        status=domain.InvoiceStatus(orm_invoice.status),
        is_paid=orm_invoice.is_paid,
        is_sent=orm_invoice.is_sent,
        transaction_id=orm_invoice.transaction_id,
        sent_at=orm_invoice.sent_at,
        external_id=orm_invoice.external_id,
        document_url=orm_invoice.document_url,
        billing_backend=orm_invoice.billing_backend,
        is_reverse_charge=orm_invoice.is_reverse_charge,
        is_cash_accounting=orm_invoice.is_cash_accounting,
        notes=orm_invoice.notes,
        footer_text=orm_invoice.footer_text,
        created_at=orm_invoice.created_at,
        updated_at=orm_invoice.updated_at,
    )


def apply_invoice(orm_invoice: ORMInvoice, invoice: domain.Invoice) -> None:
    """Copy domain Invoice header fields onto the ORM row (items excluded)."""
    orm_invoice.invoice_number = invoice.invoice_number
    orm_invoice.customer_id = invoice.customer_id
    orm_invoice.issue_date = invoice.issue_date
    orm_invoice.delivery_date = invoice.delivery_date
    orm_invoice.payment_deadline = invoice.payment_deadline
    orm_invoice.payment_date = invoice.payment_date
    orm_invoice.payment_method = invoice.payment_method.value if invoice.payment_method else None
    orm_invoice.currency = invoice.currency
    orm_invoice.exchange_rate = invoice.exchange_rate
    orm_invoice.net_amount = invoice.net_amount
    orm_invoice.vat_amount = invoice.vat_amount
    orm_invoice.gross_amount = invoice.gross_amount
    orm_invoice.status = invoice.status.value
    orm_invoice.is_paid = invoice.is_paid
    orm_invoice.is_sent = invoice.is_sent
    orm_invoice.transaction_id = invoice.transaction_id
    orm_invoice.sent_at = invoice.sent_at
    orm_invoice.external_id = invoice.external_id
    orm_invoice.document_url = invoice.document_url
    orm_invoice.billing_backend = invoice.billing_backend
    orm_invoice.is_reverse_charge = invoice.is_reverse_charge
    orm_invoice.is_cash_accounting = invoice.is_cash_accounting
    orm_invoice.notes = invoice.notes
    orm_invoice.footer_text = invoice.footer_text


def _decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
