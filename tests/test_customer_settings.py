"""Tests for customer and company settings services."""

from decimal import Decimal

import pytest

from szamla.billing.base import BackendType
from szamla.domain.entities import CompanySettings
from szamla.domain.errors import ConflictError, NotFoundError, ValidationError
from szamla.utils.customer_resolver import resolve_customer


def test_create_customer(customer_service):
    customer_id = customer_service.create_customer(name="  Példa Kft.  ", city="Szeged")

    customer = customer_service.get_customer(customer_id)
    assert customer.name == "Példa Kft."
    assert customer.country == "HU"
    assert customer.payment_deadline_days == 8
    assert customer.is_company is True


def test_create_customer_validation(customer_service, sample_customer):
    with pytest.raises(ValidationError):
        customer_service.create_customer(name="   ")
    with pytest.raises(ValidationError):
        customer_service.create_customer(name="Új Kft.", payment_deadline_days=-1)
    with pytest.raises(ConflictError, match="already exists"):
        customer_service.create_customer(name="Példa Kft.")


def test_list_customers_sorted_by_name(customer_service):
    customer_service.create_customer(name="Zeta Bt.")
    customer_service.create_customer(name="Alfa Kft.")

    assert [c.name for c in customer_service.list_customers()] == ["Alfa Kft.", "Zeta Bt."]


def test_resolve_customer_by_name_or_id(customer_service, sample_customer):
    assert resolve_customer(customer_service, "Példa Kft.") == sample_customer.id
    assert resolve_customer(customer_service, str(sample_customer.id)) == sample_customer.id

    with pytest.raises(NotFoundError):
        resolve_customer(customer_service, "Nincs Kft.")
    with pytest.raises(NotFoundError):
        resolve_customer(customer_service, 999)


def test_update_settings(settings_service):
    settings = settings_service.update_settings(
        company_name="Minta Kft.",
        invoicing_backend="billingo",
        default_vat_rate="18",
        default_currency="eur",
    )

    assert settings.company_name == "Minta Kft."
    assert settings.invoicing_backend == "BILLINGO"
    assert settings.default_vat_rate == Decimal("18")
    assert settings.default_currency == "EUR"
    assert settings.updated_at is not None
    assert settings_service.backend_type() == BackendType.BILLINGO


@pytest.mark.parametrize(
    "changes",
    [
        {"invoicing_backend": "POSTAGALAMB"},
        {"default_vat_rate": "sok"},
        {"default_vat_rate": "101"},
        {"default_payment_deadline_days": -2},
        {"default_currency": "FORINT"},
        {"updated_at": None},
        {"nonexistent": "x"},
    ],
)
def test_update_settings_rejects_invalid_values(settings_service, changes):
    with pytest.raises(ValidationError):
        settings_service.update_settings(**changes)


def test_unknown_stored_backend_falls_back_to_nav_export(temp_db, settings_service):
    temp_db.save_company_settings(CompanySettings(invoicing_backend="LEGACY"))

    assert settings_service.backend_type() == BackendType.NAV_EXPORT
