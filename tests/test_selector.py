"""Tests for billing backend selection."""

import httpx
import pytest

from conftest import FakeBackend
from szamla.billing.base import BackendType
from szamla.billing.billingo import BillingoBackend
from szamla.billing.http import HttpxClient, timeout_from_env
from szamla.billing.nav_export import NavExportBackend
from szamla.billing.selector import BillingBackendSelector, create_billing_selector
from szamla.billing.szamlazz import SzamlazzBackend
from szamla.domain.entities import CompanySettings, Invoice


def _selector(code, *backends):
    nav = FakeBackend(BackendType.NAV_EXPORT, transmits=False)
    return BillingBackendSelector([nav, *backends], lambda: CompanySettings(invoicing_backend=code)), nav


@pytest.mark.parametrize("code", [None, "", "UNKNOWN", "nav_export"])
def test_missing_or_unknown_code_selects_nav_export(code):
    selector, nav = _selector(code, FakeBackend(BackendType.BILLINGO))

    assert selector.current() is nav
    assert selector.current_type() == BackendType.NAV_EXPORT


def test_configured_backend_is_selected():
    billingo = FakeBackend(BackendType.BILLINGO)
    selector, _ = _selector("billingo", billingo)

    assert selector.current() is billingo


def test_unregistered_backend_falls_back_to_nav_export():
    selector, nav = _selector("SZAMLAZZ_HU")

    assert selector.current() is nav


def test_issued_invoice_keeps_its_backend():
    billingo = FakeBackend(BackendType.BILLINGO)
    szamlazz = FakeBackend(BackendType.SZAMLAZZ_HU)
    selector, _ = _selector("SZAMLAZZ_HU", billingo, szamlazz)
    invoice = Invoice(customer=None, issue_date=None, delivery_date=None, payment_deadline=None, billing_backend="BILLINGO")

    assert selector.for_invoice(invoice) is billingo
    assert selector.for_invoice(Invoice(customer=None, issue_date=None, delivery_date=None, payment_deadline=None)) is szamlazz


def test_nav_export_is_required():
    with pytest.raises(ValueError):
        BillingBackendSelector([FakeBackend(BackendType.BILLINGO)], CompanySettings)


def test_create_billing_selector_wires_all_backends(temp_db, settings_service):
    client = HttpxClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    selector = create_billing_selector(temp_db, http_client=client)

    assert isinstance(selector.current(), NavExportBackend)
    assert isinstance(selector.for_type(BackendType.SZAMLAZZ_HU), SzamlazzBackend)
    assert isinstance(selector.for_type(BackendType.BILLINGO), BillingoBackend)

    settings_service.update_settings(invoicing_backend="billingo", billingo_api_key="k")
    assert isinstance(selector.current(), BillingoBackend)
    assert selector.current().is_available()


def test_http_timeout_from_environment(monkeypatch):
    monkeypatch.setenv("SZAMLA_HTTP_TIMEOUT", "5")
    assert timeout_from_env() == 5.0

    monkeypatch.setenv("SZAMLA_HTTP_TIMEOUT", "soon")
    assert timeout_from_env() == 30.0

    monkeypatch.delenv("SZAMLA_HTTP_TIMEOUT")
    assert timeout_from_env() == 30.0
