"""Billing backends: local NAV XML export and online invoicing vendors."""

from szamla.billing.base import BackendType, BillingBackend, BillingResult
from szamla.billing.selector import BillingBackendSelector, create_billing_selector

__all__ = [
    "BackendType",
    "BillingBackend",
    "BillingResult",
    "BillingBackendSelector",
    "create_billing_selector",
]
