"""Utility functions for szamla."""

from szamla.utils.date_parser import parse_date
from szamla.utils.amount_parser import parse_amount
from szamla.utils.customer_resolver import resolve_customer

__all__ = ["parse_date", "parse_amount", "resolve_customer"]
