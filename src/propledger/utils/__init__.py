"""Utility functions for propledger."""

from propledger.utils.date_parser import parse_date, get_date_range, in_range
from propledger.utils.amount_parser import parse_amount, coerce_amount
from propledger.utils.contact_resolver import resolve_contact

__all__ = [
    "parse_date",
    "get_date_range",
    "in_range",
    "parse_amount",
    "coerce_amount",
    "resolve_contact",
]
