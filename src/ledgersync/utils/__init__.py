"""Utility functions for ledgersync."""

from ledgersync.utils.date_parser import parse_date, coerce_date
from ledgersync.utils.amount_parser import parse_amount
from ledgersync.utils.identifiers import normalize_description, generate_transaction_identifier

__all__ = [
    "parse_date",
    "coerce_date",
    "parse_amount",
    "normalize_description",
    "generate_transaction_identifier",
]
