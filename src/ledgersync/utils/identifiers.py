"""Description normalisation and transaction identifier synthesis."""

import hashlib
from datetime import date
from decimal import Decimal
from typing import Optional


def normalize_description(description: Optional[str]) -> str:
    """Normalise a description for in-memory matching (category cache, duplicate sweep).

    Database lookups do not use this; they apply ``LOWER(TRIM(...))`` to both
    sides of the comparison, since SQLite only lowercases ASCII letters.
    """
    return (description or "").strip().lower()


def generate_transaction_identifier(
    vendor: str,
    account_number: Optional[str],
    txn_date: date,
    processed_date: Optional[date],
    description: Optional[str],
    amount: Decimal,
    source_identifier: Optional[str] = None,
) -> str:
    """Generate a stable identifier for a transaction the vendor did not label.

    Args:
        vendor: Vendor id
        account_number: Account or card number, if known
        txn_date: Transaction date
        processed_date: Billing date reported by the vendor, if any
        description: Raw description (normalised before hashing)
        amount: Signed amount
        source_identifier: Vendor-side identifier, if any

    Returns:
        40-character hex digest
    """
    parts = [
        source_identifier or "",
        vendor or "",
        account_number or "",
        txn_date.isoformat(),
        processed_date.isoformat() if processed_date else "",
        " ".join(normalize_description(description).split()),
        f"{Decimal(amount):.2f}",
    ]
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
    return digest[:40]
