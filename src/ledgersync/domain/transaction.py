"""Transaction domain service."""

import re
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from ledgersync.database.base import Database
from ledgersync.domain.entities import CategorySource, Transaction, TransactionType
from ledgersync.domain.errors import ConflictError, NotFoundError, ValidationError, transaction_not_found
from ledgersync.utils.identifiers import normalize_description

logger = structlog.get_logger(__name__)

MANUAL_VENDOR_PREFIX = "manual_"

_LABEL_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def manual_vendor(label: str) -> str:
    """Vendor id for manually entered transactions under a label (e.g. "cash")."""
    label = (label or "").strip()
    if not _LABEL_PATTERN.match(label):
        raise ValidationError(
            f"Invalid manual label '{label}': use letters, digits, '-' or '_'"
        )
    return f"{MANUAL_VENDOR_PREFIX}{label}"


class TransactionService:
    """Service for browsing, entering and recategorising transactions."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_manual_transaction(
        self,
        label: str,
        txn_date: date,
        amount: Decimal,
        description: str,
        category: Optional[str] = None,
        account_number: Optional[str] = None,
        memo: Optional[str] = None,
    ) -> str:
        """Record a transaction no collaborator will ever deliver (cash, transfers, ...).

        Manual rows are exempt from business-key deduplication.

        Args:
            label: Manual source label; the vendor becomes ``manual_<label>``
            txn_date: Transaction date
            amount: Signed amount (negative for expenses)
            description: Description
            category: Optional category
            account_number: Optional account number
            memo: Optional memo

        Returns:
            Identifier of the new transaction

        Raises:
            ValidationError: If the label or description is invalid
        """
        vendor = manual_vendor(label)
        description = (description or "").strip()
        if not description:
            raise ValidationError("Description cannot be empty")

        identifier = uuid.uuid4().hex
        category = category.strip() if category and category.strip() else None
        inserted = self.db.insert_transaction(
            identifier=identifier,
            vendor=vendor,
            date=txn_date,
            name=description,
            price=amount,
            category=category,
            category_source=None,
            transaction_type=TransactionType.BANK.value,
            processed_date=txn_date,
            original_amount=amount,
            memo=memo,
            status="completed",
            account_number=account_number,
        )
        if not inserted:
            raise ConflictError(f"Transaction '{identifier}' ({vendor}) already exists")
        return identifier

    def get_transaction(self, identifier: str, vendor: str) -> Optional[Transaction]:
        """Get transaction by (identifier, vendor)."""
        return self.db.get_transaction(identifier, vendor)

    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        vendor: Optional[str] = None,
        account_number: Optional[str] = None,
    ) -> list[Transaction]:
        """List transactions, newest first."""
        return self.db.list_transactions(
            start_date=start_date,
            end_date=end_date,
            vendor=vendor,
            account_number=account_number,
        )

    def update_category(self, identifier: str, vendor: str, category: str) -> None:
        """Set a transaction's category by hand.

        Also records an override so future batches resolve the same
        description to this category from the cache.

        Raises:
            NotFoundError: If the transaction doesn't exist
            ValidationError: If the category is empty
        """
        category = (category or "").strip()
        if not category:
            raise ValidationError("Category cannot be empty")

        txn = self.db.get_transaction(identifier, vendor)
        if txn is None:
            raise NotFoundError(transaction_not_found(identifier, vendor))

        self.db.set_category_override(normalize_description(txn.name), category)
        self.db.update_transaction_fields(
            identifier,
            vendor,
            category=category,
            category_source=CategorySource.CACHE.value,
            rule_matched=None,
        )
        logger.info("transaction_recategorized", vendor=vendor, identifier=identifier, category=category)

    def delete_transaction(self, identifier: str, vendor: str) -> None:
        """Delete a transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        if self.db.get_transaction(identifier, vendor) is None:
            raise NotFoundError(transaction_not_found(identifier, vendor))
        self.db.delete_transactions([(identifier, vendor)])
