"""Exactly-once transaction persistence and the offline duplicate sweep."""

from collections import defaultdict
from decimal import Decimal
from typing import Optional

import structlog

from ledgersync.database.base import Database
from ledgersync.domain.billing_cycle import DEFAULT_BILLING_CYCLE_START_DAY, resolve_processed_date
from ledgersync.domain.categorization import CategoryResolver, should_replace_category
from ledgersync.domain.entities import (
    CategoryResolution,
    DuplicatePair,
    ScrapedTransaction,
    Transaction,
    TransactionType,
    UpsertOutcome,
    UpsertResult,
)
from ledgersync.utils.identifiers import generate_transaction_identifier, normalize_description

logger = structlog.get_logger(__name__)

# Timezone shifts move a transaction by at most one calendar day
SWEEP_WINDOW_DAYS = 1

# An installment is the same purchase as a full-price row this many days away
INSTALLMENT_TOTAL_WINDOW_DAYS = 1


class TransactionUpserter:
    """Persists collected transactions so each one is stored exactly once."""

    def __init__(
        self,
        db: Database,
        resolver: CategoryResolver,
        billing_cycle_start_day: int = DEFAULT_BILLING_CYCLE_START_DAY,
        update_category_on_rescrape: bool = False,
        use_source_categories: bool = True,
    ):
        """Initialize upserter.

        Args:
            db: Database instance
            resolver: Category resolver for the current batch
            billing_cycle_start_day: Statement cycle start day (1-31)
            update_category_on_rescrape: Allow higher-ranked categories to replace stored ones
            use_source_categories: Fall back to the collaborator's category
        """
        self.db = db
        self.resolver = resolver
        self.billing_cycle_start_day = billing_cycle_start_day
        self.update_category_on_rescrape = update_category_on_rescrape
        self.use_source_categories = use_source_categories

    def upsert(
        self,
        vendor: str,
        account_number: Optional[str],
        txn: ScrapedTransaction,
        transaction_type: TransactionType,
    ) -> UpsertResult:
        """Insert a collected transaction, or recognise it as already stored.

        Checks run in order: primary key (identifier, vendor), then the
        business key (vendor, date, normalised name, abs(amount), account). An
        installment row is also a duplicate when the full purchase was already
        stored as a single row within a day of it.

        Returns:
            UpsertResult with the outcome and the category now stored
        """
        amount = txn.signed_amount
        resolution = self.resolver.resolve(
            txn.description, txn.category if self.use_source_categories else None
        )
        identifier = txn.identifier or generate_transaction_identifier(
            vendor, account_number, txn.date, txn.processed_date, txn.description, amount
        )

        existing = self.db.get_transaction(identifier, vendor)
        if existing is None:
            existing = self.db.find_transaction_by_business_key(
                vendor, txn.date, txn.description, abs(amount), account_number
            )
        if existing is not None:
            return self._update_existing(existing, txn, resolution)

        total_row = self._find_installment_total(vendor, txn)
        if total_row is not None:
            logger.info(
                "installment_matches_total_transaction",
                vendor=vendor,
                identifier=identifier,
                total_identifier=total_row.identifier,
            )
            return UpsertResult(
                UpsertOutcome.DUPLICATED, total_row.identifier, total_row.category, total_row.category_source
            )

        processed_date = resolve_processed_date(
            txn.date, txn.processed_date, transaction_type, self.billing_cycle_start_day
        )
        inserted = self.db.insert_transaction(
            identifier=identifier,
            vendor=vendor,
            date=txn.date,
            name=txn.description,
            price=amount,
            category=resolution.category,
            category_source=resolution.source.value if resolution.source else None,
            rule_matched=resolution.rule_matched,
            type=txn.type,
            transaction_type=transaction_type.value,
            processed_date=processed_date,
            original_amount=txn.original_amount,
            original_currency=txn.original_currency,
            charged_currency=txn.charged_currency,
            memo=txn.memo,
            status=txn.status,
            installments_number=txn.installments_number,
            installments_total=txn.installments_total,
            account_number=account_number,
        )
        if not inserted:
            logger.debug("transaction_insert_ignored", vendor=vendor, identifier=identifier)
            return UpsertResult(UpsertOutcome.DUPLICATED, identifier, resolution.category, resolution.source)
        return UpsertResult(UpsertOutcome.INSERTED, identifier, resolution.category, resolution.source)

    def _find_installment_total(self, vendor: str, txn: ScrapedTransaction) -> Optional[Transaction]:
        if txn.installments_total is None or txn.installments_total <= 1:
            return None
        total = txn.original_amount or txn.charged_amount
        if not total:
            return None
        return self.db.find_installment_total_match(
            vendor, txn.date, txn.description, abs(total), window_days=INSTALLMENT_TOTAL_WINDOW_DAYS
        )

    def _update_existing(
        self, existing: Transaction, txn: ScrapedTransaction, resolution: CategoryResolution
    ) -> UpsertResult:
        changes = {}
        category, source = existing.category, existing.category_source

        if should_replace_category(
            self.update_category_on_rescrape, existing.category, existing.category_source, resolution
        ):
            category, source = resolution.category, resolution.source
            changes["category"] = category
            changes["category_source"] = source.value if source else None
            changes["rule_matched"] = resolution.rule_matched

        # Installment fields are backfilled, never overwritten
        if existing.installments_number is None and txn.installments_number is not None:
            changes["installments_number"] = txn.installments_number
        if existing.installments_total is None and txn.installments_total is not None:
            changes["installments_total"] = txn.installments_total

        if not changes:
            return UpsertResult(UpsertOutcome.DUPLICATED, existing.identifier, category, source)

        self.db.update_transaction_fields(existing.identifier, existing.vendor, **changes)
        logger.debug(
            "transaction_updated",
            vendor=existing.vendor,
            identifier=existing.identifier,
            fields=sorted(changes),
        )
        return UpsertResult(UpsertOutcome.UPDATED, existing.identifier, category, source)


def _retained(first: Transaction, second: Transaction) -> Transaction:
    """Pick the row to keep out of two duplicates.

    A row with a processed date beats one without, a more recent processed
    date beats an older one, and otherwise the lower identifier is kept.
    """
    if (first.processed_date is None) != (second.processed_date is None):
        return first if first.processed_date is not None else second
    if first.processed_date != second.processed_date:
        return first if first.processed_date > second.processed_date else second
    return first if first.identifier <= second.identifier else second


class DuplicateSweep:
    """Offline cleanup of duplicates whose dates differ by a timezone shift."""

    def __init__(self, db: Database):
        """Initialize duplicate sweep.

        Args:
            db: Database instance
        """
        self.db = db

    def find_duplicates(self) -> list[DuplicatePair]:
        """Find pairs equal on the business key except for a date at most one day apart.

        Manually entered transactions are never considered.
        """
        groups: dict[tuple[str, str, Decimal, str], list[Transaction]] = defaultdict(list)
        for txn in self.db.list_transactions(include_manual=False):
            key = (txn.vendor, normalize_description(txn.name), abs(txn.price), txn.account_number or "")
            groups[key].append(txn)

        pairs = []
        for rows in groups.values():
            if len(rows) < 2:
                continue
            rows.sort(key=lambda t: (t.date, t.identifier))
            for i, first in enumerate(rows):
                for second in rows[i + 1:]:
                    if (second.date - first.date).days > SWEEP_WINDOW_DAYS:
                        break
                    keep = _retained(first, second)
                    delete = second if keep is first else first
                    pairs.append(
                        DuplicatePair(
                            vendor=first.vendor,
                            name=first.name,
                            price=first.price,
                            account_number=first.account_number,
                            keep_identifier=keep.identifier,
                            keep_date=keep.date,
                            delete_identifier=delete.identifier,
                            delete_date=delete.date,
                        )
                    )
        return pairs

    def remove_duplicates(self) -> list[DuplicatePair]:
        """Delete the losing row of every duplicate pair in one transaction.

        Returns:
            The pairs that were resolved
        """
        pairs = self.find_duplicates()
        keys = list(dict.fromkeys((p.delete_identifier, p.vendor) for p in pairs))
        if not keys:
            return []
        deleted = self.db.delete_transactions(keys)
        logger.info("duplicate_sweep_completed", pairs=len(pairs), deleted=deleted)
        return pairs
