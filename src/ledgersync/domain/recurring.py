"""Recurring charge and installment plan detection over the stored ledger, plus user exclusions."""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog
from dateutil.relativedelta import relativedelta

from ledgersync.database.base import Database
from ledgersync.domain.entities import (
    Frequency,
    InstallmentPlan,
    NonRecurringExclusion,
    RecurringPayment,
    RecurringReport,
    Transaction,
)
from ledgersync.domain.errors import NotFoundError, ValidationError
from ledgersync.utils.identifiers import normalize_description

logger = structlog.get_logger(__name__)

AMOUNT_TOLERANCE = Decimal("0.05")
MONTHLY_GAP_DAYS = (25, 35)
BI_MONTHLY_GAP_DAYS = (50, 70)
MIN_GAP_SHARE = 0.7
MIN_DISTINCT_MONTHS = 2

# Compared case-insensitively
EXCLUDED_CATEGORIES = frozenset({"bank", "income"})

CENT = Decimal("0.01")


def _is_candidate(txn: Transaction) -> bool:
    if txn.price >= 0:
        return False
    if txn.installments_total is not None and txn.installments_total > 1:
        return False
    return (txn.category or "").strip().lower() not in EXCLUDED_CATEGORIES


def _account_scope(txn: Transaction) -> str:
    return txn.account_number or txn.vendor


def _cluster_by_amount(transactions: list[Transaction]) -> list[list[Transaction]]:
    """Greedy clustering: each charge joins the first cluster whose running average is within tolerance."""
    clusters: list[list[Transaction]] = []
    totals: list[Decimal] = []
    for txn in transactions:
        amount = abs(txn.price)
        for i, cluster in enumerate(clusters):
            average = totals[i] / len(cluster)
            if abs(amount - average) <= average * AMOUNT_TOLERANCE:
                cluster.append(txn)
                totals[i] += amount
                break
        else:
            clusters.append([txn])
            totals.append(amount)
    return clusters


def _classify_gaps(gaps: list[int]) -> Optional[Frequency]:
    if not gaps:
        return None
    monthly = sum(1 for g in gaps if MONTHLY_GAP_DAYS[0] <= g <= MONTHLY_GAP_DAYS[1])
    bi_monthly = sum(1 for g in gaps if BI_MONTHLY_GAP_DAYS[0] <= g <= BI_MONTHLY_GAP_DAYS[1])
    if monthly >= len(gaps) * MIN_GAP_SHARE:
        return Frequency.MONTHLY
    if bi_monthly >= len(gaps) * MIN_GAP_SHARE:
        return Frequency.BI_MONTHLY
    return None


def _is_excluded(txn: Transaction, exclusions: list[NonRecurringExclusion]) -> bool:
    name = normalize_description(txn.name)
    return any(
        normalize_description(e.name) == name
        and (e.account_number is None or e.account_number == txn.account_number)
        for e in exclusions
    )


def detect_recurring_payments(
    transactions: Iterable[Transaction],
    exclusions: Iterable[NonRecurringExclusion] = (),
) -> list[RecurringPayment]:
    """Find periodic charges in a set of transactions.

    Charges are grouped by normalised name and account, clustered by amount
    (within 5% of the cluster's running average) and accepted when at least
    70% of the gaps between consecutive charges look monthly or bi-monthly.
    Charges the user marked as not recurring are never reported.

    Returns:
        Recurring payments, largest amount first
    """
    exclusions = list(exclusions)
    groups: dict[tuple[str, str], list[Transaction]] = defaultdict(list)
    for txn in transactions:
        if _is_candidate(txn) and not _is_excluded(txn, exclusions):
            groups[(normalize_description(txn.name), _account_scope(txn))].append(txn)

    payments = []
    for group in groups.values():
        if len(group) < 2:
            continue
        group.sort(key=lambda t: (t.date, t.identifier))

        for cluster in _cluster_by_amount(group):
            if len(cluster) < 2:
                continue
            months = sorted({t.date.strftime("%Y-%m") for t in cluster}, reverse=True)
            if len(months) < MIN_DISTINCT_MONTHS:
                continue

            gaps = [(b.date - a.date).days for a, b in zip(cluster, cluster[1:])]
            frequency = _classify_gaps(gaps)
            if frequency is None:
                continue

            last = cluster[-1]
            average = sum((abs(t.price) for t in cluster), Decimal(0)) / len(cluster)
            payments.append(
                RecurringPayment(
                    name=last.name,
                    category=last.category,
                    vendor=last.vendor,
                    account_number=last.account_number,
                    monthly_amount=average.quantize(CENT),
                    frequency=frequency,
                    month_count=len(months),
                    months=tuple(months),
                    last_charge_date=last.date,
                    next_payment_date=last.date + relativedelta(months=frequency.months),
                )
            )

    payments.sort(key=lambda p: (-p.monthly_amount, p.name.lower()))
    return payments


def _installment_plan(txn: Transaction) -> InstallmentPlan:
    number = txn.installments_number
    total = txn.installments_total
    purchase_date = txn.date - relativedelta(months=number - 1)
    remaining = max(total - number, 0)
    return InstallmentPlan(
        name=txn.name,
        category=txn.category,
        vendor=txn.vendor,
        account_number=txn.account_number,
        price=abs(txn.price),
        original_amount=abs(txn.original_amount) if txn.original_amount is not None else None,
        current_installment=number,
        total_installments=total,
        remaining_payments=remaining,
        last_charge_date=txn.date,
        original_purchase_date=purchase_date,
        next_payment_date=txn.date + relativedelta(months=1) if remaining else None,
        last_payment_date=purchase_date + relativedelta(months=total - 1),
        status="active" if remaining else "completed",
    )


def find_installment_plans(transactions: Iterable[Transaction]) -> list[InstallmentPlan]:
    """Reconstruct installment plans from explicit installment fields.

    One plan per (name, original amount, total, account, purchase month),
    described by its most advanced installment.

    Returns:
        Active plans first, then by installment amount (largest first)
    """
    latest: dict[tuple, Transaction] = {}
    for txn in transactions:
        if txn.installments_total is None or txn.installments_total <= 1:
            continue
        if txn.installments_number is None or txn.installments_number < 1:
            continue
        purchase = txn.date - relativedelta(months=txn.installments_number - 1)
        key = (
            normalize_description(txn.name),
            abs(txn.original_amount) if txn.original_amount is not None else Decimal(0),
            txn.installments_total,
            _account_scope(txn),
            (purchase.year, purchase.month),
        )
        current = latest.get(key)
        if current is None or (txn.installments_number, txn.date) > (current.installments_number, current.date):
            latest[key] = txn

    plans = [_installment_plan(txn) for txn in latest.values()]
    plans.sort(key=lambda p: (p.status == "completed", -p.price, p.name.lower()))
    return plans


class RecurringPaymentService:
    """Service answering recurring payment queries over the stored ledger."""

    def __init__(self, db: Database):
        """Initialize recurring payment service.

        Args:
            db: Database instance
        """
        self.db = db

    def get_recurring_payments(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        vendor: Optional[str] = None,
        account_number: Optional[str] = None,
    ) -> RecurringReport:
        """Installment plans and detected recurring charges for the filtered ledger."""
        transactions = self.db.list_transactions(
            start_date=start_date,
            end_date=end_date,
            vendor=vendor,
            account_number=account_number,
        )
        return RecurringReport(
            installments=find_installment_plans(transactions),
            recurring=detect_recurring_payments(transactions, self.db.list_non_recurring_exclusions()),
        )


class NonRecurringExclusionService:
    """Service for marking charges as not recurring."""

    def __init__(self, db: Database):
        """Initialize exclusion service.

        Args:
            db: Database instance
        """
        self.db = db

    def mark(self, name: str, account_number: Optional[str] = None) -> Optional[int]:
        """Exclude a charge from recurring detection.

        Args:
            name: Transaction name; matched case-insensitively
            account_number: Limit the exclusion to one account (all accounts if None)

        Returns:
            The new exclusion ID, or None if the charge was already excluded

        Raises:
            ValidationError: If the name is empty
        """
        name = (name or "").strip()
        account_number = (account_number or "").strip() or None
        if not name:
            raise ValidationError("Exclusion name cannot be empty")
        if self._find(name, account_number) is not None:
            return None
        exclusion_id = self.db.create_non_recurring_exclusion(name, account_number)
        if exclusion_id is not None:
            logger.info("non_recurring_exclusion_added", exclusion_id=exclusion_id, account_number=account_number)
        return exclusion_id

    def unmark(self, name: str, account_number: Optional[str] = None) -> None:
        """Remove the exclusion for a (name, account) pair.

        Raises:
            NotFoundError: If no such exclusion exists
        """
        account_number = (account_number or "").strip() or None
        exclusion = self._find(name, account_number)
        if exclusion is None:
            raise NotFoundError(f"No exclusion for '{(name or '').strip()}'")
        self.db.delete_non_recurring_exclusion(exclusion.id)

    def list_exclusions(self) -> list[NonRecurringExclusion]:
        return self.db.list_non_recurring_exclusions()

    def delete_exclusion(self, exclusion_id: int) -> None:
        self.db.delete_non_recurring_exclusion(exclusion_id)

    def _find(self, name: str, account_number: Optional[str]) -> Optional[NonRecurringExclusion]:
        key = normalize_description(name)
        for exclusion in self.db.list_non_recurring_exclusions():
            if normalize_description(exclusion.name) == key and exclusion.account_number == account_number:
                return exclusion
        return None
