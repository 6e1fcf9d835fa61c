"""Domain model entities for ledgersync.

These are pure data classes representing business concepts, independent of
database schema. Persistence returns these, never ORM rows.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class CategorySource(str, Enum):
    """Where a transaction's category came from, strongest first."""

    CACHE = "cache"
    RULE = "rule"
    SCRAPER = "scraper"

    @property
    def rank(self) -> int:
        return _SOURCE_RANK[self]


_SOURCE_RANK = {
    CategorySource.CACHE: 3,
    CategorySource.RULE: 2,
    CategorySource.SCRAPER: 1,
}


def source_rank(source: Optional[CategorySource]) -> int:
    """Rank of a category source; a missing source ranks lowest."""
    return 0 if source is None else source.rank


class TransactionType(str, Enum):
    """Kind of account a transaction was collected from."""

    BANK = "bank"
    CARD = "card"


class ScrapeStatus(str, Enum):
    """Audit event states: started -> success | failed."""

    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"


class UpsertOutcome(str, Enum):
    """What the upserter did with one collected transaction."""

    INSERTED = "inserted"
    DUPLICATED = "duplicated"
    UPDATED = "updated"


class Frequency(str, Enum):
    """Recurring charge cadence."""

    MONTHLY = "monthly"
    BI_MONTHLY = "bi-monthly"

    @property
    def months(self) -> int:
        return 1 if self is Frequency.MONTHLY else 2


@dataclass(frozen=True)
class Credential:
    """A data source the user registered for one vendor."""

    id: int
    vendor: str
    nickname: Optional[str]
    secrets: dict[str, Any] = field(repr=False)
    is_active: bool
    last_synced_at: Optional[datetime]
    created_at: datetime


@dataclass(frozen=True)
class CardOwnership:
    """Binding of a physical (vendor, account_number) to one credential."""

    id: int
    vendor: str
    account_number: str
    credential_id: int
    balance: Optional[Decimal]
    balance_updated_at: Optional[datetime]
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Persisted ledger transaction, keyed by (identifier, vendor)."""

    identifier: str
    vendor: str
    date: date
    name: str
    price: Decimal
    category: Optional[str]
    category_source: Optional[CategorySource]
    rule_matched: Optional[str]
    type: Optional[str]
    transaction_type: TransactionType
    processed_date: Optional[date]
    original_amount: Optional[Decimal]
    original_currency: Optional[str]
    charged_currency: Optional[str]
    memo: Optional[str]
    status: str
    installments_number: Optional[int]
    installments_total: Optional[int]
    account_number: Optional[str]
    created_at: datetime

    @property
    def is_manual(self) -> bool:
        return self.vendor.startswith("manual_")


@dataclass(frozen=True)
class CategorizationRule:
    """User-managed substring rule mapping descriptions to a category."""

    id: int
    name_pattern: str
    target_category: str
    is_active: bool
    created_at: datetime


@dataclass(frozen=True)
class CategoryMapping:
    """Alias edge: source category is replaced by target category."""

    id: int
    source_category: str
    target_category: str
    created_at: datetime


@dataclass(frozen=True)
class NonRecurringExclusion:
    """A charge the user marked as not recurring.

    Without an account number the exclusion applies on every account.
    """

    id: int
    name: str
    account_number: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class ScrapeEvent:
    """Audit row for one ingestion attempt-group."""

    id: int
    triggered_by: Optional[str]
    vendor: str
    start_date: date
    status: ScrapeStatus
    message: Optional[str]
    retry_count: int
    duration_seconds: Optional[float]
    report: Optional[dict[str, Any]]
    created_at: datetime
    updated_at: Optional[datetime]


@dataclass(frozen=True)
class ScrapedTransaction:
    """One transaction as delivered by the scraping collaborator."""

    description: str
    date: date
    original_amount: Decimal
    original_currency: Optional[str] = None
    charged_amount: Optional[Decimal] = None
    charged_currency: Optional[str] = None
    identifier: Optional[str] = None
    processed_date: Optional[date] = None
    installments_number: Optional[int] = None
    installments_total: Optional[int] = None
    status: str = "completed"
    type: Optional[str] = None
    memo: Optional[str] = None
    category: Optional[str] = None

    @property
    def signed_amount(self) -> Decimal:
        """Charged amount when present, falling back to the original amount."""
        if self.charged_amount is not None and self.charged_amount != 0:
            return self.charged_amount
        return self.original_amount


@dataclass(frozen=True)
class ScrapedAccount:
    """One account as delivered by the scraping collaborator."""

    account_number: str
    transactions: tuple[ScrapedTransaction, ...] = ()
    balance: Optional[Decimal] = None


@dataclass(frozen=True)
class ScrapeResult:
    """Collaborator result for one attempt."""

    success: bool
    accounts: tuple[ScrapedAccount, ...] = ()
    error_type: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class CategoryResolution:
    """Outcome of the category cascade for one description."""

    category: Optional[str]
    source: Optional[CategorySource]
    rule_matched: Optional[str] = None
    alias_limit_reached: bool = False


@dataclass(frozen=True)
class UpsertResult:
    """Per-transaction result of the deduplicator & upserter."""

    outcome: UpsertOutcome
    identifier: str
    category: Optional[str]
    category_source: Optional[CategorySource]


@dataclass
class IngestionStats:
    """Aggregate counters stamped on a successful audit event."""

    accounts: int = 0
    saved_transactions: int = 0
    updated_transactions: int = 0
    duplicate_transactions: int = 0
    skipped_cards: int = 0
    cached_categories: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "accounts": self.accounts,
            "saved_transactions": self.saved_transactions,
            "updated_transactions": self.updated_transactions,
            "duplicate_transactions": self.duplicate_transactions,
            "skipped_cards": self.skipped_cards,
            "cached_categories": self.cached_categories,
        }


@dataclass(frozen=True)
class IngestionResult:
    """Returned to callers of a successful ingestion run."""

    status: ScrapeStatus
    stats: IngestionStats
    audit_id: int
    attempts: int
    duration_seconds: float


@dataclass(frozen=True)
class RecurringPayment:
    """A periodic charge inferred from the ledger."""

    name: str
    category: Optional[str]
    vendor: str
    account_number: Optional[str]
    monthly_amount: Decimal
    frequency: Frequency
    month_count: int
    months: tuple[str, ...]
    last_charge_date: date
    next_payment_date: date


@dataclass(frozen=True)
class InstallmentPlan:
    """An installment purchase reconstructed from explicit installment fields."""

    name: str
    category: Optional[str]
    vendor: str
    account_number: Optional[str]
    price: Decimal
    original_amount: Optional[Decimal]
    current_installment: int
    total_installments: int
    remaining_payments: int
    last_charge_date: date
    original_purchase_date: date
    next_payment_date: Optional[date]
    last_payment_date: date
    status: str


@dataclass(frozen=True)
class RecurringReport:
    """Installments plus statistically detected recurring charges."""

    installments: list[InstallmentPlan]
    recurring: list[RecurringPayment]


@dataclass(frozen=True)
class DuplicatePair:
    """Two rows the offline sweep considers the same real-world transaction."""

    vendor: str
    name: str
    price: Decimal
    account_number: Optional[str]
    keep_identifier: str
    keep_date: date
    delete_identifier: str
    delete_date: date
