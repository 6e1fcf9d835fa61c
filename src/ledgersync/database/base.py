"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional, Any
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from ledgersync.domain.entities import (
    CardOwnership,
    CategorizationRule,
    CategoryMapping,
    Credential,
    NonRecurringExclusion,
    ScrapeEvent,
    ScrapeStatus,
    Transaction,
)


class Database(ABC):
    """Abstract database interface for ledgersync."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Credential operations
    @abstractmethod
    def create_credential(self, vendor: str, nickname: Optional[str], secrets: dict[str, Any]) -> int:
        """Create a credential. Returns credential ID."""
        pass

    @abstractmethod
    def get_credential(self, credential_id: int) -> Optional[Credential]:
        """Get credential by ID."""
        pass

    @abstractmethod
    def list_credentials(self, active_only: bool = False) -> list[Credential]:
        """List credentials, least recently synced first."""
        pass

    @abstractmethod
    def set_credential_active(self, credential_id: int, is_active: bool) -> None:
        """Activate or logically deactivate a credential."""
        pass

    @abstractmethod
    def update_credential_last_synced(self, credential_id: int, synced_at: datetime) -> None:
        """Stamp the last successful sync time on a credential."""
        pass

    # Card ownership operations
    @abstractmethod
    def get_card_ownership(self, vendor: str, account_number: str) -> Optional[CardOwnership]:
        """Get the ownership row for a physical account, if claimed."""
        pass

    @abstractmethod
    def insert_card_ownership_if_absent(self, vendor: str, account_number: str, credential_id: int) -> bool:
        """Insert an ownership row unless one exists. Returns True if inserted."""
        pass

    @abstractmethod
    def update_card_balance(
        self, vendor: str, account_number: str, balance: Decimal, updated_at: datetime
    ) -> None:
        """Record the last-known balance on an ownership row."""
        pass

    @abstractmethod
    def list_card_ownerships(self, credential_id: Optional[int] = None) -> list[CardOwnership]:
        """List ownership rows, optionally for one credential."""
        pass

    # Transaction operations
    @abstractmethod
    def get_transaction(self, identifier: str, vendor: str) -> Optional[Transaction]:
        """Get transaction by primary key."""
        pass

    @abstractmethod
    def find_transaction_by_business_key(
        self,
        vendor: str,
        txn_date: date,
        name: str,
        abs_amount: Decimal,
        account_number: Optional[str],
    ) -> Optional[Transaction]:
        """Find a transaction by (vendor, date, lower(trim(name)), abs(price), account_number).

        The raw name is normalised by the database with the same expression as
        the stored column, so both sides of the comparison agree.
        """
        pass

    @abstractmethod
    def find_installment_total_match(
        self,
        vendor: str,
        txn_date: date,
        name: str,
        total_amount: Decimal,
        window_days: int = 1,
    ) -> Optional[Transaction]:
        """Find a non-installment row for the same purchase as an installment.

        Matches on vendor, normalised name and a date within ``window_days``,
        where abs(price) or abs(original_amount) equals ``total_amount``.
        """
        pass

    @abstractmethod
    def insert_transaction(self, **values: Any) -> bool:
        """Insert a transaction, ignoring primary-key conflicts.

        Returns:
            True if a row was written, False if an equal key already existed
        """
        pass

    @abstractmethod
    def update_transaction_fields(self, identifier: str, vendor: str, **changes: Any) -> None:
        """Update selected columns of one transaction."""
        pass

    @abstractmethod
    def delete_transactions(self, keys: list[tuple[str, str]]) -> int:
        """Delete transactions by (identifier, vendor) in one all-or-nothing transaction."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        vendor: Optional[str] = None,
        account_number: Optional[str] = None,
        include_manual: bool = True,
    ) -> list[Transaction]:
        """List transactions with optional filters, newest first."""
        pass

    @abstractmethod
    def get_category_history(self) -> list[tuple[str, str, int]]:
        """Count categories per normalized description.

        Returns a list of (normalized_description, category, occurrences).
        """
        pass

    @abstractmethod
    def ensure_business_key_index(self) -> None:
        """Create the unique business-key index if possible.

        Raises:
            PersistenceConflict: If existing duplicates prevent the index
        """
        pass

    # Category override operations
    @abstractmethod
    def set_category_override(self, description: str, category: str) -> None:
        """Insert or replace an explicit description -> category override."""
        pass

    @abstractmethod
    def list_category_overrides(self) -> dict[str, str]:
        """Return all overrides keyed by description."""
        pass

    # Categorization rule operations
    @abstractmethod
    def create_rule(self, name_pattern: str, target_category: str) -> int:
        """Create a categorization rule. Returns rule ID."""
        pass

    @abstractmethod
    def list_rules(self, active_only: bool = False) -> list[CategorizationRule]:
        """List rules in evaluation (id) order."""
        pass

    @abstractmethod
    def set_rule_active(self, rule_id: int, is_active: bool) -> None:
        """Enable or disable a rule."""
        pass

    @abstractmethod
    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule."""
        pass

    # Category mapping operations
    @abstractmethod
    def upsert_mapping(self, source_category: str, target_category: str) -> int:
        """Create or retarget the alias for a source category. Returns mapping ID."""
        pass

    @abstractmethod
    def list_mappings(self) -> list[CategoryMapping]:
        """List category mappings."""
        pass

    @abstractmethod
    def delete_mapping(self, mapping_id: int) -> None:
        """Delete a category mapping."""
        pass

    # Non-recurring exclusion operations
    @abstractmethod
    def create_non_recurring_exclusion(self, name: str, account_number: Optional[str]) -> Optional[int]:
        """Mark a charge as not recurring.

        Returns:
            The new exclusion ID, or None if an equal exclusion already exists
        """
        pass

    @abstractmethod
    def list_non_recurring_exclusions(self) -> list[NonRecurringExclusion]:
        """List exclusions, newest first."""
        pass

    @abstractmethod
    def delete_non_recurring_exclusion(self, exclusion_id: int) -> None:
        """Delete an exclusion.

        Raises:
            NotFoundError: If the exclusion does not exist
        """
        pass

    # Scrape audit operations
    @abstractmethod
    def create_scrape_event(
        self, triggered_by: Optional[str], vendor: str, start_date: date, message: str
    ) -> int:
        """Insert a 'started' audit row. Returns event ID."""
        pass

    @abstractmethod
    def update_scrape_event(
        self,
        event_id: int,
        status: Optional[ScrapeStatus] = None,
        message: Optional[str] = None,
        retry_count: Optional[int] = None,
        duration_seconds: Optional[float] = None,
        report: Optional[dict[str, Any]] = None,
    ) -> None:
        """Update fields of an audit row."""
        pass

    @abstractmethod
    def get_scrape_event(self, event_id: int) -> Optional[ScrapeEvent]:
        """Get audit row by ID."""
        pass

    @abstractmethod
    def list_scrape_events(self, limit: int = 20) -> list[ScrapeEvent]:
        """List the most recent audit rows."""
        pass

    @abstractmethod
    def find_running_scrape_events(self, started_after: datetime) -> list[ScrapeEvent]:
        """List 'started' audit rows created after the given time."""
        pass

    # Settings operations
    @abstractmethod
    def get_setting(self, key: str) -> Optional[str]:
        """Get a raw setting value."""
        pass

    @abstractmethod
    def set_setting(self, key: str, value: str) -> None:
        """Insert or replace a raw setting value."""
        pass
