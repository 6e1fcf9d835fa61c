"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, making it easy to change when
the database schema changes.
"""

from datetime import datetime, UTC
from typing import Optional

from ledgersync.domain import entities as domain
from ledgersync.database.models import (
    Credential as ORMCredential,
    CardOwnership as ORMCardOwnership,
    Transaction as ORMTransaction,
    CategorizationRule as ORMCategorizationRule,
    CategoryMapping as ORMCategoryMapping,
    NonRecurringExclusion as ORMNonRecurringExclusion,
    ScrapeEvent as ORMScrapeEvent,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def credential_to_domain(orm_credential: ORMCredential) -> domain.Credential:
    """Convert SQLAlchemy Credential model to domain Credential entity."""
    return domain.Credential(
        id=orm_credential.id,
        vendor=orm_credential.vendor,
        nickname=orm_credential.nickname,
        secrets=dict(orm_credential.secrets or {}),
        is_active=orm_credential.is_active,
        last_synced_at=_as_utc(orm_credential.last_synced_at),
        created_at=_as_utc(orm_credential.created_at),
    )


def card_ownership_to_domain(orm_ownership: ORMCardOwnership) -> domain.CardOwnership:
    """Convert SQLAlchemy CardOwnership model to domain CardOwnership entity."""
    return domain.CardOwnership(
        id=orm_ownership.id,
        vendor=orm_ownership.vendor,
        account_number=orm_ownership.account_number,
        credential_id=orm_ownership.credential_id,
        balance=orm_ownership.balance,
        balance_updated_at=_as_utc(orm_ownership.balance_updated_at),
        created_at=_as_utc(orm_ownership.created_at),
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    source = orm_transaction.category_source
    return domain.Transaction(
        identifier=orm_transaction.identifier,
        vendor=orm_transaction.vendor,
        date=orm_transaction.date,
        name=orm_transaction.name,
        price=orm_transaction.price,
        category=orm_transaction.category,
        category_source=domain.CategorySource(source) if source else None,
        rule_matched=orm_transaction.rule_matched,
        type=orm_transaction.type,
        transaction_type=domain.TransactionType(orm_transaction.transaction_type),
        processed_date=orm_transaction.processed_date,
        original_amount=orm_transaction.original_amount,
        original_currency=orm_transaction.original_currency,
        charged_currency=orm_transaction.charged_currency,
        memo=orm_transaction.memo,
        status=orm_transaction.status,
        installments_number=orm_transaction.installments_number,
        installments_total=orm_transaction.installments_total,
        account_number=orm_transaction.account_number,
        created_at=_as_utc(orm_transaction.created_at),
    )


def categorization_rule_to_domain(orm_rule: ORMCategorizationRule) -> domain.CategorizationRule:
    """Convert SQLAlchemy CategorizationRule model to domain CategorizationRule entity."""
    return domain.CategorizationRule(
        id=orm_rule.id,
        name_pattern=orm_rule.name_pattern,
        target_category=orm_rule.target_category,
        is_active=orm_rule.is_active,
        created_at=_as_utc(orm_rule.created_at),
    )


def category_mapping_to_domain(orm_mapping: ORMCategoryMapping) -> domain.CategoryMapping:
    """Convert SQLAlchemy CategoryMapping model to domain CategoryMapping entity."""
    return domain.CategoryMapping(
        id=orm_mapping.id,
        source_category=orm_mapping.source_category,
        target_category=orm_mapping.target_category,
        created_at=_as_utc(orm_mapping.created_at),
    )


def scrape_event_to_domain(orm_event: ORMScrapeEvent) -> domain.ScrapeEvent:
    """Convert SQLAlchemy ScrapeEvent model to domain ScrapeEvent entity."""
    return domain.ScrapeEvent(
        id=orm_event.id,
        triggered_by=orm_event.triggered_by,
        vendor=orm_event.vendor,
        start_date=orm_event.start_date,
        status=domain.ScrapeStatus(orm_event.status),
        message=orm_event.message,
        retry_count=orm_event.retry_count or 0,
        duration_seconds=orm_event.duration_seconds,
        report=orm_event.report_json,
        created_at=_as_utc(orm_event.created_at),
        updated_at=_as_utc(orm_event.updated_at),
    )


def non_recurring_exclusion_to_domain(orm_exclusion: ORMNonRecurringExclusion) -> domain.NonRecurringExclusion:
    """Convert SQLAlchemy NonRecurringExclusion model to domain NonRecurringExclusion entity."""
    return domain.NonRecurringExclusion(
        id=orm_exclusion.id,
        name=orm_exclusion.name,
        account_number=orm_exclusion.account_number,
        created_at=_as_utc(orm_exclusion.created_at),
    )
