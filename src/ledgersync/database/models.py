"""SQLAlchemy models for ledgersync database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    Date,
    Float,
    Numeric,
    Boolean,
    UniqueConstraint,
    Index,
    create_engine,
    func,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Credential(Base):
    """Vendor credential model. Secret material is stored opaque."""

    __tablename__ = "vendor_credentials"

    id = Column(Integer, primary_key=True)
    vendor = Column(String(100), nullable=False)
    nickname = Column(String(100), nullable=True)
    secrets = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    ownerships = relationship("CardOwnership", back_populates="credential")


class CardOwnership(Base):
    """Card ownership model: one credential per (vendor, account_number)."""

    __tablename__ = "card_ownership"

    id = Column(Integer, primary_key=True)
    vendor = Column(String(50), nullable=False)
    account_number = Column(String(50), nullable=False)
    credential_id = Column(Integer, ForeignKey("vendor_credentials.id"), nullable=False)
    balance = Column(Numeric(14, 2), nullable=True)
    balance_updated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("vendor", "account_number", name="uq_card_ownership_account"),)

    # Relationships
    credential = relationship("Credential", back_populates="ownerships")


class Transaction(Base):
    """Ledger transaction model, keyed by (identifier, vendor)."""

    __tablename__ = "transactions"

    identifier = Column(String(64), primary_key=True)
    vendor = Column(String(50), primary_key=True)
    date = Column(Date, nullable=False)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    category = Column(String(50), nullable=True)
    category_source = Column(String(20), nullable=True)
    rule_matched = Column(String(255), nullable=True)
    type = Column(String(20), nullable=True)
    transaction_type = Column(String(10), nullable=False)
    processed_date = Column(Date, nullable=True)
    original_amount = Column(Numeric(12, 2), nullable=True)
    original_currency = Column(String(3), nullable=True)
    charged_currency = Column(String(3), nullable=True)
    memo = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    installments_number = Column(Integer, nullable=True)
    installments_total = Column(Integer, nullable=True)
    account_number = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_transactions_vendor_date", "vendor", "date"),
        Index("idx_transactions_account_number", "account_number"),
    )


class CategorizationRule(Base):
    """Categorization rule model, consulted in id order."""

    __tablename__ = "categorization_rules"

    id = Column(Integer, primary_key=True)
    name_pattern = Column(String(200), nullable=False)
    target_category = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("name_pattern", "target_category", name="uq_rule_pattern_target"),)


class CategoryMapping(Base):
    """Category alias model (source -> target)."""

    __tablename__ = "category_mappings"

    id = Column(Integer, primary_key=True)
    source_category = Column(String(50), unique=True, nullable=False)
    target_category = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class NonRecurringExclusion(Base):
    """Charge (name, optional account) excluded from recurring detection."""

    __tablename__ = "non_recurring_exclusions"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    account_number = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_non_recurring_exclusions_lookup",
            func.lower(func.trim(name)),
            func.coalesce(account_number, ""),
            unique=True,
        ),
    )


class CategoryOverride(Base):
    """Explicit manual description -> category override."""

    __tablename__ = "transaction_categories"

    id = Column(Integer, primary_key=True)
    description = Column(String(200), unique=True, nullable=False)
    category = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class ScrapeEvent(Base):
    """Scrape audit model, one row per ingestion attempt-group."""

    __tablename__ = "scrape_events"

    id = Column(Integer, primary_key=True)
    triggered_by = Column(String(100), nullable=True)
    vendor = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="started")
    message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    duration_seconds = Column(Float, nullable=True)
    report_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, nullable=True, onupdate=_utcnow)

    __table_args__ = (Index("idx_scrape_events_status_created", "status", "created_at"),)


class AppSetting(Base):
    """Key/value application setting; values are JSON-encoded text."""

    __tablename__ = "app_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
