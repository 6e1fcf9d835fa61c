"""Shared pytest fixtures for ledgersync tests."""

import tempfile
import os
from datetime import date, datetime, UTC
from decimal import Decimal
import pytest

from ledgersync.database.factories import create_sqlite_database
from ledgersync.domain import entities
from ledgersync.domain.categorization import CategoryRuleService
from ledgersync.domain.credentials import CredentialService
from ledgersync.domain.settings import SettingsService
from ledgersync.domain.transaction import TransactionService


class FakeScraper:
    """Scripted scraping collaborator.

    Each call pops the next scripted response: a result dict is returned,
    an exception is raised. The last response repeats once the script runs out.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def scrape(self, vendor, credentials, options):
        self.calls.append((vendor, credentials, options))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def scraped_txn(description, txn_date, amount, **extra):
    """Build one collaborator transaction dict."""
    txn = {
        "description": description,
        "date": f"{txn_date}T00:00:00.000Z",
        "originalAmount": amount,
        "originalCurrency": "ILS",
        "chargedAmount": amount,
        "status": "completed",
        "type": "normal",
    }
    txn.update(extra)
    return txn


def scrape_success(*accounts):
    """Build a successful collaborator result from (account_number, txns[, balance]) tuples."""
    result_accounts = []
    for account in accounts:
        entry = {"accountNumber": account[0], "txns": list(account[1])}
        if len(account) > 2:
            entry["balance"] = account[2]
        result_accounts.append(entry)
    return {"success": True, "accounts": result_accounts}


def scrape_failure(error_type, message="failed"):
    """Build a failed collaborator result."""
    return {"success": False, "errorType": error_type, "errorMessage": message}


def make_transaction(name, price, txn_date, **overrides):
    """Build a domain Transaction for pure analysis tests."""
    values = dict(
        identifier=f"{name}-{txn_date}-{price}",
        vendor="max",
        date=txn_date,
        name=name,
        price=Decimal(str(price)),
        category=None,
        category_source=None,
        rule_matched=None,
        type="normal",
        transaction_type=entities.TransactionType.CARD,
        processed_date=None,
        original_amount=Decimal(str(price)),
        original_currency="ILS",
        charged_currency=None,
        memo=None,
        status="completed",
        installments_number=None,
        installments_total=None,
        account_number="1234",
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )
    values.update(overrides)
    return entities.Transaction(**values)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def credential_service(temp_db):
    """Create a CredentialService with a temporary database."""
    return CredentialService(temp_db)


@pytest.fixture
def settings_service(temp_db):
    """Create a SettingsService with a temporary database."""
    return SettingsService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a CategoryRuleService with a temporary database."""
    return CategoryRuleService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def card_credential(credential_service):
    """A credential for the 'max' card vendor."""
    credential_id = credential_service.create_credential(
        "max", {"username": "household", "password": "secret"}, nickname="Joint"
    )
    return credential_service.get_credential(credential_id)


@pytest.fixture
def second_card_credential(credential_service):
    """A second credential for the same card vendor."""
    credential_id = credential_service.create_credential(
        "max", {"username": "personal", "password": "secret"}, nickname="Personal"
    )
    return credential_service.get_credential(credential_id)


@pytest.fixture
def bank_credential(credential_service):
    """A credential for the 'leumi' bank vendor."""
    credential_id = credential_service.create_credential(
        "leumi", {"username": "bank-user", "password": "secret"}
    )
    return credential_service.get_credential(credential_id)


@pytest.fixture
def sleeps():
    """Records requested sleep durations instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
