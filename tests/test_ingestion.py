"""Tests for the ingestion orchestrator."""

import pytest
import threading
import time
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from conftest import FakeScraper, scrape_failure, scrape_success, scraped_txn
from ledgersync.domain.entities import ScrapeStatus
from ledgersync.domain.errors import (
    ConcurrencyError,
    NotFoundError,
    TerminalCollectionError,
    TransientCollectionError,
    ValidationError,
)
from ledgersync.domain.ingestion import IngestionOrchestrator

START = date(2024, 1, 1)

NETFLIX = scraped_txn("Netflix", "2024-01-15", -49.9, identifier="n-1")
SPOTIFY = scraped_txn("Spotify", "2024-01-16", -19.9, identifier="s-1")


def _orchestrator(db, scraper, fake_sleep, **kwargs):
    return IngestionOrchestrator(db, scraper, sleep=fake_sleep, **kwargs)


class TestRun:
    """End-to-end runs against a scripted collaborator."""

    def test_successful_run_persists_and_audits(self, temp_db, card_credential, fake_sleep, sleeps):
        scraper = FakeScraper(scrape_success(("1234", [NETFLIX, SPOTIFY], -500)))

        result = _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START, triggered_by="tester")

        assert result.status is ScrapeStatus.SUCCESS
        assert result.attempts == 1
        assert result.stats.accounts == 1
        assert result.stats.saved_transactions == 2
        assert sleeps == []

        event = temp_db.get_scrape_event(result.audit_id)
        assert event.status is ScrapeStatus.SUCCESS
        assert event.triggered_by == "tester"
        assert event.retry_count == 0
        assert event.report["saved_transactions"] == 2
        assert event.duration_seconds is not None

        assert temp_db.get_credential(card_credential.id).last_synced_at is not None
        assert temp_db.get_card_ownership("max", "1234").balance == Decimal("-500")

    def test_collaborator_receives_vendor_payload(self, temp_db, card_credential, fake_sleep):
        scraper = FakeScraper(scrape_success())
        _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START)

        vendor, payload, options = scraper.calls[0]
        assert vendor == "max"
        assert payload == {"username": "household", "password": "secret"}
        assert options.start_date == START
        assert options.timeout_seconds == 60.0

    def test_rerun_is_idempotent(self, temp_db, card_credential, fake_sleep):
        response = scrape_success(("1234", [NETFLIX, SPOTIFY]))
        _orchestrator(temp_db, FakeScraper(response), fake_sleep).run(card_credential.id, START)

        result = _orchestrator(temp_db, FakeScraper(response), fake_sleep).run(card_credential.id, START)

        assert result.stats.saved_transactions == 0
        assert result.stats.duplicate_transactions == 2
        assert len(temp_db.list_transactions()) == 2

    def test_card_owned_by_other_credential_is_skipped(
        self, temp_db, card_credential, second_card_credential, fake_sleep
    ):
        response = scrape_success(("1234", [NETFLIX]))
        _orchestrator(temp_db, FakeScraper(response), fake_sleep).run(card_credential.id, START)

        other = scrape_success(("1234", [SPOTIFY]), ("5678", [scraped_txn("Wolt", "2024-01-17", -80)]))
        result = _orchestrator(temp_db, FakeScraper(other), fake_sleep).run(second_card_credential.id, START)

        assert result.stats.skipped_cards == 1
        assert result.stats.accounts == 1
        assert temp_db.get_transaction("s-1", "max") is None
        names = sorted(t.name for t in temp_db.list_transactions())
        assert names == ["Netflix", "Wolt"]

    def test_bank_transactions_keep_raw_date_as_processed(self, temp_db, bank_credential, fake_sleep):
        scraper = FakeScraper(scrape_success(("12-345", [scraped_txn("Salary", "2024-01-15", 10000, identifier="p")])))
        _orchestrator(temp_db, scraper, fake_sleep).run(bank_credential.id, START)

        stored = temp_db.get_transaction("p", "leumi")
        assert stored.processed_date == date(2024, 1, 15)

    def test_billing_cycle_setting_applied_to_cards(self, temp_db, card_credential, settings_service, fake_sleep):
        settings_service.set("billing_cycle_start_day", 20)
        scraper = FakeScraper(scrape_success(("1234", [scraped_txn("Wolt", "2024-01-25", -80, identifier="w")])))
        _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START)

        assert temp_db.get_transaction("w", "max").processed_date == date(2024, 2, 19)


class TestRetries:
    """Bounded retries with backoff."""

    def test_transient_failures_retried_until_success(self, temp_db, card_credential, fake_sleep, sleeps):
        scraper = FakeScraper(
            scrape_failure("TIMEOUT"),
            TransientCollectionError("frame detached"),
            scrape_success(("1234", [NETFLIX])),
        )

        result = _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START, max_retries=3)

        assert result.attempts == 3
        assert sleeps == [5.0, 10.0]
        event = temp_db.get_scrape_event(result.audit_id)
        assert event.status is ScrapeStatus.SUCCESS
        assert event.retry_count == 2
        assert len(temp_db.list_scrape_events()) == 1

    def test_max_retries_three_makes_four_attempts(self, temp_db, card_credential, fake_sleep, sleeps):
        scraper = FakeScraper(scrape_failure("GENERIC", "site down"))

        with pytest.raises(TransientCollectionError, match="site down"):
            _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START, max_retries=3)

        assert len(scraper.calls) == 4
        assert sleeps == [5.0, 10.0, 20.0]
        event = temp_db.list_scrape_events()[0]
        assert event.status is ScrapeStatus.FAILED
        assert event.message == "site down"
        assert event.retry_count == 3

    def test_zero_retries_makes_one_attempt(self, temp_db, card_credential, fake_sleep, sleeps):
        scraper = FakeScraper(scrape_failure("TIMEOUT"))

        with pytest.raises(TransientCollectionError):
            _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START, max_retries=0)

        assert len(scraper.calls) == 1
        assert sleeps == []

    def test_retry_count_comes_from_settings(self, temp_db, card_credential, settings_service, fake_sleep):
        settings_service.set("scrape_retries", 1)
        scraper = FakeScraper(scrape_failure("TIMEOUT"))

        with pytest.raises(TransientCollectionError):
            _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START)

        assert len(scraper.calls) == 2

    def test_terminal_error_not_retried(self, temp_db, card_credential, fake_sleep, sleeps):
        scraper = FakeScraper(scrape_failure("INVALID_PASSWORD", "wrong password"))

        with pytest.raises(TerminalCollectionError):
            _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START, max_retries=5)

        assert len(scraper.calls) == 1
        assert sleeps == []
        assert temp_db.list_scrape_events()[0].status is ScrapeStatus.FAILED

    def test_unexpected_exception_is_transient(self, temp_db, card_credential, fake_sleep):
        scraper = FakeScraper(RuntimeError("browser crashed"), scrape_success())

        result = _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START, max_retries=1)

        assert result.attempts == 2

    def test_malformed_response_is_transient(self, temp_db, card_credential, fake_sleep):
        scraper = FakeScraper({"accounts": []}, scrape_success())

        result = _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START, max_retries=1)

        assert result.attempts == 2

    def test_timeout_is_transient(self, temp_db, card_credential, settings_service, fake_sleep):
        settings_service.set("scraper_timeout", 0.05)

        class SlowScraper:
            def __init__(self):
                self.calls = 0

            def scrape(self, vendor, credentials, options):
                self.calls += 1
                if self.calls == 1:
                    time.sleep(0.5)
                return scrape_success()

        scraper = SlowScraper()
        result = _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START, max_retries=1)

        assert result.attempts == 2

    def test_hung_scraper_is_abandoned_on_daemon_thread(self, temp_db, card_credential, settings_service, fake_sleep):
        settings_service.set("scraper_timeout", 0.05)
        release = threading.Event()

        class HungScraper:
            def scrape(self, vendor, credentials, options):
                release.wait(5)
                return scrape_success()

        try:
            with pytest.raises(TransientCollectionError) as exc_info:
                _orchestrator(temp_db, HungScraper(), fake_sleep).run(card_credential.id, START, max_retries=0)

            assert exc_info.value.error_type == "TIMEOUT"
            workers = [t for t in threading.enumerate() if t.name == "scrape-max"]
            assert workers
            assert all(t.daemon for t in workers)
        finally:
            release.set()

    def test_persistence_error_aborts_batch_and_fails_audit(
        self, temp_db, card_credential, fake_sleep, monkeypatch
    ):
        original_insert = temp_db.insert_transaction
        inserted = []

        def insert_breaking_on_second_row(**values):
            inserted.append(values["identifier"])
            if len(inserted) == 2:
                values["name"] = None
            return original_insert(**values)

        monkeypatch.setattr(temp_db, "insert_transaction", insert_breaking_on_second_row)
        scraper = FakeScraper(scrape_success(("1234", [NETFLIX, SPOTIFY])))

        with pytest.raises(IntegrityError):
            _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START)

        assert len(scraper.calls) == 1
        assert [t.identifier for t in temp_db.list_transactions()] == ["n-1"]
        [event] = temp_db.list_scrape_events()
        assert event.status is ScrapeStatus.FAILED
        assert "NOT NULL" in event.message
        assert temp_db.get_credential(card_credential.id).last_synced_at is None


class TestValidationAndGuard:
    """Failures raised before any attempt is made."""

    def test_missing_credential(self, temp_db, fake_sleep):
        with pytest.raises(NotFoundError):
            _orchestrator(temp_db, FakeScraper(scrape_success()), fake_sleep).run(999, START)

    def test_inactive_credential_rejected(self, temp_db, card_credential, credential_service, fake_sleep):
        credential_service.deactivate_credential(card_credential.id)
        scraper = FakeScraper(scrape_success())

        with pytest.raises(ValidationError):
            _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START)
        assert scraper.calls == []

    def test_unknown_vendor_not_retried(self, temp_db, fake_sleep):
        credential_id = temp_db.create_credential("acme", None, {"username": "u", "password": "p"})
        scraper = FakeScraper(scrape_success())

        with pytest.raises(ValidationError, match="Unknown vendor"):
            _orchestrator(temp_db, scraper, fake_sleep).run(credential_id, START)
        assert scraper.calls == []
        assert temp_db.list_scrape_events() == []

    def test_invalid_retry_bound(self, temp_db, card_credential, fake_sleep):
        with pytest.raises(ValidationError):
            _orchestrator(temp_db, FakeScraper(scrape_success()), fake_sleep).run(
                card_credential.id, START, max_retries=11
            )

    def test_running_event_blocks_new_run(self, temp_db, card_credential, fake_sleep):
        temp_db.create_scrape_event("someone", "visaCal", START, "running")
        scraper = FakeScraper(scrape_success())

        with pytest.raises(ConcurrencyError):
            _orchestrator(temp_db, scraper, fake_sleep).run(card_credential.id, START)
        assert scraper.calls == []

    def test_stale_running_event_does_not_block(self, temp_db, card_credential, fake_sleep):
        temp_db.create_scrape_event("someone", "visaCal", START, "running")
        later = datetime.now(UTC) + timedelta(hours=2)

        result = _orchestrator(
            temp_db, FakeScraper(scrape_success()), fake_sleep, clock=lambda: later
        ).run(card_credential.id, START)

        assert result.status is ScrapeStatus.SUCCESS

    def test_finished_events_do_not_block(self, temp_db, card_credential, fake_sleep):
        _orchestrator(temp_db, FakeScraper(scrape_success()), fake_sleep).run(card_credential.id, START)
        result = _orchestrator(temp_db, FakeScraper(scrape_success()), fake_sleep).run(card_credential.id, START)
        assert result.status is ScrapeStatus.SUCCESS

    def test_historical_duplicates_only_warn(self, temp_db, card_credential, fake_sleep):
        for identifier in ("a", "b"):
            temp_db.insert_transaction(
                identifier=identifier, vendor="max", date=date(2023, 5, 1), name="Dup",
                price=Decimal("-5"), transaction_type="card", account_number="1234",
            )

        result = _orchestrator(temp_db, FakeScraper(scrape_success(("1234", [NETFLIX]))), fake_sleep).run(
            card_credential.id, START
        )

        assert result.stats.saved_transactions == 1
