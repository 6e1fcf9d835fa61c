"""Tests for Database interface returning domain models."""

import pytest
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal

from ledgersync.domain import entities
from ledgersync.domain.errors import NotFoundError


def _insert(db, identifier, txn_date, vendor="max", name="Coffee", price="-12.00", **extra):
    return db.insert_transaction(
        identifier=identifier,
        vendor=vendor,
        date=txn_date,
        name=name,
        price=Decimal(price),
        transaction_type="card",
        account_number=extra.pop("account_number", "1234"),
        **extra,
    )


class TestDatabaseInterface:
    """Tests to verify Database interface returns domain models."""

    def test_get_credential_returns_domain_model(self, temp_db):
        credential_id = temp_db.create_credential("max", "Joint", {"username": "u", "password": "p"})

        credential = temp_db.get_credential(credential_id)

        assert isinstance(credential, entities.Credential)
        assert credential.vendor == "max"
        assert credential.secrets == {"username": "u", "password": "p"}
        assert credential.is_active is True
        assert credential.last_synced_at is None
        assert credential.created_at.tzinfo is not None

    def test_get_transaction_returns_domain_model(self, temp_db):
        _insert(temp_db, "t1", date(2024, 1, 15), category="Food", category_source="rule")

        txn = temp_db.get_transaction("t1", "max")

        assert isinstance(txn, entities.Transaction)
        assert txn.price == Decimal("-12.00")
        assert txn.category_source is entities.CategorySource.RULE
        assert txn.transaction_type is entities.TransactionType.CARD
        assert txn.status == "completed"

    def test_same_identifier_different_vendor_are_distinct(self, temp_db):
        assert _insert(temp_db, "t1", date(2024, 1, 15), vendor="max")
        assert _insert(temp_db, "t1", date(2024, 1, 15), vendor="visaCal")
        assert len(temp_db.list_transactions()) == 2

    def test_insert_ignores_primary_key_conflict(self, temp_db):
        assert _insert(temp_db, "t1", date(2024, 1, 15)) is True
        assert _insert(temp_db, "t1", date(2024, 1, 15), name="Other") is False
        assert temp_db.get_transaction("t1", "max").name == "Coffee"

    def test_find_by_business_key(self, temp_db):
        _insert(temp_db, "t1", date(2024, 1, 15), name=" Coffee Shop ")

        found = temp_db.find_transaction_by_business_key(
            "max", date(2024, 1, 15), "COFFEE SHOP", Decimal("12.00"), "1234"
        )
        missing = temp_db.find_transaction_by_business_key(
            "max", date(2024, 1, 15), "coffee shop", Decimal("12.00"), None
        )

        assert found.identifier == "t1"
        assert missing is None

    def test_find_by_business_key_with_non_ascii_name(self, temp_db):
        _insert(temp_db, "t1", date(2024, 1, 15), name="ÉCOLE Ü")

        found = temp_db.find_transaction_by_business_key(
            "max", date(2024, 1, 15), " ÉCOLE Ü ", Decimal("12.00"), "1234"
        )

        assert found.identifier == "t1"

    def test_find_installment_total_match(self, temp_db):
        _insert(temp_db, "full", date(2024, 1, 10), name="TV", price="-3000")
        _insert(temp_db, "inst", date(2024, 1, 10), name="TV", price="-300", original_amount=Decimal("-3000"),
                installments_number=1, installments_total=10)

        found = temp_db.find_installment_total_match("max", date(2024, 1, 9), "tv", Decimal("3000"))
        missing = temp_db.find_installment_total_match("max", date(2024, 1, 7), "tv", Decimal("3000"))

        assert found.identifier == "full"
        assert missing is None

    def test_list_transactions_filters(self, temp_db):
        _insert(temp_db, "t1", date(2024, 1, 10))
        _insert(temp_db, "t2", date(2024, 2, 10), account_number="9999")
        _insert(temp_db, "t3", date(2024, 3, 10), vendor="manual_cash", account_number=None)

        assert [t.identifier for t in temp_db.list_transactions()] == ["t3", "t2", "t1"]
        assert [t.identifier for t in temp_db.list_transactions(start_date=date(2024, 2, 1))] == ["t3", "t2"]
        assert [t.identifier for t in temp_db.list_transactions(account_number="9999")] == ["t2"]
        assert [t.identifier for t in temp_db.list_transactions(include_manual=False)] == ["t2", "t1"]

    def test_update_missing_transaction_raises(self, temp_db):
        with pytest.raises(NotFoundError):
            temp_db.update_transaction_fields("nope", "max", category="Food")

    def test_delete_transactions(self, temp_db):
        _insert(temp_db, "t1", date(2024, 1, 10))
        _insert(temp_db, "t2", date(2024, 1, 11))

        deleted = temp_db.delete_transactions([("t1", "max"), ("missing", "max")])

        assert deleted == 1
        assert [t.identifier for t in temp_db.list_transactions()] == ["t2"]

    def test_category_history_skips_placeholders(self, temp_db):
        _insert(temp_db, "t1", date(2024, 1, 10), name="Coffee", category="Food")
        _insert(temp_db, "t2", date(2024, 1, 11), name=" COFFEE", category="Food")
        _insert(temp_db, "t3", date(2024, 1, 12), name="coffee", category="N/A")
        _insert(temp_db, "t4", date(2024, 1, 13), name="coffee")

        assert temp_db.get_category_history() == [("coffee", "Food", 2)]

    def test_card_ownership_first_claim_wins(self, temp_db):
        first = temp_db.create_credential("max", None, {"username": "a", "password": "p"})
        second = temp_db.create_credential("max", None, {"username": "b", "password": "p"})

        assert temp_db.insert_card_ownership_if_absent("max", "1234", first) is True
        assert temp_db.insert_card_ownership_if_absent("max", "1234", second) is False

        ownership = temp_db.get_card_ownership("max", "1234")
        assert isinstance(ownership, entities.CardOwnership)
        assert ownership.credential_id == first

    def test_scrape_event_lifecycle(self, temp_db):
        event_id = temp_db.create_scrape_event("cli", "max", date(2024, 1, 1), "Scraping max")

        running = temp_db.find_running_scrape_events(datetime.now(UTC) - timedelta(hours=1))
        assert [e.id for e in running] == [event_id]

        temp_db.update_scrape_event(
            event_id,
            status=entities.ScrapeStatus.SUCCESS,
            retry_count=1,
            duration_seconds=2.5,
            report={"accounts": 1},
        )

        event = temp_db.get_scrape_event(event_id)
        assert isinstance(event, entities.ScrapeEvent)
        assert event.status is entities.ScrapeStatus.SUCCESS
        assert event.retry_count == 1
        assert event.report == {"accounts": 1}
        assert temp_db.find_running_scrape_events(datetime.now(UTC) - timedelta(hours=1)) == []

    def test_stale_running_event_not_reported(self, temp_db):
        temp_db.create_scrape_event("cli", "max", date(2024, 1, 1), "Scraping max")
        assert temp_db.find_running_scrape_events(datetime.now(UTC) + timedelta(minutes=1)) == []

    def test_settings_round_trip(self, temp_db):
        assert temp_db.get_setting("scrape_retries") is None
        temp_db.set_setting("scrape_retries", "4")
        temp_db.set_setting("scrape_retries", "5")
        assert temp_db.get_setting("scrape_retries") == "5"

    def test_non_recurring_exclusions(self, temp_db):
        first = temp_db.create_non_recurring_exclusion("Parking", "1234")
        duplicate = temp_db.create_non_recurring_exclusion("parking ", "1234")
        other_account = temp_db.create_non_recurring_exclusion("Parking", None)

        assert first is not None
        assert duplicate is None
        assert other_account is not None

        exclusions = temp_db.list_non_recurring_exclusions()
        assert all(isinstance(e, entities.NonRecurringExclusion) for e in exclusions)
        assert {(e.name, e.account_number) for e in exclusions} == {("Parking", "1234"), ("Parking", None)}

        temp_db.delete_non_recurring_exclusion(first)
        assert [e.id for e in temp_db.list_non_recurring_exclusions()] == [other_account]

        with pytest.raises(NotFoundError):
            temp_db.delete_non_recurring_exclusion(first)
