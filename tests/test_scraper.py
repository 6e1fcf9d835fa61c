"""Tests for parsing collaborator results."""

import json

import pytest
from datetime import date
from decimal import Decimal

from ledgersync.domain.errors import TransientCollectionError
from ledgersync.domain.scraper import (
    MALFORMED_RESPONSE,
    JsonFileScraper,
    ScrapeOptions,
    scrape_result_from_dict,
    scraped_transaction_from_dict,
)
from conftest import scrape_failure, scrape_success, scraped_txn


def test_parse_transaction_fields():
    txn = scraped_transaction_from_dict(
        scraped_txn(
            "Laptop",
            "2024-03-10",
            -100,
            identifier="abc",
            processedDate="2024-04-10T00:00:00.000Z",
            installments={"number": 3, "total": 12},
            originalAmount=-1200,
            category="Electronics",
        )
    )

    assert txn.description == "Laptop"
    assert txn.date == date(2024, 3, 10)
    assert txn.processed_date == date(2024, 4, 10)
    assert txn.charged_amount == Decimal("-100")
    assert txn.original_amount == Decimal("-1200")
    assert txn.installments_number == 3
    assert txn.installments_total == 12
    assert txn.identifier == "abc"
    assert txn.category == "Electronics"


def test_missing_original_amount_uses_charged():
    raw = scraped_txn("Coffee", "2024-03-10", -12)
    del raw["originalAmount"]
    assert scraped_transaction_from_dict(raw).original_amount == Decimal("-12")


def test_successful_result():
    result = scrape_result_from_dict(
        scrape_success(("1234", [scraped_txn("Coffee", "2024-03-10", -12)], 5000))
    )

    assert result.success
    assert len(result.accounts) == 1
    assert result.accounts[0].account_number == "1234"
    assert result.accounts[0].balance == Decimal("5000")
    assert len(result.accounts[0].transactions) == 1


def test_failed_result_carries_error():
    result = scrape_result_from_dict(scrape_failure("INVALID_PASSWORD", "bad password"))
    assert not result.success
    assert result.error_type == "INVALID_PASSWORD"
    assert result.error_message == "bad password"


@pytest.mark.parametrize(
    "raw",
    [
        None,
        [],
        {"accounts": []},
        {"success": True, "accounts": [{"accountNumber": "1", "txns": [{"description": "x"}]}]},
        {"success": True, "accounts": [{"accountNumber": "1", "txns": [{"date": "garbage", "chargedAmount": 1}]}]},
    ],
)
def test_malformed_result_is_transient(raw):
    with pytest.raises(TransientCollectionError) as exc_info:
        scrape_result_from_dict(raw)
    assert exc_info.value.error_type == MALFORMED_RESPONSE


def test_json_file_scraper(tmp_path):
    path = tmp_path / "result.json"
    payload = scrape_success(("1234", [scraped_txn("Coffee", "2024-03-10", -12)]))
    path.write_text(json.dumps(payload), encoding="utf-8")

    raw = JsonFileScraper(path).scrape("max", {}, ScrapeOptions(start_date=date(2024, 1, 1)))
    assert raw == payload


def test_json_file_scraper_malformed_file(tmp_path):
    path = tmp_path / "result.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(TransientCollectionError) as exc_info:
        JsonFileScraper(path).scrape("max", {}, ScrapeOptions(start_date=date(2024, 1, 1)))
    assert exc_info.value.error_type == MALFORMED_RESPONSE
