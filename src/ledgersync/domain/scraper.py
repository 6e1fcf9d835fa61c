"""Scraping collaborator contract and result parsing."""

import json
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from ledgersync.domain.entities import ScrapeResult, ScrapedAccount, ScrapedTransaction
from ledgersync.domain.errors import TransientCollectionError
from ledgersync.utils.amount_parser import parse_amount
from ledgersync.utils.date_parser import coerce_date

MALFORMED_RESPONSE = "MALFORMED_RESPONSE"


@dataclass(frozen=True)
class ScrapeOptions:
    """Per-call options handed to the collaborator."""

    start_date: date
    end_date: Optional[date] = None
    fetch_categories: bool = True
    timeout_seconds: float = 60.0


class Scraper(Protocol):
    """External bank/card scraping service.

    Returns the raw result mapping::

        {"success": bool, "errorType": str?, "errorMessage": str?,
         "accounts": [{"accountNumber": str, "balance": number?,
                       "txns": [{"identifier"?, "description", "date",
                                 "processedDate"?, "originalAmount",
                                 "originalCurrency", "chargedAmount",
                                 "chargedCurrency"?, "installments"?: {"number", "total"},
                                 "status", "type", "memo"?, "category"?}]}]}
    """

    def scrape(self, vendor: str, credentials: dict[str, str], options: ScrapeOptions) -> Mapping[str, Any]:
        ...


class JsonFileScraper:
    """Collaborator that replays a captured result from a JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def scrape(self, vendor: str, credentials: dict[str, str], options: ScrapeOptions) -> Mapping[str, Any]:
        try:
            with self.path.open(encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise TransientCollectionError(
                f"Malformed scraper response in {self.path}: {e}", error_type=MALFORMED_RESPONSE
            )


def _optional_amount(value: Any):
    if value is None or value == "":
        return None
    return parse_amount(value)


def _optional_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    return coerce_date(value)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def scraped_transaction_from_dict(raw: Mapping[str, Any]) -> ScrapedTransaction:
    """Parse one collaborator transaction.

    Raises:
        ValueError: If a required field is missing or cannot be parsed
    """
    if raw.get("date") in (None, ""):
        raise ValueError("transaction is missing 'date'")
    if raw.get("originalAmount") is None and raw.get("chargedAmount") is None:
        raise ValueError("transaction has no amount")

    original_amount = _optional_amount(raw.get("originalAmount"))
    charged_amount = _optional_amount(raw.get("chargedAmount"))
    installments = raw.get("installments") or {}

    return ScrapedTransaction(
        description=str(raw.get("description") or "").strip(),
        date=coerce_date(raw["date"]),
        original_amount=original_amount if original_amount is not None else charged_amount,
        original_currency=_optional_str(raw.get("originalCurrency")),
        charged_amount=charged_amount,
        charged_currency=_optional_str(raw.get("chargedCurrency")),
        identifier=_optional_str(raw.get("identifier")),
        processed_date=_optional_date(raw.get("processedDate")),
        installments_number=_optional_int(installments.get("number")),
        installments_total=_optional_int(installments.get("total")),
        status=_optional_str(raw.get("status")) or "completed",
        type=_optional_str(raw.get("type")),
        memo=_optional_str(raw.get("memo")),
        category=_optional_str(raw.get("category")),
    )


def scrape_result_from_dict(raw: Any) -> ScrapeResult:
    """Parse a raw collaborator result.

    Raises:
        TransientCollectionError: If the result is malformed
    """
    if not isinstance(raw, Mapping) or "success" not in raw:
        raise TransientCollectionError("Malformed scraper response: missing 'success'", error_type=MALFORMED_RESPONSE)

    if not raw["success"]:
        return ScrapeResult(
            success=False,
            error_type=_optional_str(raw.get("errorType")),
            error_message=_optional_str(raw.get("errorMessage")),
        )

    try:
        accounts = []
        for account in raw.get("accounts") or []:
            account_number = _optional_str(account.get("accountNumber")) or ""
            transactions = tuple(scraped_transaction_from_dict(t) for t in account.get("txns") or [])
            accounts.append(
                ScrapedAccount(
                    account_number=account_number,
                    transactions=transactions,
                    balance=_optional_amount(account.get("balance")),
                )
            )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise TransientCollectionError(f"Malformed scraper response: {e}", error_type=MALFORMED_RESPONSE)

    return ScrapeResult(success=True, accounts=tuple(accounts))
