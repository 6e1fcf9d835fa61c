"""Ingestion orchestration: guard, collect with retries, persist, audit."""

import threading
import time
from datetime import date, datetime, timedelta, UTC
from typing import Any, Callable, Mapping, Optional

import structlog

from ledgersync.database.base import Database
from ledgersync.domain.categorization import CategoryCache, CategoryResolver
from ledgersync.domain.credentials import parse_credentials, vendor_transaction_type
from ledgersync.domain.dedup import TransactionUpserter
from ledgersync.domain.entities import (
    CategorySource,
    Credential,
    IngestionResult,
    IngestionStats,
    ScrapeResult,
    ScrapeStatus,
    TransactionType,
    UpsertOutcome,
)
from ledgersync.domain.errors import (
    CollectionError,
    ConcurrencyError,
    NotFoundError,
    PersistenceConflict,
    TransientCollectionError,
    ValidationError,
    credential_not_found,
    scrape_already_running,
)
from ledgersync.domain.ownership import OwnershipResolver
from ledgersync.domain.retry import DEFAULT_BACKOFF_BASE, RetryMachine, RetryPolicy, classify_collection_error
from ledgersync.domain.scraper import ScrapeOptions, Scraper, scrape_result_from_dict
from ledgersync.domain.settings import Settings, SettingsService

logger = structlog.get_logger(__name__)

# A 'started' audit row older than this is assumed abandoned
STALE_RUN_THRESHOLD = timedelta(hours=1)


class IngestionOrchestrator:
    """Drives one ingestion attempt-group from collection to audit."""

    def __init__(
        self,
        db: Database,
        scraper: Scraper,
        sleep: Callable[[float], None] = time.sleep,
        clock: Optional[Callable[[], datetime]] = None,
        stale_after: timedelta = STALE_RUN_THRESHOLD,
    ):
        """Initialize orchestrator.

        Args:
            db: Database instance
            scraper: Scraping collaborator
            sleep: Blocking sleep used between attempts
            clock: Returns the current UTC time
            stale_after: Age after which a running audit row no longer blocks new runs
        """
        self.db = db
        self.scraper = scraper
        self.sleep = sleep
        self.clock = clock or (lambda: datetime.now(UTC))
        self.stale_after = stale_after
        self.settings_service = SettingsService(db)
        self.ownership = OwnershipResolver(db, clock=self.clock)

    def check_concurrency_guard(self) -> None:
        """Reject the run if another attempt-group is still running.

        Raises:
            ConcurrencyError: If a recent 'started' audit row exists
        """
        running = self.db.find_running_scrape_events(self.clock() - self.stale_after)
        if running:
            event = running[0]
            raise ConcurrencyError(scrape_already_running(event.id, event.vendor))

    def run(
        self,
        credential_id: int,
        start_date: date,
        end_date: Optional[date] = None,
        triggered_by: Optional[str] = None,
        max_retries: Optional[int] = None,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
    ) -> IngestionResult:
        """Collect and persist transactions for one credential.

        Args:
            credential_id: Credential to collect with
            start_date: First date to collect
            end_date: Last date to collect (collaborator default if None)
            triggered_by: Actor recorded on the audit row
            max_retries: Retry bound (0-10); the ``scrape_retries`` setting if None
            backoff_base: Seconds to wait before the first retry

        Returns:
            IngestionResult with aggregate stats

        Raises:
            ValidationError: Unknown vendor, bad credential fields or retry bound
            ConcurrencyError: Another run is in progress
            CollectionError: The collaborator failed terminally or retries ran out
        """
        credential = self._load_credential(credential_id)
        vendor = credential.vendor
        payload = parse_credentials(vendor, credential.secrets).to_scraper_payload()
        transaction_type = vendor_transaction_type(vendor)

        settings = self.settings_service.load()
        policy = RetryPolicy(
            max_retries=settings.scrape_retries if max_retries is None else max_retries,
            backoff_base=backoff_base,
        )
        if end_date is not None and end_date < start_date:
            raise ValidationError("End date cannot be before start date")

        self.check_concurrency_guard()
        self._ensure_business_key_index()

        options = ScrapeOptions(
            start_date=start_date,
            end_date=end_date,
            fetch_categories=settings.fetch_categories_from_scrapers,
            timeout_seconds=settings.scraper_timeout,
        )
        started_at = self.clock()
        event_id = self.db.create_scrape_event(
            triggered_by, vendor, start_date, f"Scraping {vendor} from {start_date.isoformat()}"
        )
        log = logger.bind(vendor=vendor, credential_id=credential.id, audit_id=event_id)
        log.info("ingestion_started", start_date=start_date.isoformat(), max_retries=policy.max_retries)

        machine = RetryMachine(policy)
        try:
            result = self._collect_with_retries(machine, event_id, vendor, payload, options, log)
            stats = self._process(credential, transaction_type, result, settings, log)
        except Exception as e:
            duration = self._elapsed(started_at)
            self.db.update_scrape_event(
                event_id,
                status=ScrapeStatus.FAILED,
                message=str(e),
                retry_count=max(machine.attempt, 0),
                duration_seconds=duration,
            )
            log.error(
                "ingestion_failed",
                error=str(e),
                error_type=getattr(e, "error_type", None) or type(e).__name__,
                attempts=machine.attempts_made,
            )
            raise

        duration = self._elapsed(started_at)
        self.db.update_scrape_event(
            event_id,
            status=ScrapeStatus.SUCCESS,
            message=(
                f"Success: accounts={stats.accounts}, saved={stats.saved_transactions}, "
                f"updated={stats.updated_transactions}, skipped_cards={stats.skipped_cards}"
            ),
            retry_count=machine.attempt,
            duration_seconds=duration,
            report=stats.to_dict(),
        )
        self.db.update_credential_last_synced(credential.id, self.clock())
        log.info("ingestion_succeeded", attempts=machine.attempts_made, duration_seconds=duration, **stats.to_dict())

        return IngestionResult(
            status=ScrapeStatus.SUCCESS,
            stats=stats,
            audit_id=event_id,
            attempts=machine.attempts_made,
            duration_seconds=duration,
        )

    def _load_credential(self, credential_id: int) -> Credential:
        credential = self.db.get_credential(credential_id)
        if credential is None:
            raise NotFoundError(credential_not_found(credential_id))
        if not credential.is_active:
            raise ValidationError(f"Credential {credential_id} is inactive")
        return credential

    def _ensure_business_key_index(self) -> None:
        try:
            self.db.ensure_business_key_index()
        except PersistenceConflict as e:
            logger.warning("business_key_index_unavailable", error=str(e))

    def _collect_with_retries(
        self,
        machine: RetryMachine,
        event_id: int,
        vendor: str,
        payload: dict[str, str],
        options: ScrapeOptions,
        log,
    ) -> ScrapeResult:
        while True:
            delay = machine.next_attempt()
            if machine.attempt > 0:
                self.db.update_scrape_event(
                    event_id,
                    status=ScrapeStatus.STARTED,
                    message=(
                        f"Retry attempt {machine.attempt}/{machine.policy.max_retries} "
                        f"after error: {machine.last_error}"
                    ),
                    retry_count=machine.attempt,
                )
                log.warning(
                    "ingestion_retry",
                    attempt=machine.attempt,
                    max_retries=machine.policy.max_retries,
                    delay_seconds=delay,
                    error=str(machine.last_error),
                )
                self.sleep(delay)

            try:
                result = self._collect_once(vendor, payload, options)
            except CollectionError as e:
                if not machine.fail(e):
                    raise
                continue
            machine.succeed()
            return result

    def _collect_once(self, vendor: str, payload: dict[str, str], options: ScrapeOptions) -> ScrapeResult:
        """One collaborator call bounded by the per-attempt timeout.

        The call runs in a daemon thread. A timed-out call cannot be cancelled;
        it is abandoned and does not keep the process alive at exit.
        """
        outcome: dict[str, Any] = {}

        def _call():
            try:
                outcome["raw"] = self.scraper.scrape(vendor, payload, options)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=_call, name=f"scrape-{vendor}", daemon=True)
        worker.start()
        worker.join(timeout=options.timeout_seconds)

        if worker.is_alive():
            raise TransientCollectionError(
                f"Scraper timed out after {options.timeout_seconds:g} seconds", error_type="TIMEOUT"
            )
        error = outcome.get("error")
        if isinstance(error, CollectionError):
            raise error
        if error is not None:
            raise TransientCollectionError(f"Scraper error: {error}", error_type=type(error).__name__) from error

        raw: Mapping[str, Any] = outcome.get("raw")
        result = scrape_result_from_dict(raw)
        if not result.success:
            raise classify_collection_error(result.error_type, result.error_message)
        return result

    def _process(
        self,
        credential: Credential,
        transaction_type: TransactionType,
        result: ScrapeResult,
        settings: Settings,
        log,
    ) -> IngestionStats:
        """Persist every account in order; ownership decides which accounts count."""
        vendor = credential.vendor
        resolver = CategoryResolver.from_database(self.db, CategoryCache.build(self.db))
        upserter = TransactionUpserter(
            self.db,
            resolver,
            billing_cycle_start_day=settings.billing_cycle_start_day,
            update_category_on_rescrape=settings.update_category_on_rescrape,
            use_source_categories=settings.fetch_categories_from_scrapers,
        )

        stats = IngestionStats()
        for account in result.accounts:
            account_number = account.account_number or None
            if account_number:
                owner_id = self.ownership.check_ownership(vendor, account_number, credential.id)
                if owner_id is not None or not self.ownership.claim(
                    vendor, account_number, credential.id, account.balance
                ):
                    stats.skipped_cards += 1
                    log.info(
                        "card_owned_by_other_credential",
                        account_suffix=account_number[-4:],
                        owner_credential_id=owner_id,
                    )
                    continue

            stats.accounts += 1
            for txn in account.transactions:
                outcome = upserter.upsert(vendor, account_number, txn, transaction_type)
                if outcome.outcome is UpsertOutcome.INSERTED:
                    stats.saved_transactions += 1
                    if outcome.category_source is CategorySource.CACHE:
                        stats.cached_categories += 1
                elif outcome.outcome is UpsertOutcome.UPDATED:
                    stats.updated_transactions += 1
                else:
                    stats.duplicate_transactions += 1
        return stats

    def _elapsed(self, started_at: datetime) -> float:
        return round(max((self.clock() - started_at).total_seconds(), 0.0), 3)
