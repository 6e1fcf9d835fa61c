"""Statement-cycle alignment of transaction dates."""

import calendar
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

from ledgersync.domain.entities import TransactionType
from ledgersync.domain.errors import ValidationError

DEFAULT_BILLING_CYCLE_START_DAY = 10


def validate_cycle_start_day(start_day: int) -> int:
    """Validate a billing cycle start day (1-31)."""
    if isinstance(start_day, bool) or not isinstance(start_day, int) or not 1 <= start_day <= 31:
        raise ValidationError(f"Billing cycle start day must be between 1 and 31, got {start_day!r}")
    return start_day


def billing_cycle_date(txn_date: date, start_day: int = DEFAULT_BILLING_CYCLE_START_DAY) -> date:
    """Map a transaction date to its statement-cycle processed date.

    Dates on or after the start day roll into the next month on day
    ``start_day - 1``, clipped to that month's length. Earlier dates are
    returned unchanged.

    Examples (start day 10):
        2023-01-11 -> 2023-02-09
        2023-01-10 -> 2023-02-09
        2023-01-09 -> 2023-01-09
    """
    validate_cycle_start_day(start_day)
    if txn_date.day < start_day:
        return txn_date
    if start_day == 1:
        # Day 0 of next month is the last day of this one
        last_day = calendar.monthrange(txn_date.year, txn_date.month)[1]
        return txn_date.replace(day=last_day)
    return txn_date + relativedelta(months=1, day=start_day - 1)


def resolve_processed_date(
    txn_date: date,
    processed_date: Optional[date],
    transaction_type: TransactionType,
    start_day: int = DEFAULT_BILLING_CYCLE_START_DAY,
) -> date:
    """Processed date to persist for a newly collected transaction.

    Bank rows keep the collaborator's processed date (or the raw date). Card
    rows get the billing-cycle date unless the collaborator reported a
    distinct processed date of its own.
    """
    if transaction_type is TransactionType.BANK:
        return processed_date or txn_date
    if processed_date is None or processed_date == txn_date:
        return billing_cycle_date(txn_date, start_day)
    return processed_date
