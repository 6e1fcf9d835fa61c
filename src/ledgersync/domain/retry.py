"""Bounded exponential backoff as a pure state machine.

The machine never sleeps or calls the collaborator itself; the caller asks
it for the next delay, performs the attempt and reports the outcome.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ledgersync.domain.errors import (
    CollectionError,
    TerminalCollectionError,
    TransientCollectionError,
    ValidationError,
)

MAX_RETRIES_LIMIT = 10
DEFAULT_BACKOFF_BASE = 5.0
DEFAULT_BACKOFF_CAP = 60.0

# Collaborator error types that retrying cannot fix
TERMINAL_ERROR_TYPES = frozenset(
    {
        "INVALID_PASSWORD",
        "CHANGE_PASSWORD",
        "ACCOUNT_BLOCKED",
        "INVALID_OTP",
    }
)


def classify_collection_error(error_type: Optional[str], message: Optional[str] = None) -> CollectionError:
    """Turn a collaborator failure into a transient or terminal error.

    Unknown error types are treated as transient.
    """
    text = message or (f"Scraper failed with {error_type}" if error_type else "Scraper failed")
    if error_type and error_type.upper() in TERMINAL_ERROR_TYPES:
        return TerminalCollectionError(text, error_type=error_type)
    return TransientCollectionError(text, error_type=error_type)


def backoff_delay(attempt: int, base: float = DEFAULT_BACKOFF_BASE, cap: float = DEFAULT_BACKOFF_CAP) -> float:
    """Seconds to wait before a zero-based attempt.

    Attempt 0 runs immediately; attempt n waits ``min(base * 2**(n-1), cap)``.
    """
    if attempt <= 0:
        return 0.0
    return min(base * 2 ** (attempt - 1), cap)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait in between."""

    max_retries: int = 3
    backoff_base: float = DEFAULT_BACKOFF_BASE
    backoff_cap: float = DEFAULT_BACKOFF_CAP

    def __post_init__(self):
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ValidationError(f"max_retries must be an integer, got {self.max_retries!r}")
        if not 0 <= self.max_retries <= MAX_RETRIES_LIMIT:
            raise ValidationError(f"max_retries must be between 0 and {MAX_RETRIES_LIMIT}")
        if self.backoff_base < 0 or self.backoff_cap < 0:
            raise ValidationError("Backoff delays cannot be negative")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_before(self, attempt: int) -> float:
        return backoff_delay(attempt, self.backoff_base, self.backoff_cap)


class RetryState(str, Enum):
    INIT = "init"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    FAILED = "failed"


class RetryMachine:
    """Retry state machine: Init -> Attempting(n) -> Success | Failed.

    Example:
        machine = RetryMachine(RetryPolicy(max_retries=3))
        while True:
            sleep(machine.next_attempt())
            try:
                result = collect()
            except CollectionError as e:
                if not machine.fail(e):
                    raise
            else:
                machine.succeed()
                break
    """

    def __init__(self, policy: RetryPolicy):
        self.policy = policy
        self.state = RetryState.INIT
        self.attempt = -1
        self.last_error: Optional[CollectionError] = None

    @property
    def attempts_made(self) -> int:
        return self.attempt + 1

    @property
    def done(self) -> bool:
        return self.state is RetryState.SUCCESS or self._exhausted_failure()

    def next_attempt(self) -> float:
        """Enter the next attempt and return the delay to wait before it.

        Raises:
            RuntimeError: If the machine is finished or already attempting
        """
        if self.state not in (RetryState.INIT, RetryState.FAILED) or self._exhausted_failure():
            raise RuntimeError(f"Cannot start another attempt in state {self.state.value}")
        self.attempt += 1
        self.state = RetryState.ATTEMPTING
        return self.policy.delay_before(self.attempt)

    def succeed(self) -> None:
        self._require_attempting()
        self.state = RetryState.SUCCESS

    def fail(self, error: CollectionError) -> bool:
        """Record a failed attempt.

        Returns:
            True if another attempt will be made
        """
        self._require_attempting()
        self.last_error = error
        self.state = RetryState.FAILED
        return self.can_retry

    @property
    def can_retry(self) -> bool:
        return (
            self.state is RetryState.FAILED
            and self.last_error is not None
            and self.last_error.retryable
            and self.attempts_made < self.policy.max_attempts
        )

    def _exhausted_failure(self) -> bool:
        return self.state is RetryState.FAILED and not self.can_retry

    def _require_attempting(self) -> None:
        if self.state is not RetryState.ATTEMPTING:
            raise RuntimeError(f"No attempt in progress (state {self.state.value})")
