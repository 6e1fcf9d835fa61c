"""Runtime settings stored in the database and read fresh per ingestion run."""

import json
import math
from dataclasses import dataclass, asdict
from typing import Any, Callable

import structlog

from ledgersync.database.base import Database
from ledgersync.domain.billing_cycle import DEFAULT_BILLING_CYCLE_START_DAY
from ledgersync.domain.errors import ValidationError
from ledgersync.domain.retry import MAX_RETRIES_LIMIT

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Settings:
    """Snapshot of the runtime settings."""

    scrape_retries: int = 3
    scraper_timeout: float = 60.0
    fetch_categories_from_scrapers: bool = True
    billing_cycle_start_day: int = DEFAULT_BILLING_CYCLE_START_DAY
    update_category_on_rescrape: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _int_between(low: int, high: int) -> Callable[[Any], int]:
    def convert(value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"expected an integer, got {value!r}")
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"expected an integer, got {value!r}")
        number = int(value)
        if not low <= number <= high:
            raise ValueError(f"must be between {low} and {high}")
        return number

    return convert


def _positive_seconds(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"expected a number of seconds, got {value!r}")
    seconds = float(value)
    if not math.isfinite(seconds) or seconds <= 0:
        raise ValueError("must be greater than 0")
    return seconds


_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "scrape_retries": _int_between(0, MAX_RETRIES_LIMIT),
    "scraper_timeout": _positive_seconds,
    "fetch_categories_from_scrapers": _to_bool,
    "billing_cycle_start_day": _int_between(1, 31),
    "update_category_on_rescrape": _to_bool,
}

SETTING_KEYS = tuple(_CONVERTERS)


def _decode(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


class SettingsService:
    """Service for reading and changing runtime settings."""

    def __init__(self, db: Database):
        """Initialize settings service.

        Args:
            db: Database instance
        """
        self.db = db

    def load(self) -> Settings:
        """Read every setting from the database.

        Missing keys use their defaults. Stored values that fail validation
        also fall back to the default and are logged.
        """
        defaults = Settings()
        values = {}
        for key, convert in _CONVERTERS.items():
            raw = self.db.get_setting(key)
            if raw is None:
                continue
            try:
                values[key] = convert(_decode(raw))
            except (TypeError, ValueError) as e:
                logger.warning(
                    "invalid_setting_ignored",
                    key=key,
                    error=str(e),
                    default=getattr(defaults, key),
                )
        return Settings(**values)

    def get(self, key: str) -> Any:
        """Get the effective value of one setting.

        Raises:
            ValidationError: If the key is unknown
        """
        self._check_key(key)
        return getattr(self.load(), key)

    def set(self, key: str, value: Any) -> Any:
        """Validate and store a setting.

        Args:
            key: Setting name
            value: New value; strings are parsed as JSON where possible

        Returns:
            The normalised value that was stored

        Raises:
            ValidationError: If the key is unknown or the value is invalid
        """
        self._check_key(key)
        if isinstance(value, str):
            value = _decode(value)
        try:
            normalised = _CONVERTERS[key](value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid value for {key}: {e}")
        self.db.set_setting(key, json.dumps(normalised))
        logger.info("setting_updated", key=key, value=normalised)
        return normalised

    def _check_key(self, key: str) -> None:
        if key not in _CONVERTERS:
            raise ValidationError(
                f"Unknown setting '{key}'. Valid settings: {', '.join(SETTING_KEYS)}"
            )
