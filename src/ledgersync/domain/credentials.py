"""Vendor registry and per-vendor credential variants."""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from ledgersync.database.base import Database
from ledgersync.domain.entities import Credential, TransactionType
from ledgersync.domain.errors import NotFoundError, ValidationError, credential_not_found, unknown_vendor

CARD_VENDORS = frozenset({"visaCal", "max", "isracard", "amex"})

BANK_VENDORS = frozenset(
    {
        "hapoalim",
        "leumi",
        "mizrahi",
        "discount",
        "mercantile",
        "yahav",
        "union",
        "fibi",
        "jerusalem",
        "onezero",
        "pepper",
        "otsarHahayal",
        "beinleumi",
        "massad",
        "pagi",
    }
)

ALL_VENDORS = CARD_VENDORS | BANK_VENDORS


def vendor_transaction_type(vendor: str) -> TransactionType:
    """Whether a vendor delivers bank or card transactions.

    Raises:
        ValidationError: If the vendor is unknown
    """
    if vendor in CARD_VENDORS:
        return TransactionType.CARD
    if vendor in BANK_VENDORS:
        return TransactionType.BANK
    raise ValidationError(unknown_vendor(vendor))


def _field(raw: dict[str, Any], *names: str) -> str:
    for name in names:
        value = raw.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _require(vendor: str, **values: str) -> None:
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValidationError(
            f"Invalid credentials for {vendor}: {', '.join(sorted(values))} are required "
            f"(missing {', '.join(missing)})"
        )


@dataclass(frozen=True)
class UserCodeCredentials:
    """User code + password (Bank Hapoalim)."""

    vendors: ClassVar[frozenset[str]] = frozenset({"hapoalim"})

    vendor: str
    user_code: str
    password: str = field(repr=False)

    @classmethod
    def parse(cls, vendor: str, raw: dict[str, Any]) -> "UserCodeCredentials":
        user_code = _field(raw, "user_code", "userCode", "username", "id", "id_number")
        password = _field(raw, "password")
        _require(vendor, user_code=user_code, password=password)
        return cls(vendor=vendor, user_code=user_code, password=password)

    def to_secrets(self) -> dict[str, str]:
        return {"user_code": self.user_code, "password": self.password}

    def to_scraper_payload(self) -> dict[str, str]:
        return {"userCode": self.user_code, "password": self.password}


@dataclass(frozen=True)
class CardHolderCredentials:
    """National id + last six card digits + password (Isracard, Amex)."""

    vendors: ClassVar[frozenset[str]] = frozenset({"isracard", "amex"})

    vendor: str
    id_number: str
    card6_digits: str = field(repr=False)
    password: str = field(repr=False)

    @classmethod
    def parse(cls, vendor: str, raw: dict[str, Any]) -> "CardHolderCredentials":
        id_number = _field(raw, "id_number", "id")
        card6_digits = _field(raw, "card6_digits", "card6Digits")
        password = _field(raw, "password")
        _require(vendor, id_number=id_number, card6_digits=card6_digits, password=password)
        if not (card6_digits.isdigit() and len(card6_digits) == 6):
            raise ValidationError(f"Invalid credentials for {vendor}: card6_digits must be 6 digits")
        return cls(vendor=vendor, id_number=id_number, card6_digits=card6_digits, password=password)

    def to_secrets(self) -> dict[str, str]:
        return {"id_number": self.id_number, "card6_digits": self.card6_digits, "password": self.password}

    def to_scraper_payload(self) -> dict[str, str]:
        return {"id": self.id_number, "card6Digits": self.card6_digits, "password": self.password}


@dataclass(frozen=True)
class UsernameCredentials:
    """Username + password (every other vendor)."""

    vendors: ClassVar[frozenset[str]] = ALL_VENDORS - UserCodeCredentials.vendors - CardHolderCredentials.vendors

    vendor: str
    username: str
    password: str = field(repr=False)

    @classmethod
    def parse(cls, vendor: str, raw: dict[str, Any]) -> "UsernameCredentials":
        username = _field(raw, "username")
        password = _field(raw, "password")
        _require(vendor, username=username, password=password)
        return cls(vendor=vendor, username=username, password=password)

    def to_secrets(self) -> dict[str, str]:
        return {"username": self.username, "password": self.password}

    def to_scraper_payload(self) -> dict[str, str]:
        return {"username": self.username, "password": self.password}


VendorCredentials = Union[UserCodeCredentials, CardHolderCredentials, UsernameCredentials]

_VARIANTS = (UserCodeCredentials, CardHolderCredentials, UsernameCredentials)


def parse_credentials(vendor: str, raw: dict[str, Any]) -> VendorCredentials:
    """Validate raw secret material into the vendor's credential variant.

    Raises:
        ValidationError: If the vendor is unknown or required fields are missing
    """
    for variant in _VARIANTS:
        if vendor in variant.vendors:
            return variant.parse(vendor, raw or {})
    raise ValidationError(unknown_vendor(vendor))


class CredentialService:
    """Service for managing vendor credentials."""

    def __init__(self, db: Database):
        """Initialize credential service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_credential(self, vendor: str, secrets: dict[str, Any], nickname: Optional[str] = None) -> int:
        """Validate and store a credential.

        Args:
            vendor: Vendor id (e.g. "hapoalim", "isracard")
            secrets: Raw secret fields for the vendor
            nickname: Optional display name

        Returns:
            Credential ID

        Raises:
            ValidationError: If the vendor is unknown or fields are missing
        """
        parsed = parse_credentials(vendor, secrets)
        nickname = nickname.strip() if nickname and nickname.strip() else None
        return self.db.create_credential(vendor, nickname, parsed.to_secrets())

    def get_credential(self, credential_id: int) -> Credential:
        """Get a credential.

        Raises:
            NotFoundError: If the credential doesn't exist
        """
        credential = self.db.get_credential(credential_id)
        if credential is None:
            raise NotFoundError(credential_not_found(credential_id))
        return credential

    def list_credentials(self, active_only: bool = False) -> list[Credential]:
        return self.db.list_credentials(active_only=active_only)

    def deactivate_credential(self, credential_id: int) -> None:
        """Logically deactivate a credential; its rows and ownership claims stay."""
        self.db.set_credential_active(credential_id, False)

    def activate_credential(self, credential_id: int) -> None:
        self.db.set_credential_active(credential_id, True)
