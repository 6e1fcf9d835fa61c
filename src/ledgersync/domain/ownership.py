"""Card ownership resolution between credentials that see the same account."""

from datetime import datetime, UTC
from decimal import Decimal
from typing import Callable, Optional

import structlog

from ledgersync.database.base import Database
from ledgersync.domain.entities import CardOwnership

logger = structlog.get_logger(__name__)


class OwnershipResolver:
    """Decides which credential contributes transactions for a physical account.

    The first credential to claim a (vendor, account_number) pair owns it
    permanently. Other credentials that enumerate the same account must skip
    it entirely.
    """

    def __init__(self, db: Database, clock: Optional[Callable[[], datetime]] = None):
        """Initialize ownership resolver.

        Args:
            db: Database instance
            clock: Returns the current time; defaults to UTC now
        """
        self.db = db
        self.clock = clock or (lambda: datetime.now(UTC))

    def check_ownership(self, vendor: str, account_number: str, credential_id: int) -> Optional[int]:
        """Return the owning credential id if someone other than the requester owns the account.

        Args:
            vendor: Vendor id
            account_number: Account or card number
            credential_id: Requesting credential

        Returns:
            Owner credential id, or None if the account is unclaimed or owned by the requester
        """
        ownership = self.db.get_card_ownership(vendor, account_number)
        if ownership is None or ownership.credential_id == credential_id:
            return None
        return ownership.credential_id

    def claim(
        self,
        vendor: str,
        account_number: str,
        credential_id: int,
        balance: Optional[Decimal] = None,
    ) -> bool:
        """Claim an account for a credential. First claimant wins.

        A supplied balance is recorded only when the claimant owns the account.

        Returns:
            True if the claimant owns the account after the call
        """
        inserted = self.db.insert_card_ownership_if_absent(vendor, account_number, credential_id)
        if inserted:
            logger.info("card_ownership_claimed", vendor=vendor, credential_id=credential_id)

        ownership = self.db.get_card_ownership(vendor, account_number)
        owns = ownership is not None and ownership.credential_id == credential_id
        if owns and balance is not None:
            self.db.update_card_balance(vendor, account_number, balance, self.clock())
        return owns

    def list_ownerships(self, credential_id: Optional[int] = None) -> list[CardOwnership]:
        """List ownership claims, optionally for one credential."""
        return self.db.list_card_ownerships(credential_id=credential_id)
