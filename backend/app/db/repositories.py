"""Repository protocol interfaces for data access."""

from typing import Protocol
from uuid import UUID

from backend.app.models.common import TripStatus
from backend.app.models.credits import CreditSpendResult, CreditTransaction, TransactionType
from backend.app.models.trip import TripDay, TripRecord


class TripNotFoundError(LookupError):
    """Trip record does not exist."""

    def __init__(self, trip_id: UUID) -> None:
        super().__init__(f"Trip {trip_id} not found")
        self.trip_id = trip_id


class TripStore(Protocol):
    """Persistence for trip records and their generated days."""

    async def create_trip(self, trip: TripRecord) -> TripRecord:
        """Insert a new trip record and return it as stored."""
        ...

    async def fetch(self, trip_id: UUID) -> TripRecord:
        """Fetch a trip with its days ordered by day number.

        Raises:
            TripNotFoundError: If the trip does not exist
        """
        ...

    async def update_status(self, trip_id: UUID, status: TripStatus) -> None:
        """Set the stored status and stamp updated_at."""
        ...

    async def save_days(self, trip_id: UUID, days: list[TripDay]) -> None:
        """Replace all days of a trip.

        Either every day (with its activities) is stored or none is.
        """
        ...


class CreditLedger(Protocol):
    """Per-account credit balance.

    spend() is atomic per account: concurrent debits against the same
    account are serialized, and a refused debit deducts nothing.
    """

    async def spend(self, user_id: UUID, trip_id: UUID) -> CreditSpendResult:
        """Debit one credit for a generation attempt."""
        ...

    async def refund(self, user_id: UUID, trip_id: UUID) -> int:
        """Return one credit for a failed attempt. Returns the new balance."""
        ...

    async def balance(self, user_id: UUID) -> int:
        """Current balance (0 for unknown accounts)."""
        ...

    async def add_credits(
        self,
        user_id: UUID,
        amount: int,
        *,
        type: TransactionType = TransactionType.purchase,
        reference_id: str | None = None,
    ) -> int:
        """Add credits to an existing account. Returns the new balance."""
        ...

    async def initialize_account(self, user_id: UUID, welcome_credits: int) -> int:
        """Create the account with a welcome balance if missing."""
        ...

    async def set_premium(self, user_id: UUID, is_premium: bool) -> None:
        """Toggle premium (unmetered) generation for an account."""
        ...

    async def transactions(self, user_id: UUID, limit: int = 50) -> list[CreditTransaction]:
        """Ledger entries for an account, newest first."""
        ...
