"""In-memory implementations of repository interfaces."""

import asyncio
from collections import defaultdict
from datetime import UTC, datetime
from uuid import UUID

from backend.app.db.repositories import TripNotFoundError
from backend.app.models.common import TripStatus
from backend.app.models.credits import CreditSpendResult, CreditTransaction, TransactionType
from backend.app.models.trip import TripDay, TripRecord


class InMemoryTripStore:
    """In-memory implementation of TripStore."""

    def __init__(self) -> None:
        self._trips: dict[UUID, TripRecord] = {}

    async def create_trip(self, trip: TripRecord) -> TripRecord:
        """Insert a new trip record."""
        self._trips[trip.id] = trip.model_copy(deep=True)
        return trip.model_copy(deep=True)

    async def fetch(self, trip_id: UUID) -> TripRecord:
        """Fetch trip with days."""
        record = self._trips.get(trip_id)
        if record is None:
            raise TripNotFoundError(trip_id)
        return record.model_copy(deep=True)

    async def update_status(self, trip_id: UUID, status: TripStatus) -> None:
        """Update stored status."""
        record = self._trips.get(trip_id)
        if record is None:
            raise TripNotFoundError(trip_id)
        self._trips[trip_id] = record.model_copy(
            update={"status": status, "updated_at": datetime.now(UTC)}
        )

    async def save_days(self, trip_id: UUID, days: list[TripDay]) -> None:
        """Replace all days of the trip in one assignment."""
        record = self._trips.get(trip_id)
        if record is None:
            raise TripNotFoundError(trip_id)
        ordered = sorted((d.model_copy(deep=True) for d in days), key=lambda d: d.day_number)
        self._trips[trip_id] = record.model_copy(update={"days": ordered})


class InMemoryCreditLedger:
    """In-memory implementation of CreditLedger with per-account locking."""

    def __init__(self) -> None:
        self._balances: dict[UUID, int] = {}
        self._premium: set[UUID] = set()
        self._transactions: dict[UUID, list[CreditTransaction]] = defaultdict(list)
        self._locks: dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _record(
        self,
        user_id: UUID,
        amount: int,
        type: TransactionType,
        reference_id: str | None,
    ) -> None:
        self._transactions[user_id].append(
            CreditTransaction(
                user_id=user_id,
                amount=amount,
                balance_after=self._balances[user_id],
                type=type,
                reference_id=reference_id,
            )
        )

    async def spend(self, user_id: UUID, trip_id: UUID) -> CreditSpendResult:
        """Debit one credit unless the account is premium or empty."""
        async with self._locks[user_id]:
            if user_id in self._premium:
                return CreditSpendResult(ok=True, reason="premium", balance=-1)

            current = self._balances.get(user_id)
            if current is None or current < 1:
                return CreditSpendResult(
                    ok=False, reason="insufficient_credits", balance=current or 0
                )

            self._balances[user_id] = current - 1
            self._record(user_id, -1, TransactionType.trip_generation, str(trip_id))
            return CreditSpendResult(ok=True, reason="credit_spent", balance=current - 1)

    async def refund(self, user_id: UUID, trip_id: UUID) -> int:
        """Return one credit for a failed generation."""
        async with self._locks[user_id]:
            self._balances[user_id] = self._balances.get(user_id, 0) + 1
            self._record(user_id, 1, TransactionType.refund, str(trip_id))
            return self._balances[user_id]

    async def balance(self, user_id: UUID) -> int:
        """Current balance."""
        return self._balances.get(user_id, 0)

    async def add_credits(
        self,
        user_id: UUID,
        amount: int,
        *,
        type: TransactionType = TransactionType.purchase,
        reference_id: str | None = None,
    ) -> int:
        """Add credits to an account."""
        if amount <= 0:
            raise ValueError("amount must be positive")
        async with self._locks[user_id]:
            self._balances[user_id] = self._balances.get(user_id, 0) + amount
            self._record(user_id, amount, type, reference_id)
            return self._balances[user_id]

    async def initialize_account(self, user_id: UUID, welcome_credits: int) -> int:
        """Create the account with a welcome balance (no-op if it exists)."""
        async with self._locks[user_id]:
            if user_id in self._balances:
                return self._balances[user_id]
            self._balances[user_id] = welcome_credits
            self._record(user_id, welcome_credits, TransactionType.welcome_bonus, None)
            return welcome_credits

    async def set_premium(self, user_id: UUID, is_premium: bool) -> None:
        """Toggle premium status."""
        if is_premium:
            self._premium.add(user_id)
        else:
            self._premium.discard(user_id)

    async def transactions(self, user_id: UUID, limit: int = 50) -> list[CreditTransaction]:
        """Ledger entries, newest first."""
        return list(reversed(self._transactions.get(user_id, [])))[:limit]
