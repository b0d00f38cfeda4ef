"""Credit models - pay-per-use generation gate."""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    """Kind of balance change."""

    welcome_bonus = "welcome_bonus"
    purchase = "purchase"
    trip_generation = "trip_generation"
    refund = "refund"
    admin_grant = "admin_grant"


class CreditSpendResult(BaseModel):
    """Outcome of a credit debit.

    A refused debit (ok=False) never deducts a credit. Premium accounts are
    reported with balance=-1.
    """

    ok: bool
    reason: str
    balance: int


class CreditTransaction(BaseModel):
    """Ledger entry for a balance change."""

    user_id: UUID
    amount: int
    balance_after: int
    type: TransactionType
    reference_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
