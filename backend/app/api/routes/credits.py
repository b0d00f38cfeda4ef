"""Credit endpoints - balance, ledger history, welcome grant."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_credit_ledger
from backend.app.config import get_settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import CreditLedger
from backend.app.models.credits import CreditTransaction

router = APIRouter(prefix="/credits", tags=["credits"])


class CreditBalanceResponse(BaseModel):
    """Balance and recent ledger entries of the caller."""

    balance: int
    transactions: list[CreditTransaction]


@router.get("", response_model=CreditBalanceResponse)
async def get_credits(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    ledger: Annotated[CreditLedger, Depends(get_credit_ledger)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> CreditBalanceResponse:
    """Current balance with the newest transactions first."""
    return CreditBalanceResponse(
        balance=await ledger.balance(ctx.user_id),
        transactions=await ledger.transactions(ctx.user_id, limit=limit),
    )


@router.post("/initialize", response_model=CreditBalanceResponse)
async def initialize_credits(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    ledger: Annotated[CreditLedger, Depends(get_credit_ledger)],
) -> CreditBalanceResponse:
    """Grant the welcome balance on first sign-in. Idempotent."""
    balance = await ledger.initialize_account(ctx.user_id, get_settings().welcome_credits)
    return CreditBalanceResponse(
        balance=balance,
        transactions=await ledger.transactions(ctx.user_id),
    )
