"""nb_credits REST API — 4 endpoints, all require an authenticated user."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.nb_common.database import get_db_session
from src.nb_common.errors import InsufficientCreditsError, StorageError
from src.nb_credits.api.dependencies import get_ledger_service
from src.nb_credits.application.schemas import (
    BalanceResponse,
    DeductRequest,
    DeductResponse,
    StatsResponse,
    TransactionItem,
    TransactionsResponse,
    parse_int_param,
)
from src.nb_credits.application.service import DEFAULT_PAGE_SIZE, CreditsLedgerService
from src.nb_gateway.auth.dependencies import AuthUser, get_current_user

router = APIRouter(prefix="/credits", tags=["credits"])

LedgerDep = Annotated[CreditsLedgerService, Depends(get_ledger_service)]
UserDep = Annotated[AuthUser, Depends(get_current_user)]
DbDep = Annotated[AsyncSession, Depends(get_db_session)]


@router.get("/balance")
async def get_balance(
    current_user: UserDep, db: DbDep, ledger: LedgerDep
) -> BalanceResponse:
    credits = await ledger.get_or_create_balance(db, current_user.id)
    return BalanceResponse(balance=credits.balance, user_id=current_user.id)


@router.post("/deduct")
async def deduct(
    body: DeductRequest, current_user: UserDep, db: DbDep, ledger: LedgerDep
) -> DeductResponse:
    # Fast user-facing rejection; deduct_credits still enforces it atomically
    credits = await ledger.get_balance(db, current_user.id)
    available = credits.balance if credits else 0
    if available < body.amount:
        raise InsufficientCreditsError(required=body.amount, available=available)

    result = await ledger.deduct_credits(
        db,
        current_user.id,
        body.amount,
        description="Image generation",
        metadata={"source": "web"},
    )
    if not result.success or result.transaction_id is None or result.balance is None:
        raise StorageError(result.error or "Failed to deduct credits")

    return DeductResponse(
        transaction_id=result.transaction_id,
        balance=result.balance,
        deducted=body.amount,
    )


@router.get("/transactions")
async def list_transactions(
    current_user: UserDep,
    db: DbDep,
    ledger: LedgerDep,
    limit: str | None = Query(None, description="Page size (default 50, max 200)"),
    offset: str | None = Query(None, description="Rows to skip"),
) -> TransactionsResponse:
    transactions = await ledger.list_transactions(
        db,
        current_user.id,
        parse_int_param(limit, DEFAULT_PAGE_SIZE),
        parse_int_param(offset, 0),
    )
    return TransactionsResponse(
        transactions=[TransactionItem.from_domain(t) for t in transactions],
        count=len(transactions),
    )


@router.get("/stats")
async def get_stats(
    current_user: UserDep, db: DbDep, ledger: LedgerDep
) -> StatsResponse:
    stats = await ledger.get_transaction_stats(db, current_user.id)
    return StatsResponse.from_domain(stats)
