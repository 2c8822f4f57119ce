"""Pydantic schemas for the nb_credits API."""

from typing import Any

from pydantic import Field, StrictInt

from src.nb_common.response import CamelModel, SuccessBody
from src.nb_credits.domain.models import Transaction, TransactionStats

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DeductRequest(CamelModel):
    amount: StrictInt = Field(..., gt=0, description="Credits to deduct")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(SuccessBody):
    balance: int
    user_id: str


class DeductResponse(SuccessBody):
    transaction_id: str
    balance: int
    deducted: int


class TransactionItem(CamelModel):
    id: str
    amount: int
    balance_after: int
    type: str
    description: str | None
    pack_id: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, t: Transaction) -> "TransactionItem":
        return cls(
            id=t.id,
            amount=t.amount,
            balance_after=t.balance_after,
            type=t.type,
            description=t.description,
            pack_id=t.pack_id,
            created_at=t.created_at.isoformat() if t.created_at else "",
        )


class TransactionsResponse(SuccessBody):
    transactions: list[TransactionItem]
    count: int


class StatsResponse(SuccessBody):
    total_credited: int
    total_debited: int
    count: int

    @classmethod
    def from_domain(cls, stats: TransactionStats) -> "StatsResponse":
        return cls(
            total_credited=stats.total_credited,
            total_debited=stats.total_debited,
            count=stats.count,
        )


def parse_int_param(raw: Any, default: int) -> int:
    """Lenient query-string int: leading sign and digits count, anything else → default."""
    if raw is None:
        return default
    text = str(raw).strip()
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    digits = ""
    for ch in text:
        if not ch.isdigit():
            break
        digits += ch
    if not digits:
        return default
    return sign * int(digits)
