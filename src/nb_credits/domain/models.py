"""Domain models for nb_credits — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class AccountBalance:
    id: str
    user_id: str
    balance: int             # credits, never negative
    created_at: datetime
    updated_at: datetime


@dataclass
class Transaction:
    id: str
    user_id: str
    amount: int              # positive=credit negative=debit
    balance_after: int       # balance snapshot right after this entry
    type: str                # TransactionType value
    reference_id: str | None = None
    description: str | None = None
    pack_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass
class LedgerMutationResult:
    success: bool
    transaction_id: str | None = None
    balance: int | None = None   # authoritative post-mutation balance from the procedure
    error: str | None = None

    @classmethod
    def ok(cls, transaction_id: str, balance: int) -> "LedgerMutationResult":
        return cls(success=True, transaction_id=transaction_id, balance=balance)

    @classmethod
    def failed(cls, error: str) -> "LedgerMutationResult":
        return cls(success=False, error=error)


@dataclass
class TransactionStats:
    total_credited: int
    total_debited: int       # magnitude of all debits
    count: int
