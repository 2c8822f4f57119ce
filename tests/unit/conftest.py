"""Unit-test fixtures: an in-memory stand-in for the ledger tables and procedures."""

import itertools
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.nb_common.errors import StorageError
from src.nb_credits.domain.models import AccountBalance, Transaction, TransactionStats


class InMemoryCreditsRepository:
    """Behaves like the add_credits / deduct_credits procedures over two tables."""

    def __init__(self) -> None:
        self.balances: dict[str, AccountBalance] = {}
        self.transactions: list[Transaction] = []
        self._ids = itertools.count(1)
        self._clock = datetime(2026, 1, 1, tzinfo=UTC)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    async def get_balance(self, db: Any, user_id: str) -> AccountBalance | None:
        return self.balances.get(user_id)

    async def upsert_empty_balance(self, db: Any, user_id: str) -> AccountBalance:
        if user_id not in self.balances:
            now = self._tick()
            self.balances[user_id] = AccountBalance(
                id=f"bal-{next(self._ids)}", user_id=user_id, balance=0,
                created_at=now, updated_at=now,
            )
        return self.balances[user_id]

    def _append(self, user_id: str, amount: int, balance: int, type_: str, **extra: Any) -> str:
        tx = Transaction(
            id=f"tx-{next(self._ids)}", user_id=user_id, amount=amount,
            balance_after=balance, type=type_, created_at=self._tick(), **extra,
        )
        self.transactions.append(tx)
        return tx.id

    async def call_add_credits(
        self, db: Any, user_id: str, amount: int, type_: str, reference_id: str | None,
        description: str | None, pack_id: str | None, metadata: dict[str, Any],
    ) -> tuple[str, int]:
        row = await self.upsert_empty_balance(db, user_id)
        row.balance += amount
        tx_id = self._append(
            user_id, amount, row.balance, type_, reference_id=reference_id,
            description=description, pack_id=pack_id, metadata=metadata,
        )
        return tx_id, row.balance

    async def call_deduct_credits(
        self, db: Any, user_id: str, amount: int, description: str | None,
        metadata: dict[str, Any],
    ) -> tuple[str, int]:
        row = self.balances.get(user_id)
        if row is None or row.balance < amount:
            raise StorageError("Insufficient credits")
        row.balance -= amount
        tx_id = self._append(
            user_id, -amount, row.balance, "usage",
            description=description, metadata=metadata,
        )
        return tx_id, row.balance

    async def list_transactions(
        self, db: Any, user_id: str, limit: int, offset: int
    ) -> list[Transaction]:
        mine = [t for t in reversed(self.transactions) if t.user_id == user_id]
        return mine[offset:offset + limit]

    async def transaction_stats(self, db: Any, user_id: str) -> TransactionStats:
        mine = [t for t in self.transactions if t.user_id == user_id]
        return TransactionStats(
            total_credited=sum(t.amount for t in mine if t.amount > 0),
            total_debited=sum(-t.amount for t in mine if t.amount < 0),
            count=len(mine),
        )


@pytest.fixture
def memory_repo() -> InMemoryCreditsRepository:
    return InMemoryCreditsRepository()


@pytest.fixture
def db() -> AsyncMock:
    """Session stand-in: commit / rollback are awaited and recorded."""
    return AsyncMock()
