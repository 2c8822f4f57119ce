"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock or in-memory store that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.nb_credits.domain.models import AccountBalance, Transaction, TransactionStats


class CreditsRepositoryProtocol(Protocol):
    async def get_balance(
        self, db: AsyncSession, user_id: str
    ) -> AccountBalance | None: ...

    async def upsert_empty_balance(
        self, db: AsyncSession, user_id: str
    ) -> AccountBalance: ...

    async def call_add_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        type_: str,
        reference_id: str | None,
        description: str | None,
        pack_id: str | None,
        metadata: dict[str, Any],
    ) -> tuple[str, int]: ...

    async def call_deduct_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        description: str | None,
        metadata: dict[str, Any],
    ) -> tuple[str, int]: ...

    async def list_transactions(
        self, db: AsyncSession, user_id: str, limit: int, offset: int
    ) -> list[Transaction]: ...

    async def transaction_stats(
        self, db: AsyncSession, user_id: str
    ) -> TransactionStats: ...
