"""CreditsLedgerService — typed, error-normalized interface over the ledger store.

No business rule lives here beyond argument validation and response
reshaping: atomicity, negative-balance prevention and amount checks are
enforced by the ``add_credits`` / ``deduct_credits`` procedures and treated
as authoritative. Balances are never cached and never computed locally.

Mutations commit on success and roll back on failure. A failed mutation is
reported as ``LedgerMutationResult(success=False)``, never retried.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.nb_common.enums import TransactionType
from src.nb_common.errors import InvalidArgumentError, StorageError
from src.nb_credits.domain.models import (
    AccountBalance,
    LedgerMutationResult,
    Transaction,
    TransactionStats,
)
from src.nb_credits.domain.repository import CreditsRepositoryProtocol
from src.nb_credits.infrastructure.persistence import CreditsRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def _require_user_id(user_id: str) -> None:
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidArgumentError("user_id must be a non-empty string")


def _require_positive_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidArgumentError(f"amount must be a positive integer, got {amount!r}")


def _require_transaction_type(type_: TransactionType | str) -> TransactionType:
    try:
        return TransactionType(type_)
    except ValueError:
        allowed = ", ".join(t.value for t in TransactionType)
        raise InvalidArgumentError(
            f"Unknown transaction type {type_!r}; expected one of: {allowed}"
        ) from None


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    """Normalize pagination: default 50, cap 200, floor 1; offset floor 0."""
    if limit is None:
        limit = DEFAULT_PAGE_SIZE
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset or 0)
    return limit, offset


class CreditsLedgerService:
    def __init__(self, repo: CreditsRepositoryProtocol | None = None) -> None:
        self._repo: CreditsRepositoryProtocol = repo or CreditsRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> AccountBalance | None:
        """Return the user's balance row, or None when none exists yet."""
        _require_user_id(user_id)
        return await self._repo.get_balance(db, user_id)

    async def get_or_create_balance(self, db: AsyncSession, user_id: str) -> AccountBalance:
        existing = await self.get_balance(db, user_id)
        if existing is not None:
            return existing
        try:
            created = await self._repo.upsert_empty_balance(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Created credits balance row for user %s", user_id)
        return created

    async def add_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        type_: TransactionType | str,
        *,
        reference_id: str | None = None,
        description: str | None = None,
        pack_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerMutationResult:
        _require_user_id(user_id)
        _require_positive_amount(amount)
        tx_type = _require_transaction_type(type_)
        try:
            transaction_id, balance = await self._repo.call_add_credits(
                db,
                user_id,
                amount,
                tx_type.value,
                reference_id or None,
                description or None,
                pack_id or None,
                metadata or {},
            )
            await db.commit()
        except StorageError as exc:
            await db.rollback()
            logger.error(
                "add_credits failed: user=%s amount=%d type=%s ref=%s error=%s",
                user_id, amount, tx_type.value, reference_id, exc.message,
            )
            return LedgerMutationResult.failed(exc.message)
        return LedgerMutationResult.ok(transaction_id, balance)

    async def deduct_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        *,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerMutationResult:
        """Subtract ``amount`` credits.

        Callers pre-check the balance for a fast user-facing rejection; the
        procedure still has the final word and may reject (e.g. after a race
        drained the balance), which comes back as ``success=False``.
        """
        _require_user_id(user_id)
        _require_positive_amount(amount)
        try:
            transaction_id, balance = await self._repo.call_deduct_credits(
                db, user_id, amount, description or None, metadata or {}
            )
            await db.commit()
        except StorageError as exc:
            await db.rollback()
            logger.error(
                "deduct_credits failed: user=%s amount=%d error=%s",
                user_id, amount, exc.message,
            )
            return LedgerMutationResult.failed(exc.message)
        return LedgerMutationResult.ok(transaction_id, balance)

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int | None = DEFAULT_PAGE_SIZE,
        offset: int | None = 0,
    ) -> list[Transaction]:
        """One page of the user's history, newest first."""
        _require_user_id(user_id)
        limit, offset = clamp_page(limit, offset)
        return await self._repo.list_transactions(db, user_id, limit, offset)

    async def iter_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncIterator[list[Transaction]]:
        """Yield the full history one page at a time, newest first.

        Finite: stops after the first short page. Restart by calling again.
        """
        _require_user_id(user_id)
        page_size, offset = clamp_page(page_size, 0)
        while True:
            page = await self._repo.list_transactions(db, user_id, page_size, offset)
            if page:
                yield page
            if len(page) < page_size:
                return
            offset += page_size

    async def get_transaction_stats(self, db: AsyncSession, user_id: str) -> TransactionStats:
        _require_user_id(user_id)
        return await self._repo.transaction_stats(db, user_id)
