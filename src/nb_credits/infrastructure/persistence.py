"""CreditsRepository — concrete implementation of CreditsRepositoryProtocol.

Balance mutations are NOT performed here: they are delegated to the
``add_credits`` / ``deduct_credits`` stored procedures, which own atomicity,
negative-balance prevention and transaction-row insertion. This module only
marshals arguments and validates what comes back.

Transaction ownership: The CALLER (application service) commits or rolls back.
Every SQLAlchemy failure is re-raised as StorageError.
"""

import json
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, StrictInt, ValidationError, field_validator
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.nb_common.errors import StorageError
from src.nb_credits.domain.models import AccountBalance, Transaction, TransactionStats

# ---------------------------------------------------------------------------
# SQL: balances
# ---------------------------------------------------------------------------

_GET_BALANCE_SQL = text("""
    SELECT id, user_id, balance, created_at, updated_at
    FROM user_credits
    WHERE user_id = :user_id
""")

# ON CONFLICT returns the existing row, so two concurrent first reads both succeed
_UPSERT_EMPTY_BALANCE_SQL = text("""
    INSERT INTO user_credits (user_id, balance)
    VALUES (:user_id, 0)
    ON CONFLICT (user_id) DO UPDATE
        SET user_id = EXCLUDED.user_id
    RETURNING id, user_id, balance, created_at, updated_at
""")

# ---------------------------------------------------------------------------
# SQL: remote ledger procedures
# ---------------------------------------------------------------------------

_ADD_CREDITS_SQL = text("""
    SELECT id, balance
    FROM add_credits(
        :p_user_id, :p_amount, :p_type, :p_reference_id,
        :p_description, :p_pack_id, CAST(:p_metadata AS JSONB)
    )
""")

_DEDUCT_CREDITS_SQL = text("""
    SELECT id, balance
    FROM deduct_credits(
        :p_user_id, :p_amount, :p_description, CAST(:p_metadata AS JSONB)
    )
""")

# ---------------------------------------------------------------------------
# SQL: history
# ---------------------------------------------------------------------------

_LIST_TRANSACTIONS_SQL = text("""
    SELECT id, user_id, amount, balance_after, type,
           reference_id, description, pack_id, metadata, created_at
    FROM credit_transactions
    WHERE user_id = :user_id
    ORDER BY created_at DESC, id DESC
    LIMIT :limit OFFSET :offset
""")

_TRANSACTION_STATS_SQL = text("""
    SELECT COALESCE(SUM(amount) FILTER (WHERE amount > 0), 0)  AS total_credited,
           COALESCE(SUM(-amount) FILTER (WHERE amount < 0), 0) AS total_debited,
           COUNT(*)                                            AS transaction_count
    FROM credit_transactions
    WHERE user_id = :user_id
""")


class ProcedureResultRow(BaseModel):
    """Strict shape of the single row returned by add_credits / deduct_credits."""

    model_config = ConfigDict(extra="forbid")

    id: str
    balance: StrictInt

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        if isinstance(value, (UUID, int)) and not isinstance(value, bool):
            return str(value)
        return value


def _db_error_message(exc: SQLAlchemyError) -> str:
    """Prefer the driver's message (e.g. a procedure's RAISE EXCEPTION text)."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig).strip() or exc.__class__.__name__
    return str(exc) or exc.__class__.__name__


def _coerce_metadata(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise StorageError(f"Malformed transaction metadata: {exc}") from exc
    if not isinstance(value, dict):
        raise StorageError(f"Transaction metadata must be an object, got {type(value).__name__}")
    return value


def _row_to_balance(row: object) -> AccountBalance:
    return AccountBalance(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_transaction(row: object) -> Transaction:
    return Transaction(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        type=row.type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        pack_id=row.pack_id,  # type: ignore[attr-defined]
        metadata=_coerce_metadata(row.metadata),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _parse_procedure_rows(procedure: str, rows: list[Any]) -> tuple[str, int]:
    if len(rows) != 1:
        raise StorageError(f"{procedure} returned {len(rows)} rows, expected exactly 1")
    try:
        parsed = ProcedureResultRow.model_validate(dict(rows[0]))
    except ValidationError as exc:
        raise StorageError(f"{procedure} returned a malformed row: {exc}") from exc
    return parsed.id, parsed.balance


class CreditsRepository:
    """Concrete repository — reads via plain SELECT, writes via stored procedures."""

    async def get_balance(
        self, db: AsyncSession, user_id: str
    ) -> AccountBalance | None:
        try:
            result = await db.execute(_GET_BALANCE_SQL, {"user_id": user_id})
            row = result.fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(_db_error_message(exc)) from exc
        return _row_to_balance(row) if row else None

    async def upsert_empty_balance(
        self, db: AsyncSession, user_id: str
    ) -> AccountBalance:
        try:
            result = await db.execute(_UPSERT_EMPTY_BALANCE_SQL, {"user_id": user_id})
            row = result.fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(_db_error_message(exc)) from exc
        if row is None:
            raise StorageError("Balance upsert returned no rows")
        return _row_to_balance(row)

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
    ) -> tuple[str, int]:
        params = {
            "p_user_id": user_id,
            "p_amount": amount,
            "p_type": type_,
            "p_reference_id": reference_id,
            "p_description": description,
            "p_pack_id": pack_id,
            "p_metadata": json.dumps(metadata),
        }
        try:
            result = await db.execute(_ADD_CREDITS_SQL, params)
            rows = list(result.mappings().all())
        except SQLAlchemyError as exc:
            raise StorageError(_db_error_message(exc)) from exc
        return _parse_procedure_rows("add_credits", rows)

    async def call_deduct_credits(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        description: str | None,
        metadata: dict[str, Any],
    ) -> tuple[str, int]:
        params = {
            "p_user_id": user_id,
            "p_amount": amount,
            "p_description": description,
            "p_metadata": json.dumps(metadata),
        }
        try:
            result = await db.execute(_DEDUCT_CREDITS_SQL, params)
            rows = list(result.mappings().all())
        except SQLAlchemyError as exc:
            raise StorageError(_db_error_message(exc)) from exc
        return _parse_procedure_rows("deduct_credits", rows)

    async def list_transactions(
        self, db: AsyncSession, user_id: str, limit: int, offset: int
    ) -> list[Transaction]:
        try:
            result = await db.execute(
                _LIST_TRANSACTIONS_SQL,
                {"user_id": user_id, "limit": limit, "offset": offset},
            )
            rows = result.fetchall()
        except SQLAlchemyError as exc:
            raise StorageError(_db_error_message(exc)) from exc
        return [_row_to_transaction(r) for r in rows]

    async def transaction_stats(
        self, db: AsyncSession, user_id: str
    ) -> TransactionStats:
        try:
            result = await db.execute(_TRANSACTION_STATS_SQL, {"user_id": user_id})
            row = result.fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(_db_error_message(exc)) from exc
        if row is None:
            return TransactionStats(total_credited=0, total_debited=0, count=0)
        return TransactionStats(
            total_credited=int(row.total_credited),
            total_debited=int(row.total_debited),
            count=int(row.transaction_count),
        )
