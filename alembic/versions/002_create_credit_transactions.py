"""002: create credit_transactions table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE credit_transactions (
            id              UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id         TEXT        NOT NULL,
            amount          INTEGER     NOT NULL,
            balance_after   INTEGER     NOT NULL,
            type            VARCHAR(16) NOT NULL,
            reference_id    TEXT,
            description     TEXT,
            pack_id         TEXT,
            metadata        JSONB       NOT NULL DEFAULT '{}'::jsonb,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_credit_tx_amount_ne_0         CHECK (amount <> 0),
            CONSTRAINT ck_credit_tx_balance_after_gte_0 CHECK (balance_after >= 0),
            CONSTRAINT ck_credit_tx_type
                CHECK (type IN ('purchase', 'usage', 'refund', 'bonus'))
        );
    """)
    op.execute("""
        CREATE INDEX idx_credit_tx_user_created
            ON credit_transactions (user_id, created_at DESC);
    """)
    op.execute(
        "COMMENT ON TABLE credit_transactions IS "
        "'Append-only credits ledger; positive amount = credit, negative = debit';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS credit_transactions CASCADE;")
