"""003: create add_credits / deduct_credits procedures

Both lock the balance row, update it and append one ledger row in the same
statement, returning (transaction id, balance after).

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION add_credits(
            p_user_id       TEXT,
            p_amount        INTEGER,
            p_type          VARCHAR,
            p_reference_id  TEXT DEFAULT NULL,
            p_description   TEXT DEFAULT NULL,
            p_pack_id       TEXT DEFAULT NULL,
            p_metadata      JSONB DEFAULT '{}'::jsonb
        )
        RETURNS TABLE (id UUID, balance INTEGER) AS $$
        DECLARE
            v_balance INTEGER;
            v_tx_id   UUID;
        BEGIN
            IF p_amount IS NULL OR p_amount <= 0 THEN
                RAISE EXCEPTION 'Amount must be positive';
            END IF;

            INSERT INTO user_credits AS uc (user_id, balance)
            VALUES (p_user_id, p_amount)
            ON CONFLICT (user_id) DO UPDATE
                SET balance = uc.balance + EXCLUDED.balance
            RETURNING uc.balance INTO v_balance;

            INSERT INTO credit_transactions
                (user_id, amount, balance_after, type,
                 reference_id, description, pack_id, metadata)
            VALUES
                (p_user_id, p_amount, v_balance, p_type,
                 p_reference_id, p_description, p_pack_id, COALESCE(p_metadata, '{}'::jsonb))
            RETURNING credit_transactions.id INTO v_tx_id;

            RETURN QUERY SELECT v_tx_id, v_balance;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION deduct_credits(
            p_user_id       TEXT,
            p_amount        INTEGER,
            p_description   TEXT DEFAULT NULL,
            p_metadata      JSONB DEFAULT '{}'::jsonb
        )
        RETURNS TABLE (id UUID, balance INTEGER) AS $$
        DECLARE
            v_balance INTEGER;
            v_tx_id   UUID;
        BEGIN
            IF p_amount IS NULL OR p_amount <= 0 THEN
                RAISE EXCEPTION 'Amount must be positive';
            END IF;

            SELECT uc.balance INTO v_balance
            FROM user_credits uc
            WHERE uc.user_id = p_user_id
            FOR UPDATE;

            IF v_balance IS NULL OR v_balance < p_amount THEN
                RAISE EXCEPTION 'Insufficient credits';
            END IF;

            UPDATE user_credits uc
            SET balance = uc.balance - p_amount
            WHERE uc.user_id = p_user_id
            RETURNING uc.balance INTO v_balance;

            INSERT INTO credit_transactions
                (user_id, amount, balance_after, type, description, metadata)
            VALUES
                (p_user_id, -p_amount, v_balance, 'usage',
                 p_description, COALESCE(p_metadata, '{}'::jsonb))
            RETURNING credit_transactions.id INTO v_tx_id;

            RETURN QUERY SELECT v_tx_id, v_balance;
        END;
        $$ LANGUAGE plpgsql;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS deduct_credits(TEXT, INTEGER, TEXT, JSONB);")
    op.execute(
        "DROP FUNCTION IF EXISTS add_credits(TEXT, INTEGER, VARCHAR, TEXT, TEXT, TEXT, JSONB);"
    )
