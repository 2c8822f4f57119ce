"""001: create user_credits table

Revision ID: 001
Revises: 
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_touch_updated_at()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE user_credits (
            id          UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id     TEXT        NOT NULL,
            balance     INTEGER     NOT NULL DEFAULT 0,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_credits_user_id     UNIQUE (user_id),
            CONSTRAINT ck_user_credits_balance_gte_0 CHECK (balance >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_user_credits_updated_at
            BEFORE UPDATE ON user_credits
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE user_credits IS 'Current credits balance, one row per user';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_credits CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_touch_updated_at();")
