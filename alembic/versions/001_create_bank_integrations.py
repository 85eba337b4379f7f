"""001: create bank_integrations table

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bank_integrations (
            id              VARCHAR(64) PRIMARY KEY,
            identity_dni    VARCHAR(8)  NOT NULL,
            account_number  VARCHAR(20) NOT NULL,
            account_type    VARCHAR(20) NOT NULL,
            balance         NUMERIC     NOT NULL,
            date_register   DATE,
            scan_available  BOOLEAN     NOT NULL DEFAULT FALSE,
            prefetch        INTEGER     NOT NULL DEFAULT 0,
            CONSTRAINT uq_bank_integrations_identity_dni UNIQUE (identity_dni)
        );
    """)
    op.execute(
        "COMMENT ON TABLE bank_integrations IS "
        "'Bank account integration records — identity_dni is the business key';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bank_integrations CASCADE;")
