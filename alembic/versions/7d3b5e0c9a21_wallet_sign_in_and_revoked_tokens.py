"""Wallet sign-in columns and revoked_tokens table

Revision ID: 7d3b5e0c9a21
Revises: 4c2e9a7b1f30
Create Date: 2026-10-18 16:40:09.532117

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7d3b5e0c9a21"
down_revision: str | Sequence[str] | None = "4c2e9a7b1f30"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Let members sign in with a wallet instead of email + password."""
    op.add_column("members", sa.Column("wallet_address", sa.String(42), nullable=True))
    op.create_unique_constraint("uq_members_wallet_address", "members", ["wallet_address"])
    op.alter_column("members", "email", existing_type=sa.String(255), nullable=True)
    op.alter_column("members", "password_hash", existing_type=sa.String(100), nullable=True)

    op.create_table(
        "revoked_tokens",
        sa.Column("jti", sa.String(64), primary_key=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_revoked_tokens_expires_at", "revoked_tokens", ["expires_at"])


def downgrade() -> None:
    """Drop wallet sign-in.  Wallet-only members must be removed first."""
    op.drop_index("ix_revoked_tokens_expires_at", table_name="revoked_tokens")
    op.drop_table("revoked_tokens")

    op.alter_column("members", "password_hash", existing_type=sa.String(100), nullable=False)
    op.alter_column("members", "email", existing_type=sa.String(255), nullable=False)
    op.drop_constraint("uq_members_wallet_address", "members", type_="unique")
    op.drop_column("members", "wallet_address")
