"""initial schema - accounts

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = '001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the accounts table."""
    print("🔧 Starting migration 001_initial...")
    print("=" * 60)

    print("📦 Creating table: accounts...")
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=100), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0.00"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
        )
    print("  ✓ Table created")
    op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)
    print("  ✓ Index created")

    print("=" * 60)
    print("✅ Migration 001_initial complete")


def downgrade() -> None:
    """Drop the accounts table."""
    op.drop_index("ix_accounts_email", table_name="accounts")
    op.drop_table("accounts")
