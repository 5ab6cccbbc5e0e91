"""
Database models for the Ledger.

All models use SQLModel (SQLAlchemy 2.x) with the following conventions:
- Monetary columns use Numeric(12, 2) (two fractional digits)
- Timestamps in UTC (created_at, updated_at)
- Non-negative balances enforced by a CHECK constraint
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Column, Numeric
from sqlmodel import Field, SQLModel

from ledger.app.utils.datetime_utils import utcnow


# ============================================================================
# MODELS
# ============================================================================


class Account(SQLModel, table=True):
    """
    Ledger account holding a monetary balance.

    Accounts are created by seed data or by the account service. Once created,
    only `balance` (and `updated_at`) change, and only through a transfer or
    a direct administrative write.

    Notes:
    - `email` is unique and identifies the holder for seeding purposes
    - `balance` can never go below zero (service check + DB constraint)
    """
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
        )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100, nullable=False)
    email: str = Field(max_length=100, unique=True, index=True, nullable=False)
    balance: Decimal = Field(
        default=Decimal("0.00"),
        sa_column=Column(Numeric(12, 2), nullable=False, server_default="0.00"),
        )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
