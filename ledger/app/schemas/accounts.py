"""
Account and transfer schemas (AC / TR prefixes).

- ACCreateItem: input for creating an account
- ACReadItem: read-only account view, used by the CLI to print accounts
- TRResult: outcome of a successful transfer
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger.app.db.models import Account
from ledger.app.utils.decimal_utils import to_money


# =============================================================================
# ACCOUNT CRUD
# =============================================================================

class ACCreateItem(BaseModel):
    """
    DTO for creating an account.

    Balance is the opening balance: non-negative, at most two decimals.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=100)
    balance: Decimal = Decimal("0.00")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"'{v}' is not an email address")
        return v.lower()

    @field_validator('balance', mode='before')
    @classmethod
    def validate_balance(cls, v) -> Decimal:
        try:
            amount = to_money(v)
        except TypeError as e:
            raise ValueError(str(e))
        if amount < 0:
            raise ValueError(f"Opening balance must be non-negative, got {amount}")
        return amount


class ACReadItem(BaseModel):
    """DTO for reading an account."""
    model_config = ConfigDict(extra="forbid")

    id: int
    name: str
    email: str
    balance: Decimal
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_db_model(cls, account: Account) -> 'ACReadItem':
        """Create ACReadItem from database Account model."""
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            balance=account.balance,
            created_at=account.created_at,
            updated_at=account.updated_at,
            )


# =============================================================================
# TRANSFER
# =============================================================================

class TRResult(BaseModel):
    """
    Outcome of a committed transfer.

    Balances are the values after the transfer, as seen inside the
    transaction that performed it.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    source_id: int
    destination_id: int
    amount: Decimal
    source_balance: Decimal
    destination_balance: Decimal
