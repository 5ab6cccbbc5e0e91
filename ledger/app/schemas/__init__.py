"""
Pydantic schemas for the Ledger.

**Organization by Domain**:
- accounts.py: Account CRUD schemas (AC prefix) and transfer results (TR prefix)

**Naming Conventions**:
- AC prefix: Accounts
- TR prefix: Transfers
"""
from ledger.app.schemas.accounts import (
    ACCreateItem,
    ACReadItem,
    TRResult,
    )

__all__ = [
    "ACCreateItem",
    "ACReadItem",
    "TRResult",
    ]
