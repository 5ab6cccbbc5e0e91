"""
Services package.
Business logic on top of the database layer.

- TransferService: atomic balance transfers between accounts
- account_service: account CRUD and sample data
"""
from ledger.app.services.transfer_service import (
    TransferService,
    TransferError,
    InvalidAmountError,
    AccountNotFoundError,
    InsufficientFundsError,
    TransactionBeginFailedError,
    CommitFailedError,
    )

__all__ = [
    "TransferService",
    "TransferError",
    "InvalidAmountError",
    "AccountNotFoundError",
    "InsufficientFundsError",
    "TransactionBeginFailedError",
    "CommitFailedError",
    ]
