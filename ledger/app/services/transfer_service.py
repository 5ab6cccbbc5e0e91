"""
Transfer Service for the Ledger.

Moves a monetary amount from one account to another in a single database
transaction:

1. Validate the amount (no store access)
2. Begin the transaction (write lock on SQLite)
3. Lock and read both accounts, in ascending id order
4. Check existence and funds
5. Debit the source (guarded: balance >= amount), credit the destination
6. Commit

Every path that does not end in a successful commit rolls back before the
error propagates, so a failed transfer leaves the store exactly as it was.

Design Notes:
- The service owns its transaction; it receives a session factory, never a
  shared session or a global engine
- The service does not log: it raises typed errors and lets the caller
  decide whether to log, retry or report
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger.app.db.account_store import AccountStore
from ledger.app.schemas.accounts import TRResult
from ledger.app.utils.decimal_utils import AmountLike, to_money


# =========================================================================
# ERRORS
# =========================================================================

class TransferError(Exception):
    """Base class for transfer failures."""

    # True when the whole transfer may be retried as-is
    retryable: bool = False


class InvalidAmountError(TransferError):
    """Raised when the amount is not a positive monetary value."""

    def __init__(self, amount, reason: str):
        self.amount = amount
        super().__init__(f"Invalid transfer amount {amount!r}: {reason}")


class AccountNotFoundError(TransferError):
    """Raised when the source or destination account does not exist."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class InsufficientFundsError(TransferError):
    """Raised when the source balance does not cover the amount."""

    def __init__(self, account_id: int, available: Decimal, requested: Decimal):
        self.account_id = account_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient balance: account {account_id} has {available}, "
            f"trying to transfer {requested}"
            )


class TransactionBeginFailedError(TransferError):
    """Raised when the transaction could not be started (connection, lock timeout)."""
    retryable = True


class CommitFailedError(TransferError):
    """Raised when a statement or the commit failed; the transaction was rolled back."""
    retryable = True


# =========================================================================
# SERVICE
# =========================================================================

class TransferService:
    """
    Service performing balance transfers.

    Safe to call concurrently: each call opens its own session (and
    connection) from the factory.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def transfer(self, source_id: int, destination_id: int, amount: AmountLike) -> TRResult:
        """
        Move `amount` from `source_id` to `destination_id`.

        Transferring to the same account checks funds and changes nothing.

        Args:
            source_id: Account to debit
            destination_id: Account to credit
            amount: Positive amount with at most two decimals

        Returns:
            TRResult with the balances after the transfer

        Raises:
            InvalidAmountError: amount not positive/finite/two-decimal (raised before any store access)
            AccountNotFoundError: source or destination missing
            InsufficientFundsError: source balance lower than amount
            TransactionBeginFailedError: the transaction could not begin
            CommitFailedError: a statement or the commit failed
        """
        value = self._validate_amount(amount)

        async with self.session_factory() as session:
            try:
                # Acquire the connection and begin now, so lock waits surface here
                await session.connection()
            except SQLAlchemyError as e:
                raise TransactionBeginFailedError(f"Failed to begin transaction: {e}") from e

            try:
                result = await self._move_funds(AccountStore(session), source_id, destination_id, value)
            except SQLAlchemyError as e:
                await session.rollback()
                raise CommitFailedError(f"Failed to update balances: {e}") from e
            except Exception:
                await session.rollback()
                raise

            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise CommitFailedError(f"Failed to commit transaction: {e}") from e

        return result

    @staticmethod
    def _validate_amount(amount: AmountLike) -> Decimal:
        """Convert and check the amount, raising InvalidAmountError."""
        try:
            value = to_money(amount)
        except (TypeError, ValueError) as e:
            raise InvalidAmountError(amount, str(e)) from e

        if value <= 0:
            raise InvalidAmountError(amount, "amount must be positive")
        return value

    async def _move_funds(self, store: AccountStore, source_id: int, destination_id: int, amount: Decimal) -> TRResult:
        """Run the checks and the two balance updates inside the open transaction."""
        balances = await store.lock_balances([source_id, destination_id])

        for account_id in (source_id, destination_id):
            if account_id not in balances:
                raise AccountNotFoundError(account_id)

        available = balances[source_id]
        if available < amount:
            raise InsufficientFundsError(source_id, available, amount)

        if source_id == destination_id:
            return TRResult(
                source_id=source_id,
                destination_id=destination_id,
                amount=amount,
                source_balance=available,
                destination_balance=available,
                )

        # Guarded debit re-checks funds in the UPDATE itself
        if not await store.debit(source_id, amount):
            raise InsufficientFundsError(source_id, available, amount)

        if not await store.credit(destination_id, amount):
            raise AccountNotFoundError(destination_id)

        return TRResult(
            source_id=source_id,
            destination_id=destination_id,
            amount=amount,
            source_balance=available - amount,
            destination_balance=balances[destination_id] + amount,
            )
