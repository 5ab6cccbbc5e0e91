"""
Account store: the balance operations a transfer needs, over one session.

The store never begins, commits or rolls back; it expects a session that is
already inside a transaction and leaves transaction control to its caller.

SQLite keeps NUMERIC values with REAL affinity, so `balance - 999.99` can
land on 0.009999999999990905 instead of 0.01. Every write and every guard
rounds to the column scale in SQL, keeping stored balances on the cent grid.
"""
from decimal import Decimal
from typing import Dict, Iterable, Optional

from sqlalchemy import Numeric, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.app.db.models import Account
from ledger.app.utils.datetime_utils import utcnow
from ledger.app.utils.decimal_utils import get_model_column_precision

BALANCE_PRECISION, BALANCE_SCALE = get_model_column_precision(Account, "balance")


def _rounded(expr):
    """ROUND(expr, scale) typed as the balance column, so bound Decimals are adapted per dialect."""
    return func.round(expr, BALANCE_SCALE, type_=Numeric(BALANCE_PRECISION, BALANCE_SCALE))


class AccountStore:
    """Balance reads and writes on the accounts table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_balances(self, account_ids: Iterable[int]) -> Dict[int, Decimal]:
        """
        Lock and read the balances of the given accounts.

        Rows are locked in ascending id order (SELECT ... FOR UPDATE) so two
        transactions touching the same pair of accounts cannot deadlock.
        Dialects without row locks (SQLite) ignore FOR UPDATE and rely on the
        transaction-level write lock instead.

        Returns:
            Dict of account_id -> balance. Missing accounts are absent.
        """
        ids = sorted(set(account_ids))
        stmt = (
            select(Account.id, Account.balance)
            .where(Account.id.in_(ids))
            .order_by(Account.id)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return {account_id: balance for account_id, balance in result.all()}

    async def apply_delta(self, account_id: int, delta: Decimal, floor: Optional[Decimal] = None) -> bool:
        """
        Add `delta` to an account balance.

        Args:
            account_id: Account to update
            delta: Signed amount to add
            floor: If given, the update only happens while balance >= floor

        Returns:
            True if exactly one row was updated
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(balance=_rounded(Account.balance + delta), updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if floor is not None:
            stmt = stmt.where(_rounded(Account.balance) >= floor)

        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def debit(self, account_id: int, amount: Decimal) -> bool:
        """Withdraw `amount`; refused (False) if the balance would go negative or the account is missing."""
        return await self.apply_delta(account_id, -amount, floor=amount)

    async def credit(self, account_id: int, amount: Decimal) -> bool:
        """Deposit `amount`; False if the account is missing."""
        return await self.apply_delta(account_id, amount)
