"""
Tests for TransferService.

Covers successful transfers, every failure kind, rollback on each failure
path, and concurrent transfers sharing a source account.

Reference: ledger/app/services/transfer_service.py
"""
import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger.app.db.account_store import AccountStore
from ledger.app.db.session import get_async_engine, get_session_factory
from ledger.app.services.transfer_service import (
    TransferService,
    TransferError,
    InvalidAmountError,
    AccountNotFoundError,
    InsufficientFundsError,
    TransactionBeginFailedError,
    CommitFailedError,
    )
from ledger.test_scripts.test_db_config import create_test_engine, insert_accounts, get_balance


# ============================================================================
# PYTEST FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh database per test."""
    engine = await create_test_engine(tmp_path / "transfer_test.db")
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest_asyncio.fixture
async def accounts(session_factory):
    """Account A with 1000.00 and account B with 1500.00."""
    return await insert_accounts(session_factory, {"A": "1000.00", "B": "1500.00"})


@pytest.fixture
def service(session_factory):
    return TransferService(session_factory)


async def balances(session_factory, accounts):
    return (
        await get_balance(session_factory, accounts["A"]),
        await get_balance(session_factory, accounts["B"]),
        )


class CommitFailingSession(AsyncSession):
    """Session whose commit always fails."""

    async def commit(self):
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))


class BeginFailingSession(AsyncSession):
    """Session that cannot acquire a connection."""

    async def connection(self, *args, **kwargs):
        raise OperationalError("BEGIN IMMEDIATE", {}, Exception("unable to open database file"))


def forbidden_session_factory():
    raise AssertionError("the store must not be touched")


# ============================================================================
# SUCCESSFUL TRANSFERS
# ============================================================================

class TestTransferSuccess:
    """Transfers that commit."""

    @pytest.mark.asyncio
    async def test_transfer_moves_amount(self, service, session_factory, accounts):
        """A=1000.00, B=1500.00, transfer 100.00 -> A=900.00, B=1600.00."""
        result = await service.transfer(accounts["A"], accounts["B"], Decimal("100.00"))

        assert result.source_id == accounts["A"]
        assert result.destination_id == accounts["B"]
        assert result.amount == Decimal("100.00")
        assert result.source_balance == Decimal("900.00")
        assert result.destination_balance == Decimal("1600.00")
        assert await balances(session_factory, accounts) == (Decimal("900.00"), Decimal("1600.00"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0.01", "12.34", "250", "999.99"])
    async def test_transfer_conserves_total(self, service, session_factory, accounts, amount):
        before_a, before_b = await balances(session_factory, accounts)

        await service.transfer(accounts["A"], accounts["B"], amount)

        after_a, after_b = await balances(session_factory, accounts)
        assert after_a == before_a - Decimal(amount)
        assert after_b == before_b + Decimal(amount)
        assert after_a + after_b == before_a + before_b

    @pytest.mark.asyncio
    async def test_transfer_whole_balance(self, service, session_factory, accounts):
        """Draining the source to exactly zero is allowed."""
        await service.transfer(accounts["A"], accounts["B"], "1000.00")

        assert await balances(session_factory, accounts) == (Decimal("0.00"), Decimal("2500.00"))

    @pytest.mark.asyncio
    async def test_transfer_accepts_int_str_and_float(self, service, session_factory, accounts):
        await service.transfer(accounts["A"], accounts["B"], 10)
        await service.transfer(accounts["A"], accounts["B"], "0.5")
        await service.transfer(accounts["A"], accounts["B"], 0.1)

        assert await balances(session_factory, accounts) == (Decimal("989.40"), Decimal("1510.60"))

    @pytest.mark.asyncio
    async def test_sequential_transfers(self, service, session_factory, accounts):
        await service.transfer(accounts["A"], accounts["B"], "100.00")
        await service.transfer(accounts["B"], accounts["A"], "600.00")
        await service.transfer(accounts["A"], accounts["B"], "0.25")

        assert await balances(session_factory, accounts) == (Decimal("1499.75"), Decimal("1000.25"))

    @pytest.mark.asyncio
    async def test_self_transfer_is_noop(self, service, session_factory, accounts):
        result = await service.transfer(accounts["A"], accounts["A"], "400.00")

        assert result.source_balance == Decimal("1000.00")
        assert result.destination_balance == Decimal("1000.00")
        assert await get_balance(session_factory, accounts["A"]) == Decimal("1000.00")


# ============================================================================
# BUSINESS FAILURES
# ============================================================================

class TestTransferRejected:
    """Caller errors and insufficient funds: nothing changes."""

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, service, session_factory, accounts):
        """A=900.00 after a first transfer; 10000.00 fails and reports both amounts."""
        await service.transfer(accounts["A"], accounts["B"], "100.00")

        with pytest.raises(InsufficientFundsError) as exc_info:
            await service.transfer(accounts["A"], accounts["B"], "10000.00")

        assert exc_info.value.available == Decimal("900.00")
        assert exc_info.value.requested == Decimal("10000.00")
        assert exc_info.value.account_id == accounts["A"]
        assert exc_info.value.retryable is False
        assert await balances(session_factory, accounts) == (Decimal("900.00"), Decimal("1600.00"))

    @pytest.mark.asyncio
    async def test_insufficient_funds_by_one_cent(self, service, session_factory, accounts):
        with pytest.raises(InsufficientFundsError):
            await service.transfer(accounts["A"], accounts["B"], "1000.01")

        assert await balances(session_factory, accounts) == (Decimal("1000.00"), Decimal("1500.00"))

    @pytest.mark.asyncio
    async def test_self_transfer_checks_funds(self, service, session_factory, accounts):
        with pytest.raises(InsufficientFundsError):
            await service.transfer(accounts["A"], accounts["A"], "1000.01")

        assert await get_balance(session_factory, accounts["A"]) == Decimal("1000.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, "0.00", Decimal("0"), -5, "-5.00", Decimal("-0.01")])
    async def test_non_positive_amount_rejected_before_store_access(self, amount):
        service = TransferService(forbidden_session_factory)

        with pytest.raises(InvalidAmountError) as exc_info:
            await service.transfer(1, 2, amount)

        assert exc_info.value.amount == amount
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["1.001", "abc", "", "NaN", "Infinity", None, True, [10]])
    async def test_malformed_amount_rejected(self, amount):
        service = TransferService(forbidden_session_factory)

        with pytest.raises(InvalidAmountError):
            await service.transfer(1, 2, amount)

    @pytest.mark.asyncio
    async def test_missing_source(self, service, session_factory, accounts):
        missing_id = accounts["B"] + 100

        with pytest.raises(AccountNotFoundError) as exc_info:
            await service.transfer(missing_id, accounts["B"], "10.00")

        assert exc_info.value.account_id == missing_id
        assert exc_info.value.retryable is False
        assert await get_balance(session_factory, accounts["B"]) == Decimal("1500.00")

    @pytest.mark.asyncio
    async def test_missing_destination(self, service, session_factory, accounts):
        missing_id = accounts["B"] + 100

        with pytest.raises(AccountNotFoundError) as exc_info:
            await service.transfer(accounts["A"], missing_id, "10.00")

        assert exc_info.value.account_id == missing_id
        assert await get_balance(session_factory, accounts["A"]) == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_all_errors_are_transfer_errors(self, service, accounts):
        with pytest.raises(TransferError):
            await service.transfer(accounts["A"], accounts["B"], "5000.00")


# ============================================================================
# INFRASTRUCTURE FAILURES AND ROLLBACK
# ============================================================================

class TestTransferRollback:
    """Failures after the transaction began leave no partial state."""

    @pytest.mark.asyncio
    async def test_credit_failure_rolls_back_debit(self, service, session_factory, accounts, monkeypatch):
        async def failing_credit(self, account_id, amount):
            raise OperationalError("UPDATE accounts", {}, Exception("connection lost"))

        monkeypatch.setattr(AccountStore, "credit", failing_credit)

        with pytest.raises(CommitFailedError) as exc_info:
            await service.transfer(accounts["A"], accounts["B"], "100.00")

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert await balances(session_factory, accounts) == (Decimal("1000.00"), Decimal("1500.00"))

    @pytest.mark.asyncio
    async def test_unexpected_error_rolls_back_and_propagates(self, service, session_factory, accounts, monkeypatch):
        async def broken_credit(self, account_id, amount):
            raise RuntimeError("boom")

        monkeypatch.setattr(AccountStore, "credit", broken_credit)

        with pytest.raises(RuntimeError, match="boom"):
            await service.transfer(accounts["A"], accounts["B"], "100.00")

        assert await balances(session_factory, accounts) == (Decimal("1000.00"), Decimal("1500.00"))

    @pytest.mark.asyncio
    async def test_commit_failure(self, engine, session_factory, accounts):
        failing_factory = async_sessionmaker(engine, class_=CommitFailingSession, expire_on_commit=False)
        service = TransferService(failing_factory)

        with pytest.raises(CommitFailedError) as exc_info:
            await service.transfer(accounts["A"], accounts["B"], "100.00")

        assert exc_info.value.retryable is True
        assert await balances(session_factory, accounts) == (Decimal("1000.00"), Decimal("1500.00"))

    @pytest.mark.asyncio
    async def test_begin_failure(self, engine, session_factory, accounts):
        failing_factory = async_sessionmaker(engine, class_=BeginFailingSession, expire_on_commit=False)
        service = TransferService(failing_factory)

        with pytest.raises(TransactionBeginFailedError) as exc_info:
            await service.transfer(accounts["A"], accounts["B"], "100.00")

        assert exc_info.value.retryable is True
        assert await balances(session_factory, accounts) == (Decimal("1000.00"), Decimal("1500.00"))

    @pytest.mark.asyncio
    async def test_lock_timeout_maps_to_begin_failure(self, tmp_path, monkeypatch):
        """A writer holding the database lock makes the transfer fail to begin."""
        monkeypatch.setenv("DB_BUSY_TIMEOUT_SECONDS", "0.2")
        db_path = tmp_path / "locked.db"
        setup_engine = await create_test_engine(db_path)
        ids = await insert_accounts(get_session_factory(setup_engine), {"A": "100.00", "B": "0.00"})
        await setup_engine.dispose()

        engine = get_async_engine(f"sqlite:///{db_path}")
        service = TransferService(get_session_factory(engine))
        try:
            async with engine.connect() as holder:
                # Autobegin issues BEGIN IMMEDIATE and keeps the write lock
                await holder.execute(text("SELECT 1"))

                with pytest.raises(TransactionBeginFailedError):
                    await service.transfer(ids["A"], ids["B"], "10.00")

                await holder.rollback()

            result = await service.transfer(ids["A"], ids["B"], "10.00")
            assert result.source_balance == Decimal("90.00")
        finally:
            await engine.dispose()


# ============================================================================
# CONCURRENCY
# ============================================================================

class TestTransferConcurrency:
    """Concurrent transfers, each with its own session and connection."""

    @pytest.mark.asyncio
    async def test_concurrent_overdraw_attempts(self, service, session_factory, accounts):
        """10 x 200.00 against 1000.00: exactly 5 succeed, the rest are refused."""
        results = await asyncio.gather(
            *(service.transfer(accounts["A"], accounts["B"], "200.00") for _ in range(10)),
            return_exceptions=True,
            )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]

        assert len(successes) == 5
        assert len(failures) == 5
        assert all(isinstance(f, InsufficientFundsError) for f in failures)
        assert await balances(session_factory, accounts) == (Decimal("0.00"), Decimal("2500.00"))

    @pytest.mark.asyncio
    async def test_concurrent_transfers_both_directions(self, service, session_factory, accounts):
        transfers = []
        for i in range(8):
            transfers.append(service.transfer(accounts["A"], accounts["B"], "300.00"))
            transfers.append(service.transfer(accounts["B"], accounts["A"], "250.00"))

        results = await asyncio.gather(*transfers, return_exceptions=True)

        for r in results:
            assert not isinstance(r, Exception) or isinstance(r, InsufficientFundsError)

        balance_a, balance_b = await balances(session_factory, accounts)
        assert balance_a >= 0
        assert balance_b >= 0
        assert balance_a + balance_b == Decimal("2500.00")


# ============================================================================
# MONETARY PRECISION AND LIMITS
# ============================================================================

class TestTransferPrecision:
    """Two-decimal amounts that are not exact binary fractions, and out-of-range amounts."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("opening, amounts", [
        ("1000.00", ["999.99", "0.01"]),
        ("0.60", ["0.10", "0.20", "0.30"]),
        ("0.30", ["0.10", "0.10", "0.10"]),
        ("100.00", ["33.33", "33.33", "33.34"]),
        ("1.23", ["0.07", "1.16"]),
        ])
    async def test_drain_to_exactly_zero(self, service, session_factory, opening, amounts):
        ids = await insert_accounts(session_factory, {"Src": opening, "Dst": "0.00"})

        for amount in amounts:
            await service.transfer(ids["Src"], ids["Dst"], amount)

        assert await get_balance(session_factory, ids["Src"]) == Decimal("0.00")
        assert await get_balance(session_factory, ids["Dst"]) == Decimal(opening)

        with pytest.raises(InsufficientFundsError):
            await service.transfer(ids["Src"], ids["Dst"], "0.01")

    @pytest.mark.asyncio
    async def test_many_cent_transfers_keep_cent_grid(self, service, session_factory):
        ids = await insert_accounts(session_factory, {"Src": "0.50", "Dst": "0.00"})

        for _ in range(50):
            await service.transfer(ids["Src"], ids["Dst"], "0.01")

        assert await get_balance(session_factory, ids["Src"]) == Decimal("0.00")
        assert await get_balance(session_factory, ids["Dst"]) == Decimal("0.50")

    @pytest.mark.asyncio
    async def test_largest_amount(self, service, session_factory):
        ids = await insert_accounts(session_factory, {"Src": "9999999999.99", "Dst": "0.00"})

        result = await service.transfer(ids["Src"], ids["Dst"], "9999999999.99")

        assert result.source_balance == Decimal("0.00")
        assert await get_balance(session_factory, ids["Dst"]) == Decimal("9999999999.99")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["1e40", "1E+10", "10000000000", "10000000000.00", Decimal("1E+400"), 10 ** 20])
    async def test_out_of_range_amount_rejected(self, amount):
        service = TransferService(forbidden_session_factory)

        with pytest.raises(InvalidAmountError) as exc_info:
            await service.transfer(1, 2, amount)

        assert "integer digits" in str(exc_info.value)
