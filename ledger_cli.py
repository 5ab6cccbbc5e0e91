#!/usr/bin/env python3
"""
Ledger CLI

Command-line tool for managing accounts and moving money between them.

Usage:
    python ledger_cli.py init-db
    python ledger_cli.py seed
    python ledger_cli.py list-accounts
    python ledger_cli.py show-account <id>
    python ledger_cli.py create-account <name> <email> [balance]
    python ledger_cli.py transfer <source_id> <destination_id> <amount>
    python ledger_cli.py demo

The database is taken from DATABASE_URL (see ledger/app/config.py);
pass --test to use TEST_DATABASE_URL instead.
"""
import sys
import argparse
import asyncio
from pathlib import Path

# Add project root to path (file is in root)
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncEngine

from ledger.app.config import get_settings, set_test_mode
from ledger.app.db.models import Account
from ledger.app.db.init_db import ensure_database_exists
from ledger.app.db.session import get_async_engine, get_session_factory
from ledger.app.logging_config import configure_logging, get_logger
from ledger.app.schemas.accounts import ACCreateItem, ACReadItem
from ledger.app.services import account_service
from ledger.app.services.transfer_service import TransferService, TransferError

logger = get_logger(__name__)


def _print_account(account: Account):
    item = ACReadItem.from_db_model(account)
    print(f"ID: {item.id}, Name: {item.name}, Email: {item.email}, Balance: {item.balance:.2f}")


def cmd_init_db(db_url: str) -> bool:
    """Create and migrate the database if needed (Alembic)."""
    try:
        ensure_database_exists(db_url)
    except RuntimeError as e:
        print(f"❌ {e}")
        return False
    print("✅ Database schema ready")
    return True


async def cmd_seed(engine: AsyncEngine) -> bool:
    """Insert the sample accounts."""
    async with get_session_factory(engine)() as session:
        inserted = await account_service.seed_accounts(session)
    print(f"✅ Seeded {inserted} account(s)")
    return True


async def cmd_list_accounts(engine: AsyncEngine) -> bool:
    """List all accounts."""
    async with get_session_factory(engine)() as session:
        accounts = await account_service.list_accounts(session)

    if not accounts:
        print("No accounts found")
        return True

    print(f"\n{'ID':<5} {'Name':<20} {'Email':<32} {'Balance':>12}")
    print("-" * 72)
    for item in map(ACReadItem.from_db_model, accounts):
        print(f"{item.id:<5} {item.name:<20} {item.email:<32} {item.balance:>12.2f}")
    print(f"\nTotal: {len(accounts)} account(s)")
    return True


async def cmd_show_account(engine: AsyncEngine, account_id: int) -> bool:
    """Show one account."""
    async with get_session_factory(engine)() as session:
        account = await account_service.get_account_by_id(session, account_id)

    if account is None:
        print(f"❌ Account {account_id} not found")
        return False
    _print_account(account)
    return True


async def cmd_create_account(engine: AsyncEngine, name: str, email: str, balance: str) -> bool:
    """Create an account."""
    try:
        item = ACCreateItem(name=name, email=email, balance=balance)
    except ValidationError as e:
        print(f"❌ Invalid account data: {e}")
        return False

    async with get_session_factory(engine)() as session:
        account, error = await account_service.create_account(session, item)

    if account is None:
        print(f"❌ {error}")
        return False
    print(f"✅ Account '{account.name}' created with ID {account.id}")
    return True


async def cmd_transfer(engine: AsyncEngine, source_id: int, destination_id: int, amount: str) -> bool:
    """Transfer money between two accounts."""
    service = TransferService(get_session_factory(engine))
    try:
        result = await service.transfer(source_id, destination_id, amount)
    except TransferError as e:
        logger.warning(
            "Transfer failed",
            source_id=source_id,
            destination_id=destination_id,
            amount=amount,
            error_type=type(e).__name__,
            retryable=e.retryable,
            error=str(e),
            )
        print(f"❌ Transfer failed: {e}")
        return False

    logger.info(
        "Transfer committed",
        source_id=result.source_id,
        destination_id=result.destination_id,
        amount=str(result.amount),
        )
    print(f"✅ Transferred {result.amount:.2f} from account {source_id} to account {destination_id}")
    print(f"   Account {source_id} balance: {result.source_balance:.2f}")
    print(f"   Account {destination_id} balance: {result.destination_balance:.2f}")
    return True


async def _print_balances(engine: AsyncEngine, *account_ids: int):
    async with get_session_factory(engine)() as session:
        for account_id in account_ids:
            account = await account_service.get_account_by_id(session, account_id)
            if account is not None:
                print(f"Account {account_id} balance: {account.balance:.2f}")


async def cmd_demo(engine: AsyncEngine) -> bool:
    """
    Walk through the whole flow: list, get, insert, transfer, failed transfer.

    Expects a seeded database (accounts 1 and 2 present).
    """
    session_factory = get_session_factory(engine)
    service = TransferService(session_factory)

    print("\n=== Getting all accounts ===")
    async with session_factory() as session:
        for account in await account_service.list_accounts(session):
            _print_account(account)

    print("\n=== Getting account by ID ===")
    async with session_factory() as session:
        account = await account_service.get_account_by_id(session, 1)
    if account is None:
        print("❌ Account 1 not found - run 'seed' first")
        return False
    print("Account found: ", end="")
    _print_account(account)

    print("\n=== Inserting new account ===")
    async with session_factory() as session:
        new_account, error = await account_service.create_account(
            session,
            ACCreateItem(name="Charlie Wilson", email="charlie.wilson@example.com", balance="500.00"),
            )
    if new_account is None:
        print(f"⚠️  {error}")
    else:
        print("New account inserted successfully!")

    print("\n=== Transferring balance ===")
    print("Before transfer:")
    await _print_balances(engine, 1, 2)

    transfer_amount = "100.00"
    try:
        await service.transfer(1, 2, transfer_amount)
    except TransferError as e:
        logger.warning("Demo transfer failed", error=str(e))
        print(f"❌ Error transferring balance: {e}")
    else:
        print(f"Successfully transferred {transfer_amount} from account 1 to account 2")
        print("After transfer:")
        await _print_balances(engine, 1, 2)

    print("\n=== Testing transaction rollback (insufficient balance) ===")
    try:
        await service.transfer(1, 2, "10000.00")
    except TransferError as e:
        print(f"Transaction correctly failed: {e}")
    else:
        print("Transaction should have failed but didn't!")
        return False

    print("\n=== Demo completed successfully! ===")
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Ledger account and transfer CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python ledger_cli.py init-db
  python ledger_cli.py seed
  python ledger_cli.py transfer 1 2 100.00
  python ledger_cli.py --test demo
        """
    )
    parser.add_argument("--test", action="store_true", help="Use TEST_DATABASE_URL")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init-db", help="Create the database schema")
    subparsers.add_parser("seed", help="Insert sample accounts")
    subparsers.add_parser("list-accounts", help="List all accounts")

    show_parser = subparsers.add_parser("show-account", help="Show one account")
    show_parser.add_argument("account_id", type=int, help="Account ID")

    create_parser = subparsers.add_parser("create-account", help="Create an account")
    create_parser.add_argument("name", help="Holder name")
    create_parser.add_argument("email", help="Email address")
    create_parser.add_argument("balance", nargs="?", default="0.00", help="Opening balance (default 0.00)")

    transfer_parser = subparsers.add_parser("transfer", help="Transfer money between accounts")
    transfer_parser.add_argument("source_id", type=int, help="Account to debit")
    transfer_parser.add_argument("destination_id", type=int, help="Account to credit")
    transfer_parser.add_argument("amount", help="Amount, e.g. 100.00")

    subparsers.add_parser("demo", help="Run the demo flow on a seeded database")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.test:
        set_test_mode(True)

    settings = get_settings()
    configure_logging(settings)
    if args.command == "init-db":
        return 0 if cmd_init_db(settings.DATABASE_URL) else 1

    engine = get_async_engine(settings.DATABASE_URL)

    if args.command == "seed":
        coro = cmd_seed(engine)
    elif args.command == "list-accounts":
        coro = cmd_list_accounts(engine)
    elif args.command == "show-account":
        coro = cmd_show_account(engine, args.account_id)
    elif args.command == "create-account":
        coro = cmd_create_account(engine, args.name, args.email, args.balance)
    elif args.command == "transfer":
        coro = cmd_transfer(engine, args.source_id, args.destination_id, args.amount)
    else:
        coro = cmd_demo(engine)

    ok = asyncio.run(_run(engine, coro))
    return 0 if ok else 1


async def _run(engine: AsyncEngine, coro) -> bool:
    try:
        return await coro
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
