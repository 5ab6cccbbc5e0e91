"""
Account Service

Account CRUD and sample data, used by the CLI and the tests.
Balances are only read here; they change through TransferService.
"""
from typing import Optional

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from ledger.app.db.models import Account
from ledger.app.schemas.accounts import ACCreateItem
from ledger.app.utils.datetime_utils import utcnow

logger = structlog.get_logger(__name__)

# Sample accounts inserted by seed_accounts()
SAMPLE_ACCOUNTS = [
    ACCreateItem(name="John Doe", email="john.doe@example.com", balance="1000.00"),
    ACCreateItem(name="Jane Smith", email="jane.smith@example.com", balance="1500.00"),
    ACCreateItem(name="Bob Johnson", email="bob.johnson@example.com", balance="750.00"),
    ACCreateItem(name="Alice Brown", email="alice.brown@example.com", balance="2000.00"),
    ]


async def get_account_by_id(session: AsyncSession, account_id: int) -> Optional[Account]:
    """
    Get account by ID.

    Args:
        session: Database session
        account_id: Account ID

    Returns:
        Account or None if not found
    """
    stmt = select(Account).where(Account.id == account_id)
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_account_by_email(session: AsyncSession, email: str) -> Optional[Account]:
    """
    Get account by email (case-insensitive, emails are stored lowercase).

    Args:
        session: Database session
        email: Email to search

    Returns:
        Account or None if not found
    """
    stmt = select(Account).where(Account.email == email.strip().lower())
    result = await session.execute(stmt)
    return result.scalars().first()


async def list_accounts(session: AsyncSession) -> list[Account]:
    """
    List all accounts ordered by ID.

    Args:
        session: Database session

    Returns:
        List of all accounts
    """
    stmt = select(Account).order_by(Account.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_account(session: AsyncSession, item: ACCreateItem) -> tuple[Optional[Account], Optional[str]]:
    """
    Create a new account and commit it.

    Args:
        session: Database session
        item: Validated account data

    Returns:
        Tuple of (account, error). account is None if creation failed.
    """
    if await get_account_by_email(session, item.email):
        return None, f"Email '{item.email}' already exists"

    account = Account(
        name=item.name,
        email=item.email,
        balance=item.balance,
        created_at=utcnow(),
        updated_at=utcnow(),
        )
    session.add(account)
    await session.commit()
    await session.refresh(account)

    logger.info("Account created", account_id=account.id, email=account.email, balance=str(account.balance))
    return account, None


async def seed_accounts(session: AsyncSession) -> int:
    """
    Insert the sample accounts, skipping emails that already exist.

    Running it again is harmless.

    Returns:
        Number of accounts inserted
    """
    inserted = 0
    for item in SAMPLE_ACCOUNTS:
        if await get_account_by_email(session, item.email):
            continue
        session.add(Account(
            name=item.name,
            email=item.email,
            balance=item.balance,
            created_at=utcnow(),
            updated_at=utcnow(),
            ))
        inserted += 1

    await session.commit()
    logger.info("Sample accounts seeded", inserted=inserted, skipped=len(SAMPLE_ACCOUNTS) - inserted)
    return inserted
