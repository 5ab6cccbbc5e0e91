"""
Database module exports.
"""
from ledger.app.db.base import SQLModel, Account
from ledger.app.db.session import (
    get_sync_engine,
    get_async_engine,
    get_session_factory,
    create_schema,
    )

__all__ = [
    "SQLModel",
    "get_sync_engine",  # For sync scripts (migrations, checks)
    "get_async_engine",  # For services and the CLI
    "get_session_factory",
    "create_schema",
    "Account",
    ]
