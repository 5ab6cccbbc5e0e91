"""
Database base module.
SQLModel base classes and metadata.
Import all models here so Alembic can detect them.
"""
from sqlmodel import SQLModel

# Import all models so Alembic can detect them
from ledger.app.db.models import Account

__all__ = [
    "SQLModel",
    "Account",
    ]
