"""
Database engine and session management.

Engines are built on demand from a database URL and handed to the code that
needs them; nothing here keeps a module-level engine or session.

SQLite engines are configured so that every transaction starts with
BEGIN IMMEDIATE: the database write lock is taken when the transaction
begins, which serializes concurrent read-check-write sequences such as a
balance transfer. Row-locking stores (PostgreSQL) get the same guarantee
from SELECT ... FOR UPDATE issued by the account store.
"""
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event, Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    )
from sqlalchemy.pool import NullPool

from ledger.app.config import get_settings, PROJECT_ROOT
from ledger.app.db.base import SQLModel


SQLITE_PREFIXES = ("sqlite+aiosqlite:///", "sqlite:///")


def sqlite_path(db_url: str) -> Optional[Path]:
    """
    Resolve the file behind a SQLite URL.

    Relative paths are resolved from the project root, so the same URL
    points at the same file whatever the working directory.

    Returns:
        Absolute Path, or None for non-SQLite and in-memory URLs
    """
    for prefix in SQLITE_PREFIXES:
        if db_url.startswith(prefix):
            raw = db_url[len(prefix):]
            if not raw or raw == ":memory:":
                return None
            db_path = Path(raw)
            return db_path if db_path.is_absolute() else (PROJECT_ROOT / db_path).resolve()
    return None


def _prepare_db_url(db_url: str) -> str:
    """Make SQLite file URLs absolute and create their directory."""
    db_path = sqlite_path(db_url)
    if db_path is None:
        return db_url
    db_path.parent.mkdir(parents=True, exist_ok=True)
    prefix = next(p for p in SQLITE_PREFIXES if db_url.startswith(p))
    return f"{prefix}{db_path}"


def to_async_url(db_url: str) -> str:
    """
    Map a plain database URL to its async driver variant.

    URLs that already name a driver (e.g. sqlite+aiosqlite://) are returned unchanged.

    Examples:
        sqlite:///./ledger.db        -> sqlite+aiosqlite:///./ledger.db
        postgresql://u:p@host/db     -> postgresql+asyncpg://u:p@host/db
    """
    if db_url.startswith("sqlite://"):
        return db_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if db_url.startswith("postgresql://"):
        return db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def _configure_sqlite(engine: Engine, busy_timeout_seconds: float) -> None:
    """
    Attach SQLite connection hooks to a (sync) engine.

    - foreign keys enforced
    - busy timeout: how long a connection waits for the write lock
    - the driver's implicit BEGIN is disabled and replaced by BEGIN IMMEDIATE

    For async engines, pass engine.sync_engine.
    """
    busy_timeout_ms = int(busy_timeout_seconds * 1000)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        # Let the "begin" hook below emit BEGIN instead of the driver
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_sync_engine(db_url: Optional[str] = None) -> Engine:
    """
    Create a SYNC database engine.

    Used by:
    - Alembic migrations
    - Scripts that do not run an event loop

    Args:
        db_url: Database URL. Defaults to settings.DATABASE_URL.

    Returns:
        Engine: SQLAlchemy sync engine
    """
    settings = get_settings()
    db_url = db_url or settings.DATABASE_URL
    db_url = _prepare_db_url(db_url)

    engine = create_engine(
        db_url,
        echo=settings.DB_ECHO,
        poolclass=NullPool,
        )
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine, settings.DB_BUSY_TIMEOUT_SECONDS)
    return engine


def get_async_engine(db_url: Optional[str] = None) -> AsyncEngine:
    """
    Create an async database engine.

    Args:
        db_url: Database URL (plain or async form). Defaults to settings.DATABASE_URL.

    Returns:
        AsyncEngine: SQLAlchemy async engine (aiosqlite for SQLite, asyncpg for PostgreSQL)
    """
    settings = get_settings()
    db_url = db_url or settings.DATABASE_URL
    db_url = _prepare_db_url(db_url)

    engine = create_async_engine(
        to_async_url(db_url),
        echo=settings.DB_ECHO,
        # NullPool: each session gets its own connection
        poolclass=NullPool,
        )
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine.sync_engine, settings.DB_BUSY_TIMEOUT_SECONDS)
    return engine


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build the session factory handed to services.

    Usage:
        engine = get_async_engine()
        service = TransferService(get_session_factory(engine))
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables known to SQLModel metadata (no-op for existing tables)."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
