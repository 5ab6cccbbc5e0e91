"""
Database bootstrap: run Alembic migrations when the database is missing.
"""
import sqlite3
import subprocess
from pathlib import Path
from typing import Optional

from ledger.app.config import get_settings, PROJECT_ROOT
from ledger.app.db.session import sqlite_path
from ledger.app.logging_config import get_logger

logger = get_logger(__name__)

ALEMBIC_INI = PROJECT_ROOT / "ledger" / "alembic.ini"


def needs_migration(db_path: Path) -> bool:
    """True if the SQLite file is missing, empty, unreadable or has no tables."""
    if not db_path.exists():
        logger.warning("Database file not found, running migrations", db_path=str(db_path))
        return True
    if db_path.stat().st_size == 0:
        logger.warning("Database file is empty (0 bytes), running migrations", db_path=str(db_path))
        return True

    try:
        conn = sqlite3.connect(str(db_path))
        try:
            cursor = conn.execute(
                "SELECT count(*) FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
                )
            table_count = cursor.fetchone()[0]
        finally:
            conn.close()
    except sqlite3.DatabaseError as e:
        logger.warning(f"Database appears corrupted, running migrations: {e}", db_path=str(db_path))
        return True

    if table_count == 0:
        logger.warning("Database has no tables, running migrations", db_path=str(db_path))
        return True

    logger.info(f"Database initialized with {table_count} tables", db_path=str(db_path))
    return False


def run_migrations(db_url: str) -> None:
    """
    Run `alembic upgrade head` against db_url.

    Raises:
        RuntimeError: If Alembic exits with a non-zero status
    """
    logger.info("Running Alembic migrations...")
    result = subprocess.run(
        ["alembic", "-c", str(ALEMBIC_INI), "-x", f"sqlalchemy.url={db_url}", "upgrade", "head"],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        )
    if result.returncode != 0:
        logger.error("Failed to migrate database", stderr=result.stderr)
        raise RuntimeError(f"Alembic migration failed: {result.stderr.strip()}")
    logger.info("Database created and migrated successfully")


def ensure_database_exists(db_url: Optional[str] = None) -> None:
    """
    Ensure the database exists and is migrated.

    For SQLite, migrations run only when the file is missing, empty or has
    no tables. Other databases are always brought to head (a no-op when
    already migrated).
    """
    db_url = db_url or get_settings().DATABASE_URL
    db_path = sqlite_path(db_url)

    if db_path is None:
        run_migrations(db_url)
        return

    if needs_migration(db_path):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        run_migrations(f"sqlite:///{db_path}")
