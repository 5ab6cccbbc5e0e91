"""
Ledger settings.

Values come from the process environment, then from `<project root>/.env`,
then from the defaults below. Relative SQLite paths and LOG_DIR are resolved
from the project root (see ledger.app.db.session.sqlite_path).

Test mode swaps DATABASE_URL for TEST_DATABASE_URL and turns file logging
off, so a test run never writes to the development database or log.
"""
import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent.parent

TEST_MODE_ENV = "LEDGER_TEST_MODE"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


_test_mode = _env_flag(TEST_MODE_ENV)


def set_test_mode(enabled: bool = True):
    """
    Switch test mode for this process and for subprocesses it starts
    (Alembic, pytest runs launched by test_runner.py).
    """
    global _test_mode
    _test_mode = enabled
    os.environ[TEST_MODE_ENV] = "1" if enabled else "0"


def is_test_mode() -> bool:
    return _test_mode


class Settings(BaseSettings):
    """Ledger settings (environment variables win over .env)."""
    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        )

    PROJECT_NAME: str = "Ledger"
    VERSION: str = "0.1.0"

    # Store
    DATABASE_URL: str = "sqlite:///./ledger/data/sqlite/ledger.db"
    TEST_DATABASE_URL: str = "sqlite:///./ledger/data/sqlite/test_ledger.db"
    DB_BUSY_TIMEOUT_SECONDS: float = 30.0  # SQLite wait for the write lock before a transfer fails to begin
    DB_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    LOG_DIR: str = "logs"

    @property
    def log_dir(self) -> Path:
        path = Path(self.LOG_DIR)
        return path if path.is_absolute() else PROJECT_ROOT / path


def get_settings(test_mode: Optional[bool] = None) -> Settings:
    """
    Build a fresh Settings instance.

    Args:
        test_mode: Override the process-wide test mode flag for this call

    Returns:
        Settings with DATABASE_URL pointing at the test database and
        LOG_TO_FILE disabled when test mode is on
    """
    settings = Settings()
    if is_test_mode() if test_mode is None else test_mode:
        settings.DATABASE_URL = settings.TEST_DATABASE_URL
        settings.LOG_TO_FILE = False
    return settings
