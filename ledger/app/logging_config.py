"""
Structured logging for the Ledger.

structlog is wired on top of stdlib logging through ProcessorFormatter, so
log records from structlog loggers and from libraries (SQLAlchemy, Alembic)
share one pipeline:

- console (stderr): key=value lines, readable next to the CLI output on stdout
- file (Settings.LOG_DIR/ledger.log): one JSON object per line, rotated every
  Monday (UTC), rotated files gzip-compressed, 52 kept

Level and file toggle come from Settings (LOG_LEVEL, LOG_TO_FILE); test mode
disables the file handler.
"""
import gzip
import logging
import logging.handlers
import shutil
import sys
from pathlib import Path
from typing import Optional

import structlog

from ledger.app.config import Settings, get_settings

LOG_FILE_NAME = "ledger.log"

# Applied to structlog events and to plain stdlib records alike
_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    ]


def _gzip_rotator(source: str, dest: str) -> None:
    with open(source, "rb") as f_in, gzip.open(dest, "wb") as f_out:
        shutil.copyfileobj(f_in, f_out)
    Path(source).unlink()


def _formatter(*renderers) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
        foreign_pre_chain=_SHARED_PROCESSORS,
        )


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / LOG_FILE_NAME),
        when="W0",
        backupCount=52,
        encoding="utf-8",
        utc=True,
        )
    handler.namer = lambda name: name + ".gz"
    handler.rotator = _gzip_rotator
    handler.setFormatter(_formatter(
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
        ))
    return handler


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Install the console handler (and the file handler when enabled) on the
    root logger, replacing any handler already there.

    Args:
        settings: Defaults to get_settings()
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(structlog.dev.ConsoleRenderer(colors=False)))
    handlers = [console]
    if settings.LOG_TO_FILE:
        handlers.append(_file_handler(settings.log_dir))

    logging.basicConfig(level=level, handlers=handlers, force=True)

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
        )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("Transfer committed", source_id=1, amount="10.00")
    """
    return structlog.get_logger(name)
