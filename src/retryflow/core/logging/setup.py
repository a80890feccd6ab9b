"""Logging setup and configuration."""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from retryflow.core.logging.context import set_log_context
from retryflow.core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_BACKUP_COUNT = 7

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiokafka",
    "asyncio",
]


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else DEFAULT_CONSOLE_LEVEL
    return level


def setup_logging(
    level: int | str = DEFAULT_CONSOLE_LEVEL,
    json_format: bool = False,
    log_file: Path | None = None,
    file_level: int | str = DEFAULT_FILE_LEVEL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    worker_id: str | None = None,
) -> logging.Logger:
    """
    Configure the root logger with a console handler and an optional
    daily-rotating file handler.

    Args:
        level: Console handler level (default: INFO)
        json_format: Emit JSON lines on the console instead of human-readable text
        log_file: Optional log file path; file output is always JSON
        file_level: File handler level (default: DEBUG)
        backup_count: Number of rotated files to keep
        suppress_noisy: Quiet down client library loggers
        worker_id: Worker identifier for log context

    Returns:
        The configured root logger
    """
    if worker_id:
        set_log_context(worker_id=worker_id)

    console_level = _coerce_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_file,
            when=DEFAULT_ROTATION_WHEN,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(_coerce_level(file_level))
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    return root_logger
