"""Logging configuration for StoryGuard."""

import logging
import sys
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from storyguard.settings import LOGS_DIR

DEFAULT_LOG_FILE = LOGS_DIR / "storyguard.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(correlation_id)s] %(name)s: %(message)s"


class ContextFilter(logging.Filter):
    """Add context information to log records."""

    def __init__(self) -> None:
        super().__init__()
        self.correlation_id: str | None = None

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation ID to log record if available."""
        record.correlation_id = self.correlation_id or "-"
        return True


class FlushingRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that flushes immediately after each record.

    Auto-backup runs on a timer thread, so records must reach disk even if
    the process is killed between ticks.
    """

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self.flush()


_context_filter = ContextFilter()


def setup_logging(level: str = "INFO", log_file: str | None = "default") -> Path | None:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: File path for logs. "default" uses output/logs/storyguard.log,
                  None disables file logging.

    Returns:
        The log file path in use, or None when file logging is off.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    # Filter must be on HANDLERS, not logger, for child logger records
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file == "default":
        log_path: Path | None = DEFAULT_LOG_FILE
    elif log_file:
        log_path = Path(log_file)
    else:
        log_path = None

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # Max 10MB per file, keep 5 backup files (50MB total)
        file_handler = FlushingRotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)
        root_logger.info("Logging to file: %s (max 10MB, 5 backups)", log_path)

    return log_path


@contextmanager
def log_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Context manager for setting correlation ID in logs.

    Args:
        correlation_id: Optional correlation ID. If not provided, generates a new UUID.

    Yields:
        The correlation ID being used.

    Example:
        with log_context("backup-tick"):
            logger.info("Creating backup")  # Will include correlation_id in log
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())[:8]

    old_id = _context_filter.correlation_id
    _context_filter.correlation_id = correlation_id
    try:
        yield correlation_id
    finally:
        _context_filter.correlation_id = old_id


@contextmanager
def log_performance(logger: logging.Logger, operation: str) -> Generator[None, None, None]:
    """Context manager for logging operation performance.

    Args:
        logger: Logger instance to use
        operation: Name of the operation being timed

    Example:
        with log_performance(logger, "book_analysis"):
            analyze()  # Will log duration after completion
    """
    start_time = time.perf_counter()
    logger.info("%s: Starting", operation)
    try:
        yield
    except Exception as e:
        duration = time.perf_counter() - start_time
        logger.error("%s: Failed after %.2fs - %s", operation, duration, e)
        raise
    else:
        duration = time.perf_counter() - start_time
        logger.info("%s: Completed in %.2fs", operation, duration)
