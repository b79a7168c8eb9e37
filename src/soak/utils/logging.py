"""
Logging utilities for the soak harness.
Provides structured logging with rotation, systemd journal integration and
a run-scoped context id so that every line emitted by a run's foreground
loop and background tasks carries that run's identifier.
"""

import logging
import logging.handlers
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any

# Context variable holding the id of the run whose task is logging
run_context: ContextVar[str | None] = ContextVar("run_context", default=None)

NO_RUN = "no-run"


class RunContextFilter(logging.Filter):
    """Add the active run id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_context.get() or NO_RUN
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter that prefixes messages with the run id when one is set."""

    def format(self, record: logging.LogRecord) -> str:
        run_id = getattr(record, "run_id", NO_RUN)
        if run_id != NO_RUN:
            # Copy so other handlers see the unprefixed record
            record = logging.makeLogRecord(record.__dict__)
            record.msg = f"[run {run_id}] {record.getMessage()}"
            record.args = ()

        return super().format(record)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    log_file_path: str | None = None,
    log_file_max_bytes: int = 10485760,  # 10 MB
    log_file_backup_count: int = 5,
    enable_console: bool = True,
    enable_file: bool = True,
    enable_journal: bool = False,
) -> None:
    """
    Set up logging configuration with multiple handlers.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log message format string
        log_file_path: Path to log file
        log_file_max_bytes: Maximum size of log file before rotation
        log_file_backup_count: Number of backup files to keep
        enable_console: Enable console logging
        enable_file: Enable file logging
        enable_journal: Enable systemd journal logging
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    formatter = StructuredFormatter(log_format)
    context_filter = RunContextFilter()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(context_filter)
        root_logger.addHandler(console_handler)

    # Soak runs last days, so file output always rotates
    if enable_file and log_file_path:
        log_path = Path(log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path, maxBytes=log_file_max_bytes, backupCount=log_file_backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(context_filter)
        root_logger.addHandler(file_handler)

    if enable_journal:
        try:
            from systemd.journal import JournalHandler

            journal_handler = JournalHandler(SYSLOG_IDENTIFIER="soak-harness")
            journal_handler.setFormatter(formatter)
            journal_handler.addFilter(context_filter)
            root_logger.addHandler(journal_handler)
        except ImportError:
            # systemd-python is an optional system package
            if sys.platform.startswith("linux"):
                logging.warning("systemd-python not installed, journal logging disabled")

    logging.info(f"Logging configured with level: {log_level}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def get_run_context() -> str | None:
    """Return the run id bound to the current context, if any."""
    return run_context.get()


class LogContext:
    """Context manager that binds a run id for the duration of a block."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self._token = None

    def __enter__(self) -> str:
        self._token = run_context.set(self.run_id)
        return self.run_id

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._token is not None:
            run_context.reset(self._token)
            self._token = None
