# =============================================================================
# sfa_core/logging/config.py
# Logging Configuration for the SFA Sync Core
# =============================================================================

import logging
import os
import sys
import time
from datetime import date
from pathlib import Path
from typing import Optional, Union

# Thread name included: overlapping syncs for different accounts interleave
LOG_FORMAT = "%(asctime)s | %(threadName)s | %(name)s | %(levelname)s | %(message)s"

LOG_DIR = Path("logs")
LOG_LEVEL_ENV = "SFA_LOG_LEVEL"

# Transport libraries log every pooled connection at DEBUG
QUIET_LOGGERS = ("urllib3", "requests")


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {level!r}")
    return resolved


def daily_log_path(log_dir: Path, day: Optional[date] = None) -> Path:
    """sfa_YYYY-MM-DD.log inside log_dir"""
    day = day or date.today()
    return log_dir / f"sfa_{day.isoformat()}.log"


def setup_logging(
    level: Union[int, str, None] = None,
    log_to_file: bool = True,
    log_dir: Optional[Path] = None,
) -> Optional[Path]:
    """
    Configure root logging for the sync core.

    Args:
        level: Level number or name; defaults to $SFA_LOG_LEVEL, then INFO
        log_to_file: Also append to a daily file under log_dir
        log_dir: Directory for the daily file (default: ./logs)

    Returns:
        Path of the log file, or None when logging to stdout only
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    log_path = None

    if log_to_file:
        directory = Path(log_dir) if log_dir is not None else LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        log_path = daily_log_path(directory)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=_resolve_level(level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("sfa_core").info(
        f"Logging initialized ({log_path or 'stdout only'})"
    )
    return log_path


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Logs start, completion and failure of a timed operation.

    A failure carrying `recoverable=True` (a classified network, timeout or
    backend error) is logged as a warning, anything else as an error.
    Exceptions are never suppressed.

    Usage:
        with LogContext(logger, "Syncing dashboard and catalog for EXE123"):
            coordinator.sync_catalog_and_dashboard("EXE123")
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.started: Optional[float] = None
        self.elapsed: Optional[float] = None

    def __enter__(self):
        self.started = time.monotonic()
        self.logger.info(f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.monotonic() - self.started

        if exc_type is None:
            self.logger.info(f"{self.operation}... completed ({self.elapsed:.2f}s)")
            return False

        level = logging.WARNING if getattr(exc_val, "recoverable", False) else logging.ERROR
        self.logger.log(level, f"{self.operation}... failed ({self.elapsed:.2f}s): {exc_val}")
        return False
