# Centralized logging configuration for the GCC High migration tooling

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import click

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

RUN_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

_LEVEL_COLORS = {
    logging.DEBUG: "bright_black",
    logging.WARNING: "yellow",
    SUCCESS: "green",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class ColorConsoleFormatter(logging.Formatter):
    """Console formatter that colors each line by severity."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        if color:
            return click.style(message, fg=color, bold=record.levelno >= logging.ERROR)
        return message


def run_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(RUN_TIMESTAMP_FORMAT)


def setup_logging(log_level: str = "INFO",
                  log_to_file: bool = True,
                  log_dir: str = "logs",
                  log_prefix: str = "gcch_migration",
                  timestamp: Optional[str] = None) -> Tuple[logging.Logger, Optional[Path], Optional[Path]]:
    """
    Set up logging for one migration run.

    Every run gets its own main log and error-only log, both stamped with the
    run timestamp and opened in append mode. Console output is colored by
    severity.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files
        log_dir: Directory for log files
        log_prefix: File name prefix, e.g. "export" or "import"
        timestamp: Run timestamp (yyyyMMdd_HHmmss); generated when omitted

    Returns:
        Tuple of (root logger, main log path, error log path)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    stamp = timestamp or run_timestamp()

    logger = logging.getLogger()
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_formatter = logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(ColorConsoleFormatter(fmt='%(message)s'))
    logger.addHandler(console_handler)

    main_log_file = None
    error_log_file = None
    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        main_log_file = log_path / f"{log_prefix}_{stamp}.log"
        file_handler = logging.FileHandler(main_log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

        # Error log file (only errors and critical)
        error_log_file = log_path / f"{log_prefix}_errors_{stamp}.log"
        error_handler = logging.FileHandler(error_log_file, mode='a', encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        logger.addHandler(error_handler)

    for noisy in ('httpx', 'httpcore', 'urllib3', 'requests'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("=" * 80)
    logger.info(f"GCC HIGH MIGRATION LOGGING INITIALIZED ({log_prefix})")
    logger.info(f"Log Level: {log_level}")
    if log_to_file:
        logger.info(f"Main Log: {os.path.abspath(main_log_file)}")
        logger.info(f"Error Log: {os.path.abspath(error_log_file)}")
    logger.info("=" * 80)

    return logger, main_log_file, error_log_file


def log_success(logger: logging.Logger, message: str) -> None:
    logger.log(SUCCESS, message)


def log_migration_action(subject: str, action: str, result: str,
                         details: Optional[str] = None,
                         logger: Optional[logging.Logger] = None) -> None:
    """
    Log a single migration decision with structured format.

    Args:
        subject: Object being processed (group name, "Group -> Member", ...)
        action: Action being performed (e.g. "CREATE_GROUP", "ADD_MEMBER")
        result: "SUCCESS", "FAILED", "SKIPPED", "NOT_FOUND", "PREVIEW", "PRESENT"
        details: Additional details about the action
    """
    logger = logger or logging.getLogger(__name__)

    message = f"MIGRATION_ACTION | {subject} | {action} | {result}"
    if details:
        message += f" | {details}"

    if result == "SUCCESS":
        logger.log(SUCCESS, message)
    elif result in ("FAILED", "NOT_FOUND"):
        logger.error(message)
    elif result == "SKIPPED":
        logger.warning(message)
    else:
        logger.info(message)
