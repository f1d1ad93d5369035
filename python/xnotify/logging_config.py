"""
Logging configuration for xnotify.

stdout is reserved for event lines (other programs parse it), so all logs go
to stderr. Task output is streamed to stderr too.

A daily log file can be added with log_dir: <log_dir>/xnotify-YYYY-MM-DD.log
"""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    backup_count: int = 7,  # Keep a week of logs
    stream=None,
) -> logging.Logger:
    """
    Set up stderr logging for xnotify, plus an optional rotating log file.

    Args:
        level: Logging level (default: INFO)
        log_dir: Directory for daily log files (default: no file logging)
        backup_count: Number of daily backup files to keep
        stream: Console stream (default: sys.stderr)

    Returns:
        Configured logger instance
    """
    stream = stream or sys.stderr

    logger = logging.getLogger("xnotify")
    logger.setLevel(level)

    has_file_handler = any(
        isinstance(h, logging.handlers.TimedRotatingFileHandler)
        for h in logger.handlers
    )
    has_console_handler = any(
        type(h) is logging.StreamHandler and h.stream is stream
        for h in logger.handlers
    )

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    if not has_console_handler:
        console_handler = logging.StreamHandler(stream)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_dir is not None and not has_file_handler:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"xnotify-{datetime.now().strftime('%Y-%m-%d')}.log"

        class FlushingHandler(logging.handlers.TimedRotatingFileHandler):
            """Handler that flushes after every emit for immediate visibility."""

            def emit(self, record):
                super().emit(record)
                self.flush()

        file_handler = FlushingHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)
        logger.debug(f"Log file: {log_file}")

    return logger


def get_logger(name: str = "xnotify") -> logging.Logger:
    """
    Get xnotify logger instance.

    Args:
        name: Logger name (default: "xnotify")

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
