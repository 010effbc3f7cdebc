"""
Logging for SubScout.

Every logger lives under the ``subscout`` namespace. ``setup_logger``
configures that root; components ask for children with
``get_logger("<component>")`` and inherit its handlers. Records may carry a
dict of structured fields (``*_with_data``), which the JSON file formatter
writes as ``data`` and the console formatter appends as ``key=value`` pairs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER = "subscout"

# LogRecord attribute holding the structured fields
DATA_ATTR = "extra_data"

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for the log file."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        data = getattr(record, DATA_ATTR, None)
        if data:
            entry["data"] = data

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line console output, optionally colored by level."""

    def __init__(self, use_colors: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_colors and record.levelname in LEVEL_COLORS:
            level = f"{LEVEL_COLORS[record.levelname]}{level}{RESET}"

        line = f"{self.formatTime(record, self.datefmt)} | {level} | {record.name} | {record.getMessage()}"

        data = getattr(record, DATA_ATTR, None)
        if data:
            line += " | " + " ".join(f"{key}={value}" for key, value in data.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


class SubScoutLogger(logging.Logger):
    """Logger whose records can carry structured fields."""

    def log_with_data(
        self,
        level: int,
        msg: str,
        data: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> None:
        if data:
            kwargs.setdefault("extra", {})[DATA_ATTR] = data
        self.log(level, msg, **kwargs)

    def info_with_data(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self.log_with_data(logging.INFO, msg, data, **kwargs)

    def warning_with_data(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self.log_with_data(logging.WARNING, msg, data, **kwargs)

    def error_with_data(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self.log_with_data(logging.ERROR, msg, data, **kwargs)


logging.setLoggerClass(SubScoutLogger)


def setup_logger(
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    max_size_mb: int = 10,
    backup_count: int = 5,
) -> SubScoutLogger:
    """
    Configure the ``subscout`` root logger, replacing any earlier setup.

    Console output goes to stderr. If the log file cannot be opened the
    failure is reported on the console and logging continues without it.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: File output format ('json' or 'text')
        log_file: Path to a rotating log file (optional)
        max_size_mb: Size at which the log file rotates
        backup_count: Rotated files to keep

    Returns:
        The root logger
    """
    root = logging.getLogger(ROOT_LOGGER)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(TextFormatter(use_colors=sys.stderr.isatty()))
    root.addHandler(console_handler)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            root.warning(f"Cannot open log file {log_file}, logging to console only: {e}")
        else:
            if log_format == "json":
                file_handler.setFormatter(JSONFormatter())
            else:
                file_handler.setFormatter(TextFormatter(use_colors=False))
            root.addHandler(file_handler)

    return root


def get_logger(component: Optional[str] = None) -> SubScoutLogger:
    """
    Get the logger for a component, e.g. ``get_logger("cache")`` for
    ``subscout.cache``. Without a component the root logger is returned.
    """
    if not component or component == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if component.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(component)
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")
