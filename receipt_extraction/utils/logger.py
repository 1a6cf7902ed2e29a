"""
Logging setup for the receipt pipeline.

Every module logs through a child of the ``receipt_extraction`` logger, so a
single call to setup_logger() (or setup_logger_from_config() from the CLI)
decides where pipeline output goes: a colored stdout stream and, optionally,
a size-rotated log file.

Usage:
    from receipt_extraction.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Receipt #%d queued", number)

Author: ML Engineering Team
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List, Optional, Union

import colorama
from colorama import Fore, Style

colorama.init()

ROOT_LOGGER_NAME = "receipt_extraction"

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024


class ColoredFormatter(logging.Formatter):
    """
    Console formatter that paints the level name.

    Only the level column is colored so that receipt text (often Arabic,
    right-to-left) in the message stays readable in terminals that mangle
    escape sequences around bidirectional runs.
    """

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            record.levelname = f"{color}{original:<8}{Style.RESET_ALL}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown logging level: {level!r}")
    return resolved


def _console_handler(fmt: str, datefmt: str, colorize: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    formatter_class = ColoredFormatter if colorize else logging.Formatter
    handler.setFormatter(formatter_class(fmt, datefmt=datefmt))
    return handler


def _file_handler(
    log_file: Union[str, Path],
    fmt: str,
    datefmt: str,
    max_bytes: int,
    backup_count: int
) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def setup_logger(
    level: Union[str, int] = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = 5,
    colorize: bool = True
) -> logging.Logger:
    """
    Install the pipeline's handlers on the ``receipt_extraction`` logger.

    Calling it again replaces the previous handlers, so the CLI and tests can
    reconfigure logging freely.

    Args:
        level: Level name or number applied to the logger and its handlers.
        log_format: Record format; DEFAULT_FORMAT when omitted.
        date_format: Timestamp format; DEFAULT_DATE_FORMAT when omitted.
        log_file: Enables a RotatingFileHandler writing to this path.
        max_bytes: Size at which the log file is rotated.
        backup_count: Rotated files to keep.
        colorize: Color the level column on the console.

    Returns:
        The configured package logger.

    Raises:
        ValueError: If the level name is not a logging level.
    """
    numeric_level = _resolve_level(level)
    fmt = log_format or DEFAULT_FORMAT
    datefmt = date_format or DEFAULT_DATE_FORMAT

    handlers: List[logging.Handler] = [_console_handler(fmt, datefmt, colorize)]
    if log_file:
        handlers.append(_file_handler(log_file, fmt, datefmt, max_bytes, backup_count))

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(numeric_level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setLevel(numeric_level)
        package_logger.addHandler(handler)
    package_logger.propagate = False

    package_logger.debug(
        "Logging configured (level=%s, file=%s)",
        logging.getLevelName(numeric_level), log_file or "-"
    )
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, nested under the package logger."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logger_from_config() -> logging.Logger:
    """Configure logging from the ``logging`` section of settings.yaml."""
    from receipt_extraction.config import get_config

    log_file = None
    if get_config("logging.file.enabled", False):
        log_file = get_config("logging.file.path")

    return setup_logger(
        level=get_config("logging.level", "INFO"),
        log_format=get_config("logging.format"),
        date_format=get_config("logging.date_format"),
        log_file=log_file,
        max_bytes=get_config("logging.file.max_bytes", DEFAULT_MAX_BYTES),
        backup_count=get_config("logging.file.backup_count", 5),
        colorize=get_config("logging.console.colorize", True)
    )
