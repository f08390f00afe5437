"""
Logging setup for the signal engine, scanner and command-line apps.

Console output is colored by level; an optional log file rotates by size and
can be written as JSON lines for log shippers. The apps read their settings
from LOG_LEVEL, LOG_FILE, LOG_JSON and LOG_CONSOLE.
"""

import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"line": %(lineno)d, "message": "%(message)s"}'
)
JSON_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers that are chatty at INFO during a scan
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps the level name in an ANSI color."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        color = self.COLORS.get(levelname)
        if color:
            record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # Other handlers see the same record
            record.levelname = levelname


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class LogSettings:
    """Logging options for the command-line apps."""

    level: str = "INFO"
    log_file: Optional[str] = None
    json_format: bool = False
    console: bool = True

    @classmethod
    def from_env(cls) -> "LogSettings":
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            json_format=_env_flag("LOG_JSON", False),
            console=_env_flag("LOG_CONSOLE", True),
        )


def _file_handler(
    log_file: str, rotation: bool, max_bytes: int, backup_count: int
) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    if rotation:
        return logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    return logging.FileHandler(log_file, encoding="utf-8")


def setup_logging(
    name: Optional[str] = None,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
    rotation: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure a logger (the root logger by default).

    Existing handlers on that logger are replaced, so calling this twice does
    not duplicate output.

    Args:
        name: Logger name (None for the root logger)
        level: Level name; falls back to LOG_LEVEL, then INFO
        log_file: Log file path; falls back to LOG_FILE, no file when unset
        console: Log to stdout
        json_format: Emit JSON lines instead of text
        rotation: Rotate the log file by size
        max_bytes: Rotation size
        backup_count: Rotated files kept

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    log_file = log_file if log_file is not None else os.getenv("LOG_FILE")

    logger.setLevel(numeric_level)
    logger.handlers.clear()

    if json_format:
        fmt, datefmt = JSON_FORMAT, JSON_DATE_FORMAT
    else:
        fmt, datefmt = TEXT_FORMAT, TEXT_DATE_FORMAT

    if console:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(fmt, datefmt) if json_format else ColoredFormatter(fmt, datefmt)
        )
        logger.addHandler(handler)

    if log_file:
        handler = _file_handler(log_file, rotation, max_bytes, backup_count)
        handler.setFormatter(logging.Formatter(fmt, datefmt))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(numeric_level)

    # Named loggers keep their output to themselves
    logger.propagate = name is None
    return logger


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    message: str = "An exception occurred",
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its traceback.

    Example:
        >>> try:
        ...     engine.evaluate(...)
        ... except ValueError as e:
        ...     log_exception(logger, e, "Evaluation failed")
    """
    logger.log(level, f"{message}: {exc}", exc_info=exc)


def configure_default_logging(settings: Optional[LogSettings] = None) -> None:
    """Configure the root logger for the apps (settings from the environment by default)."""
    settings = settings or LogSettings.from_env()
    setup_logging(
        level=settings.level,
        log_file=settings.log_file,
        console=settings.console,
        json_format=settings.json_format,
    )
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger("scalp_signals").debug("Logging configured: %s", settings)
