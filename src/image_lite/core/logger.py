"""Logging system with file and console output.

Console output goes through a Rich handler with a custom theme; file output
goes to a size-rotated log under ``~/.local/share/image_lite/logs``. All
application loggers live under the ``image_lite`` namespace.

Example:
    >>> import logging
    >>> logger = logging.getLogger(__name__)
    >>> logger.info("Starting optimization")

    >>> # Configure log level globally
    >>> from image_lite.core.logger import configure_logging
    >>> configure_logging(level="DEBUG", log_dir=Path("/custom/path"))
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from image_lite.utils.constants import BYTES_PER_MB, DEFAULT_LOG_DIR

ROOT_LOGGER_NAME = "image_lite"
LOG_FILE_NAME = "image_lite.log"
DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = "[%(asctime)s] %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_SIZE = 10 * BYTES_PER_MB
BACKUP_COUNT = 5

# Custom theme for console output
CUSTOM_THEME = Theme(
    {
        "logging.level.debug": "dim cyan",
        "logging.level.info": "green",
        "logging.level.warning": "yellow",
        "logging.level.error": "bold red",
        "logging.level.critical": "bold white on red",
    }
)

# Global state
_log_dir: Path = DEFAULT_LOG_DIR
_log_level: int = DEFAULT_LOG_LEVEL
_console: Console | None = None


def _get_console() -> Console:
    """Get or create the Rich console instance."""
    global _console
    if _console is None:
        _console = Console(theme=CUSTOM_THEME, stderr=True)
    return _console


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        resolved: int = getattr(logging, level.upper(), DEFAULT_LOG_LEVEL)
        return resolved
    return level


def _create_file_handler() -> RotatingFileHandler:
    """Create a rotating file handler for the logger.

    Returns:
        RotatingFileHandler: Configured file handler with rotation.
    """
    _log_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=str(_log_dir / LOG_FILE_NAME),
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt=DEFAULT_LOG_FORMAT, datefmt=DEFAULT_DATE_FORMAT))
    handler.setLevel(_log_level)

    return handler


def _create_console_handler() -> RichHandler:
    """Create a Rich console handler with colored output."""
    handler = RichHandler(
        console=_get_console(),
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setLevel(_log_level)

    return handler


def configure_logging(
    level: int | str = DEFAULT_LOG_LEVEL,
    log_dir: Path | None = None,
    console_output: bool = True,
    file_output: bool = True,
) -> None:
    """Configure the ``image_lite`` logger.

    Subsequent calls replace the handlers installed by earlier calls.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Can be either an integer or string.
        log_dir: Directory for log files. Default: ~/.local/share/image_lite/logs
        console_output: Whether to output logs to console. Default: True.
        file_output: Whether to output logs to file. Default: True.

    Example:
        >>> configure_logging(level="DEBUG")
        >>> configure_logging(level=logging.WARNING, file_output=False)
    """
    global _log_dir, _log_level

    _log_level = _resolve_level(level)

    if log_dir is not None:
        _log_dir = log_dir

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(_log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    if console_output:
        root_logger.addHandler(_create_console_handler())

    if file_output:
        try:
            root_logger.addHandler(_create_file_handler())
        except OSError as e:
            root_logger.warning(f"File logging disabled, cannot write to {_log_dir}: {e}")


def set_log_level(level: int | str) -> None:
    """Set the log level for all image_lite loggers.

    Args:
        level: Log level name or number.
    """
    global _log_level

    _log_level = _resolve_level(level)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(_log_level)

    for handler in root_logger.handlers:
        handler.setLevel(_log_level)


def get_log_file_path() -> Path:
    """Get the path to the current log file."""
    return _log_dir / LOG_FILE_NAME


__all__ = [
    "configure_logging",
    "get_log_file_path",
    "set_log_level",
    "DEFAULT_LOG_LEVEL",
    "ROOT_LOGGER_NAME",
]
