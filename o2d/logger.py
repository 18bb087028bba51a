"""Logging configuration for O2D."""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

# Between INFO and DEBUG: per-step chatter shown with --verbose
VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

DEFAULT_FORMAT = "[ %(levelname)-8s ] %(message)s"


def setup_logger(
    name: str = "o2d",
    level: Union[int, str] = logging.INFO,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """Set up and configure logger.

    Args:
        name: Logger name
        level: Logging level
        format_string: Custom format string

    Returns:
        Configured logger instance
    """
    if format_string is None:
        format_string = DEFAULT_FORMAT

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplication
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(format_string))
    logger.addHandler(console_handler)

    logger.propagate = False

    return logger


def add_file_handlers(logger: logging.Logger, log_dir: Path) -> None:
    """Attach warnings.log and errors.log handlers under ``log_dir``.

    A directory that cannot be created leaves the console handler alone.
    """
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Could not create log directory {log_dir}: {e}")
        return

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    for filename, level in (("warnings.log", logging.WARNING), ("errors.log", logging.ERROR)):
        try:
            handler = logging.FileHandler(log_dir / filename, mode="w", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not open log file {log_dir / filename}: {e}")
            continue
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)


class StatusLogger:
    """Small logging facade handed to every pipeline component.

    ``status`` lines are always shown, ``verbose`` lines need -v and
    ``debug`` lines need -d.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("o2d")

    def status(self, msg: str) -> None:
        self.logger.info(msg)

    def verbose(self, msg: str) -> None:
        self.logger.log(VERBOSE, msg)

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def error(self, msg: str, exc_info: bool = False) -> None:
        self.logger.error(msg, exc_info=exc_info)

    def is_verbose(self) -> bool:
        return self.logger.isEnabledFor(VERBOSE)
