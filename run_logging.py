#!/usr/bin/env python3
"""
Logging setup for dirclean

All modules log through the "dirclean" logger. Records go to the console
via rich and, when configured, are appended to a log file.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "dirclean"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

# One past CRITICAL so nothing is emitted
OFF = logging.CRITICAL + 10

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
    "CRITICAL": logging.CRITICAL,
    "OFF": OFF,
}


def parse_level(name: Optional[str]) -> int:
    """Map a level name to a logging level; unknown names mean INFO."""
    return _LEVELS.get(str(name or "").strip().upper(), logging.INFO)


def configure_logging(level: str, log_file: Optional[str] = None, console: Optional[Console] = None) -> logging.Logger:
    """Install console and file handlers on the dirclean logger.

    Calling it again replaces the handlers from the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    numeric_level = parse_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    console_handler = RichHandler(console=console, show_path=False, markup=False, rich_tracebacks=False)
    console_handler.setLevel(numeric_level)
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot open log file %s: %s; logging to console only", log_file, e)
        else:
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            file_handler.setLevel(numeric_level)
            logger.addHandler(file_handler)

    return logger


def shutdown_logging():
    """Flush and detach all dirclean handlers"""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.flush()
        logger.removeHandler(handler)
        handler.close()
