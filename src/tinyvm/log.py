"""Logging setup for the command line front end."""

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "tinyvm"


def setup_logging(level: int = logging.WARNING, rich_console: bool = True) -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Uses a RichHandler by default and a plain stderr StreamHandler when
    `rich_console` is False. Calling it again only updates the level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    if rich_console:
        handler = RichHandler(
            level=level,
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            rich_tracebacks=True,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s", datefmt="%H:%M:%S",
        ))
        handler.setLevel(level)

    logger.addHandler(handler)
    logger.propagate = False
    return logger
