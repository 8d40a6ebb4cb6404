"""Logging setup shared by all tools."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(message)s"
DATE_FORMAT = "[%X]"


def setup_logger(name: Optional[str] = None, level: str = "INFO") -> logging.Logger:
    """
    Configure logging with rich output.

    Args:
        name: Logger name (root logger if None)
        level: Log level name (e.g., "DEBUG", "INFO")

    Returns:
        Configured logger
    """
    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)

    root.setLevel(level.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
