"""Centralized logging configuration.

All modules use `get_logger(__name__)`. The CLI calls `configure_logging`
once at startup so log records render on the same rich console as command
output.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

_LOG_FORMAT = "%(name)s: %(message)s"
_configured = False


def configure_logging(level: str | int = "WARNING", console: Console | None = None) -> None:
    """Install a RichHandler on the package logger (once).

    Args:
        level: Level name or number for the `ledgerloop` logger.
        console: Console to log to. Defaults to a stderr console.
    """
    global _configured
    logger = logging.getLogger("ledgerloop")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if _configured:
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A logging.Logger under the `ledgerloop` hierarchy.
    """
    return logging.getLogger(name)
