"""Logging setup for the splicebench CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(debug: bool = False, verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Attach a RichHandler to the ``splicebench`` logger.

    DEBUG with ``debug``, INFO with ``verbose``, WARNING otherwise. Existing
    handlers on the logger are replaced so repeated calls do not duplicate output.
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logger = logging.getLogger("splicebench")
    logger.handlers.clear()
    logger.setLevel(level)

    logger.addHandler(
        RichHandler(
            console=console or Console(stderr=True),
            level=level,
            show_time=debug,
            show_path=debug,
            markup=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
    )
    return logger
