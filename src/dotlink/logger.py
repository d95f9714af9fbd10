"""Logging setup for the dotlink command line."""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV_VAR = "DOTLINK_LOG_LEVEL"


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr through rich.

    ``verbose`` forces DEBUG; otherwise ``$DOTLINK_LOG_LEVEL`` is honoured and
    defaults to WARNING so regular command output stays clean.
    """

    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, os.getenv(LOG_LEVEL_ENV_VAR, "WARNING").upper(), logging.WARNING)

    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)
