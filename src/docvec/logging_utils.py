"""Logging setup for the docvec CLI."""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str | None = None) -> None:
    """Route log records to stderr through rich. Does nothing if already configured."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    level_name = (level or os.getenv("DOCVEC_LOG_LEVEL", "WARNING")).upper()
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root_logger.setLevel(getattr(logging, level_name, logging.WARNING))
    root_logger.addHandler(handler)

    # LiteLLM logs every request at INFO.
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
