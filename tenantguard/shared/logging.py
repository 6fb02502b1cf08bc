"""Logging configuration for the application."""

import logging
import sys

from tenantguard.core.config import get_settings


def setup_logging(debug: bool | None = None) -> None:
    """Configure application-wide logging.

    Level is DEBUG when settings.debug (or the debug argument) is True,
    otherwise INFO. Output goes to stdout.
    """
    if debug is None:
        debug = get_settings().debug
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
