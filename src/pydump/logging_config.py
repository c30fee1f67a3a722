"""Root logger setup shared by the pydump commands."""

import logging
import os

from pythonjsonlogger.json import JsonFormatter

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: int | str = logging.WARNING,
    force_format: str | None = None,
) -> None:
    """
    Configure the root logger for pydump.

    Logs always go to stderr so they never mix with dump output on stdout.

    Selection order for the format:
        1) force_format argument ("json" or "plain") if provided
        2) env var PYDUMP_LOG_FORMAT
        3) default = "plain"
    """
    if force_format is not None:
        format_mode = force_format.lower()
    else:
        format_mode = os.getenv("PYDUMP_LOG_FORMAT", "plain").lower()

    logger = logging.getLogger()
    logger.setLevel(level)

    handler = logging.StreamHandler()

    if format_mode == "json":
        formatter: logging.Formatter = JsonFormatter(LOG_FORMAT)
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    handler.setFormatter(formatter)

    # Replace any existing handlers to avoid duplicate logs
    logger.handlers.clear()
    logger.addHandler(handler)
