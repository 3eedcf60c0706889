"""Logging configuration with Loguru."""

import sys

from loguru import logger


def setup_logging(level: str = "INFO", serialize: bool = False) -> None:
    """Replace Loguru's default sink with a stderr sink at the given level.

    With ``serialize=True`` every record is emitted as one JSON line, extra
    fields from ``logger.bind`` included.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}",
        level=level.upper(),
        serialize=serialize,
    )
    logger.debug(f"Logging configured at {level.upper()}")
