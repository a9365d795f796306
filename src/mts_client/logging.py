"""Loguru logging configuration for the ``mts`` command line.

The library itself only emits records through ``loguru.logger``; sinks are
configured here, by the application.
"""

import sys

from loguru import logger

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"


def setup_logging(log_level: str = "WARNING") -> None:
    """Replace the default sink with a formatted stderr sink.

    Args:
        log_level: Minimum log level to emit.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level.upper(),
        format=_LOG_FORMAT,
    )
