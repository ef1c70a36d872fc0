"""Loguru sinks for the org-diary command line.

Library modules log through ``from loguru import logger`` and configure
nothing; ``cli.main`` calls setup_logging() once per run.
"""

import sys

from loguru import logger

# Indexed by the number of -v flags
LEVELS = ("WARNING", "INFO", "DEBUG")

CONSOLE_FORMAT = "<level>org-diary: {message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {name}:{function}:{line} | {message}"


def level_for(verbosity: int) -> str:
    """Loguru level name for a count of -v flags."""
    return LEVELS[max(0, min(verbosity, len(LEVELS) - 1))]


def setup_logging(verbosity: int = 0, log_file: str | None = None) -> None:
    """Log to stderr, and also to ``log_file`` (rotated, last 5 kept) if given.

    The file sink is an activity log of entries created, properties
    changed and index rebuilds; year-files are never written through it.
    """
    level = level_for(verbosity)
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if log_file:
        logger.add(log_file, level=level, format=FILE_FORMAT, rotation="1 MB", retention=5)
