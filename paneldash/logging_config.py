"""Logging setup for the ``paneldash`` namespace.

curses owns the terminal while the dashboard runs, so there is no console
handler: records go to a file when one is given and are dropped otherwise.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOGGER_NAME = "paneldash"


def setup_logging(level: int = logging.INFO, log_file: str | Path | None = None) -> None:
    """Configure the ``paneldash`` logger.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to append logs to.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # avoid duplicate handlers when called twice
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        handler.setLevel(level)
    else:
        handler = logging.NullHandler()
    logger.addHandler(handler)

    logger.info("Logging initialized.")
