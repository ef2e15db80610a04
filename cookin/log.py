"""Logging setup for the Cookin server."""

import logging
import os
import sys


def setup_logging(level: str = None) -> logging.Logger:
    """Attach a stdout handler to the root 'cookin' and 'app' loggers.

    Safe to call more than once; handlers are only added the first time.
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for name in ("cookin", "app"):
        logger = logging.getLogger(name)
        logger.setLevel(log_level)
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(log_level)
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    return logging.getLogger("cookin")
