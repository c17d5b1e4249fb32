"""Centralized logging configuration."""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
ROOT_LOGGER = "oracyn"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the package logger.

    Calling it again only updates the level, so building several apps in
    one process (tests) does not duplicate output.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package hierarchy.

    Args:
        name: Logger name (typically __name__ of the calling module)
    """
    return logging.getLogger(name)
