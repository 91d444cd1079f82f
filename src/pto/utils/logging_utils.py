"""
logging_utils.py - Logger factory with a uniform format.
"""

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s: %(message)s"


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """
    Create a logger with the package format.

    A handler is attached only the first time a given name is requested, so
    repeated calls do not duplicate output.

    Args:
        name: Logger name, usually __name__ of the caller module
        level: Logging level string (e.g. 'DEBUG', 'INFO')

    Returns:
        Configured logging.Logger instance
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


def set_level(level: str) -> None:
    """Set the level of every logger under the `pto` namespace."""
    value = getattr(logging, level.upper(), logging.INFO)
    for name in list(logging.root.manager.loggerDict):
        if name == "pto" or name.startswith("pto."):
            logging.getLogger(name).setLevel(value)
