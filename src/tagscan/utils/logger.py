"""Minimal logging utilities for tagscan.

Provides a simple get_logger function that wraps the standard library logging.

Example:
    >>> from tagscan.utils.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Scanning file")
"""

from __future__ import annotations

import logging


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given name.

    Returns a standard library logger with the "tagscan." prefix.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger instance

    Example:
        >>> logger = get_logger("mymodule")
        >>> logger.name
        'tagscan.mymodule'
    """
    # Ensure tagscan prefix for consistent namespacing
    if not (name == "tagscan" or name.startswith("tagscan.")):
        name = f"tagscan.{name}"
    return logging.getLogger(name)
