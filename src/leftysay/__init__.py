"""leftysay: a terminal greeter with a speech bubble and an image."""

from __future__ import annotations

import logging

__version__ = "0.1.0"

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


def setup_logging(level: str | None = None, debug: bool = False) -> None:
    """Configure the ``leftysay`` logger to write to stderr.

    Args:
        level: Level name; defaults to ``log_level`` from the config
        debug: Force DEBUG regardless of ``level``
    """
    if level is None:
        from leftysay.config import get_config

        level = str(get_config().get("log_level", "WARNING"))

    numeric = logging.DEBUG if debug else getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger("leftysay")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(numeric)
