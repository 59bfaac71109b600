"""
Shared application logger.
"""

import logging

logger = logging.getLogger("kaichat")

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", other_level: str = "WARNING") -> None:
    """
    Configure root logging.

    Args:
        level: Level for the kaichat loggers
        other_level: Level for everything else (uvicorn, httpx, google, ...)
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, other_level.upper(), logging.WARNING))

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
