"""
Core Module - Logging setup for entry points.

Library modules only create `logging.getLogger(__name__)`; handlers
are installed once by whatever process hosts the engine.
"""

import logging


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )
    # basicConfig is a no-op once the host has installed handlers
    logging.getLogger().setLevel(numeric_level)
    # aiohttp access logs are noisy at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
