"""Logging setup.

Library modules only call ``loguru.logger``. Applications call
``configure_logging`` once at startup, usually with ``Settings.LOG_LEVEL``.
"""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", sink=None) -> int:
    """Replace loguru's handlers with a single sink at ``level``.

    Args:
        level: Minimum level name, case-insensitive
        sink: Anything loguru accepts as a sink; stderr when omitted

    Returns:
        The loguru handler id, for ``logger.remove``
    """
    logger.remove()
    return logger.add(sink or sys.stderr, level=level.upper(), format=LOG_FORMAT)
