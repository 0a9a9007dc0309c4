from __future__ import annotations

import logging

from enhanced_reader_core.config import Settings

LOGGER_NAME = "enhanced_reader_core"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> logging.Logger:
    """
    Level the package logger from settings; debug logging wins over log_level.

    A stream handler is attached only when neither this logger nor the root
    logger has one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if settings.debug_logging:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
