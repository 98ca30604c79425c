"""Centralized logging setup with optional rotating file output."""

import logging
import os
from logging.handlers import RotatingFileHandler

from odrlab.config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | %(message)s"


def init_logging(settings: Settings) -> logging.Logger:
    level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")

    logger = logging.getLogger("odrlab")
    logger.setLevel(level)
    logger.propagate = False

    # Repeated app construction (tests, reloads) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if settings.LOG_DIR:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        log_path = os.path.join(settings.LOG_DIR, "odrlab.log")
        file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info(f"Logging initialized at {logging.getLevelName(level)}")
    return logger
