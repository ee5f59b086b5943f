# ============================================
#   Relay — Central logger
# ============================================

import os
import logging
from logging.handlers import TimedRotatingFileHandler

from relay.config import LOG_DIR, LOG_FILE, LOG_LEVEL, LOG_TO_FILE


# Global app logger name
ROOT_LOGGER_NAME = os.getenv("RELAY_LOGGER_NAME", "relay")

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _build_handler() -> logging.Handler:
    if not LOG_TO_FILE:
        return logging.StreamHandler()

    os.makedirs(os.path.dirname(LOG_FILE) or LOG_DIR, exist_ok=True)
    return TimedRotatingFileHandler(
        LOG_FILE,
        when="midnight",
        backupCount=30,
        encoding="utf-8",
        utc=False,
    )


def _configure_root_logger() -> logging.Logger:
    """
    Configure the root relay logger once (idempotent).
    Rotating daily file in prod (30 days kept), stderr otherwise.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Prevent duplicate handlers on reload / multiple imports
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    handler = _build_handler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))

    logger.addHandler(handler)
    logger.propagate = False  # prevent double logging to root

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """
    Return a child logger for a given module name.
    Example: get_logger("dispatcher") → relay.dispatcher
    """
    root = _configure_root_logger()
    return root.getChild(module_name)


def log_info(module: str, message: str):
    get_logger(module).info(message)


def log_warning(module: str, message: str):
    get_logger(module).warning(message)


def log_exception(module: str, message: str):
    """
    Log an exception with traceback. To be used inside except blocks.
    """
    get_logger(module).exception(message)
