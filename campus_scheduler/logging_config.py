# campus_scheduler/logging_config.py
#
# Centralized logging configuration for the scheduler

import logging
import sys

from config.settings import LOG_LEVEL

_handler = None


def setup_logging(log_level: str = None):
    """
    Setup logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                   Defaults to LOG_LEVEL from settings
    """
    if log_level is None:
        log_level = LOG_LEVEL

    formatter = logging.Formatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # only attach once, the app module can be imported more than once
    global _handler
    if _handler is not None:
        root_logger.removeHandler(_handler)
    _handler = console_handler
    root_logger.addHandler(console_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger
