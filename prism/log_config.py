# prism/log_config.py
# Created: 2026-10-16
# Purpose: Logging setup shared by the API and CLI entry points

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from prism.config import APP_CONFIG


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(debug: Optional[bool] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the 'prism' logger hierarchy.

    Console handler always; rotating file handler when a log file is set.
    Calling it again replaces the handlers instead of stacking them.
    """
    debug = APP_CONFIG.debug_mode if debug is None else debug
    log_file = log_file or APP_CONFIG.log_file
    level = logging.DEBUG if debug else logging.INFO

    logger = logging.getLogger("prism")
    logger.handlers.clear()
    logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=1024 * 1024, backupCount=5)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
