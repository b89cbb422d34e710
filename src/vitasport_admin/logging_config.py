"""Logging setup shared by the API server and the command line."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from .config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILENAME = "vitasport.log"

_HANDLER_MARK = "_vitasport_handler"


def setup_logging(settings: Settings) -> logging.Logger:
    """Attach console and rotating file handlers to the package logger.

    Safe to call more than once: handlers installed by a previous call are
    replaced rather than duplicated.
    """

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    logger = logging.getLogger("vitasport_admin")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        settings.log_dir / LOG_FILENAME,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    console_handler = logging.StreamHandler()

    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        logger.addHandler(handler)

    # SQL echo is only useful when debugging the store itself
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    return logger
