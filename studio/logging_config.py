"""Log setup for the ``studio`` logger tree (``app.logger`` and every module LOGGER)."""
from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

from flask import Flask
from flask.logging import default_handler

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_HANDLER_MARK = "_studio_handler"


def configure_logging(app: Flask) -> logging.Logger:
    logger = logging.getLogger("studio")
    level = str(app.config.get("LOG_LEVEL") or "INFO").upper()
    logger.setLevel(level)

    logger.removeHandler(default_handler)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    setattr(console_handler, _HANDLER_MARK, True)
    logger.addHandler(console_handler)

    log_file = app.config.get("LOG_FILE")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARK, True)
        logger.addHandler(file_handler)

    logging.captureWarnings(True)
    return logger
