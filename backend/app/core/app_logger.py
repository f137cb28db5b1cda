"""Logging setup shared by the API and the service layer."""

import logging

from backend.app.core.settings import get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER_NAME = "roster"


def setup_logging() -> logging.Logger:
    level = getattr(logging, str(get_settings().log_level).upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicate console handlers when the app is imported more than once
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger(ROOT_LOGGER_NAME)
    return base.getChild(name) if name else base


def log_error(logger: logging.Logger, message: str, **context) -> None:
    """Log the exception currently being handled together with its context."""
    logger.exception(message, extra={"context": context})
