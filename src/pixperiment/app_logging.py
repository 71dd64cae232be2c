"""Logging configuration helpers."""

import logging

_LOGGER_NAME = "pixperiment"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
# SDK loggers that echo request bodies at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "stripe")


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Attach one stream handler to the package logger.

    Safe to call repeatedly: the level is updated but no second handler is added.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
