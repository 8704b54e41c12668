"""
Logging configuration for the liquidation bot.
"""

import logging
import os
import traceback
from pathlib import Path
from typing import Any, Optional

LOGGER_NAME = "lendbot"
LOGS_PATH = os.environ.get("LOGS_PATH", "logs/lendbot.log")


class DetailedExceptionFormatter(logging.Formatter):
    """Formatter that includes full tracebacks for ERROR and above."""

    def __init__(self) -> None:
        super().__init__()
        self._detailed = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s\n%(exc_text)s")
        self._standard = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR and record.exc_info:
            record.exc_text = "".join(traceback.format_exception(*record.exc_info))
            return self._detailed.format(record)
        return self._standard.format(record)


def _console_handler(logger: logging.Logger) -> Optional[logging.Handler]:
    for handler in logger.handlers:
        if type(handler) is logging.StreamHandler:
            return handler
    return None


def setup_logger(verbose: Optional[bool] = None) -> logging.Logger:
    """
    Set up and configure the liquidation bot logger.

    Args:
        verbose: When given, switches the console between DEBUG (True) and INFO (False).
            The file handler always records DEBUG.

    Returns:
        Configured logger instance with console and file handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)

    if logger.handlers:
        if verbose is not None:
            console_handler = _console_handler(logger)
            if console_handler is not None:
                console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        return logger

    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    Path(LOGS_PATH).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(LOGS_PATH, mode="a")

    formatter = DetailedExceptionFormatter()
    console_handler.setFormatter(formatter)
    file_handler.setFormatter(formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger


def global_exception_handler(exctype: type, value: BaseException, tb: Any) -> None:
    """
    Global exception handler to log uncaught exceptions.

    Args:
        exctype: The type of the exception.
        value: The exception instance.
        tb: A traceback object encapsulating the call stack.
    """
    logger = logging.getLogger(LOGGER_NAME)
    trace_str = "".join(traceback.format_exception(exctype, value, tb))
    logger.critical("Uncaught exception:\n %s", trace_str)
