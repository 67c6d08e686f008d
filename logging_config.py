#!/usr/bin/env python3
"""
Logging setup for the keystroke-guard CLI

Library modules only log through logging.getLogger(__name__); handlers are
attached here, by the CLI, and nowhere else.
"""

import logging
import logging.handlers
from datetime import datetime
from pathlib import Path

LOGS_DIR = Path(__file__).parent / "logs"

_FORMAT = "[%(asctime)s] %(name)s [%(levelname)s]: %(message)s"
_ERROR_FORMAT = _FORMAT + "\nLocation: %(pathname)s:%(lineno)d in %(funcName)s\n"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _rotating_handler(log_file: str, level, fmt: str) -> logging.Handler:
    LOGS_DIR.mkdir(exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        LOGS_DIR / log_file,
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=_DATEFMT))
    return handler


def setup_logger(name: str, log_file: str, level=logging.INFO, console_output: bool = True, file_output: bool = True):
    """
    Attach file and/or console handlers to a named logger once.

    Args:
        name: Logger name; 'security' covers the limiter, validator and guard
        log_file: File name under LOGS_DIR, used only when file_output is set
        level: Threshold for the logger and its handlers
        console_output: Echo records to stderr
        file_output: Write records to a rotating file

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if file_output:
        logger.addHandler(_rotating_handler(log_file, level, _FORMAT))

    if console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
        logger.addHandler(console_handler)

    return logger


def get_guard_logger(debug: bool = False, file_output: bool = True):
    """
    Return (main_logger, error_logger) for the CLI.

    The error logger keeps ERROR records with their source location in
    guard_error.log. With file_output=False neither logger touches LOGS_DIR
    and the error logger only propagates to the root logger.
    """
    level = logging.DEBUG if debug else logging.INFO

    main_logger = setup_logger(
        name="security",
        log_file="guard.log",
        level=level,
        console_output=debug,
        file_output=file_output,
    )

    error_logger = logging.getLogger("guard_errors")
    error_logger.setLevel(logging.ERROR)
    if file_output and not error_logger.handlers:
        error_logger.addHandler(_rotating_handler("guard_error.log", logging.ERROR, _ERROR_FORMAT))

    return main_logger, error_logger


def log_startup_info(logger, app_name: str, version: str):
    logger.info("%s %s started at %s", app_name, version, datetime.now().strftime(_DATEFMT))


def log_exception(logger, error_logger, exception: Exception, context: str = ""):
    """Log an exception with its traceback to both the main and the error logger."""
    msg = f"{context}: {type(exception).__name__}: {exception}" if context else str(exception)
    logger.error(msg, exc_info=True)
    error_logger.error(msg, exc_info=True)
