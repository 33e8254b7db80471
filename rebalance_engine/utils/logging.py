"""Logging configuration for the rebalancing engine.

This module provides structured logging setup with configurable output format.
"""

import logging
import sys
from typing import Any, Iterable

# Third-party loggers that are chatty at INFO during broker round-trips
NOISY_LOGGERS = ("urllib3", "alpaca")


def setup_logging(
    level: str = "INFO",
    log_format: str | None = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Configure logging for the application.

    Sets up the root logger with specified level and format. Logs are
    written to stdout. Third-party loggers listed in ``quiet_loggers``
    are raised to WARNING so order and quote traffic stays readable.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom format string. If None, uses default format.
        quiet_loggers: Logger names to cap at WARNING

    Example:
        >>> from rebalance_engine.utils.logging import setup_logging
        >>> setup_logging(level="DEBUG")
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        stream=sys.stdout,
        force=True,
    )

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: Any,
) -> None:
    """Log a message with structured context.

    Context is appended to the message in key=value format.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        **context: Additional context fields

    Example:
        >>> logger = get_logger(__name__)
        >>> log_with_context(
        ...     logger, "info", "Order filled",
        ...     symbol="SPY", shares=11, execution_id="exec_1a2b"
        ... )
        # Logs: "Order filled | symbol=SPY shares=11 execution_id=exec_1a2b"
    """
    log_func = getattr(logger, level.lower())

    if context:
        context_str = " ".join(f"{k}={v}" for k, v in context.items())
        full_message = f"{message} | {context_str}"
    else:
        full_message = message

    log_func(full_message)
