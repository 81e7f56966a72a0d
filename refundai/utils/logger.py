"""Centralized logging setup for the refund service.

Provides a single stdout logging configuration shared by the API,
the CLI and the processing modules.
"""

import logging
import os
import sys

# HTTP client loggers that the OpenAI SDK and the company lookups drive.
_CHATTY_LOGGERS = ("httpx", "httpcore", "openai")


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger with a standard format.

    Args:
        level: Logging level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to ``$REFUNDAI_LOG_LEVEL`` or INFO.
    """
    level = level or os.getenv("REFUNDAI_LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)
