"""Logging setup for the engine.

Every module logs under the ``evarsity`` namespace. ``setup_logging`` hangs a
rotating log file (and optionally the console) off that namespace and, unless
disabled, scrubs student e-mail addresses and credentials from each record
before it is written anywhere.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

from evarsity.config import LogSettings

ROOT_LOGGER = "evarsity"
LOG_FILE = "evarsity.log"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SENSITIVE_PATTERNS = [
    (re.compile(r"Bearer [a-zA-Z0-9._~+/=-]+"), "Bearer [REDACTED]"),
    (re.compile(r"(token|password|secret)=[^&\s]+", re.IGNORECASE), r"\1=[REDACTED]"),
    (re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+"), "[EMAIL]"),
]


def sanitize_for_log(text: str) -> str:
    """Remove credentials and e-mail addresses from text.

    Args:
        text: Text that may contain sensitive data.

    Returns:
        Sanitized text safe for logs and error responses.
    """
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


class RedactingFilter(logging.Filter):
    """Rewrites a record's message through ``sanitize_for_log``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = sanitize_for_log(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def setup_logging(
    settings: LogSettings | None = None,
    level: str | None = None,
    console: bool = True,
) -> logging.Logger:
    """Attach file and console handlers to the ``evarsity`` logger.

    ``EVARSITY_LOG_DIR`` and ``EVARSITY_LOG_LEVEL`` take precedence over the
    configured directory and level, and an explicit ``level`` over both.
    Calling this again replaces the handlers from the previous call.

    Args:
        settings: The ``logging`` section of the engine configuration.
        level: Level name overriding configuration and environment.
        console: Whether to also log to stderr.

    Returns:
        The ``evarsity`` logger.
    """
    settings = settings if settings is not None else LogSettings()

    log_dir = Path(os.environ.get("EVARSITY_LOG_DIR") or settings.directory)
    log_dir.mkdir(parents=True, exist_ok=True)
    level_name = (level or os.environ.get("EVARSITY_LOG_LEVEL") or settings.level).upper()
    log_level = logging.getLevelNamesMapping().get(level_name, logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(log_level)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    log_path = log_dir / LOG_FILE
    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            log_path,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        if settings.redact:
            handler.addFilter(RedactingFilter())
        logger.addHandler(handler)

    logger.info("Logging to %s at %s", log_path, level_name)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, e.g. ``get_logger("api")`` -> ``evarsity.api``."""
    if not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
