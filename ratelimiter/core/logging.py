"""Logging helpers for the rate limiter.

Importing the package configures nothing. Limiters log through the
``ratelimiter`` logger hierarchy and attach their decision context as
``extra`` attributes (see ``get_log_context``). Applications either route
that logger themselves or call ``setup_logging``, which renders the context
according to ``settings.log_format``.
"""

import json
import logging
import logging.config
from typing import Any, Dict, Optional

from ratelimiter.core.config import settings

PACKAGE_LOGGER = "ratelimiter"

# Record attributes set by get_log_context, in output order
LIMITER_FIELDS = (
    "client_id",
    "algorithm",
    "cache_name",
    "key",
    "operation",
    "path",
    "method",
)


def _limiter_context(record: logging.LogRecord) -> Dict[str, Any]:
    context = {}
    for name in LIMITER_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return context


class ContextTextFormatter(logging.Formatter):
    """Text lines with the limiter context appended as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _limiter_context(record)
        if not context:
            return line
        pairs = " ".join(f"{name}={value}" for name, value in context.items())
        return f"{line} | {pairs}"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, limiter context under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _limiter_context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def get_logging_config(
    log_format: Optional[str] = None,
    log_level: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a dictConfig for the ``ratelimiter`` logger only.

    Args:
        log_format: text, structured or json (None = settings.log_format)
        log_level: Level name (None = settings.log_level)
    """
    log_format = (log_format or settings.log_format).lower()
    log_level = (log_level or settings.log_level).upper()

    message_format = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    formatters = {
        "text": {"format": message_format},
        "structured": {
            "()": "ratelimiter.core.logging.ContextTextFormatter",
            "fmt": message_format,
        },
        "json": {"()": "ratelimiter.core.logging.JSONFormatter"},
    }
    if log_format not in formatters:
        raise ValueError(f"Unknown log format: {log_format}")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {log_format: formatters[log_format]},
        "handlers": {
            "ratelimiter": {
                "class": "logging.StreamHandler",
                "formatter": log_format,
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            PACKAGE_LOGGER: {
                "level": log_level,
                "handlers": ["ratelimiter"],
                "propagate": False,
            },
        },
    }


def setup_logging(
    log_format: Optional[str] = None,
    log_level: Optional[str] = None,
) -> None:
    """Route ``ratelimiter`` records to stderr in the configured format."""
    logging.config.dictConfig(get_logging_config(log_format, log_level))
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    client_id: Optional[str] = None,
    algorithm: Optional[str] = None,
    cache_name: Optional[str] = None,
    key: Optional[str] = None,
    operation: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build an ``extra=`` mapping for a limiter log call, dropping unset fields."""
    context = dict(
        client_id=client_id,
        algorithm=algorithm,
        cache_name=cache_name,
        key=key,
        operation=operation,
        **extra,
    )
    return {name: value for name, value in context.items() if value is not None}
