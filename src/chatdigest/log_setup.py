"""Logging configuration with per-request correlation ids.

Every log record gets a ``correlation_id`` attribute taken from a context
variable, so lines from concurrent report jobs can be told apart.
"""

from __future__ import annotations

import logging
import os
import secrets
import string
import time
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from typing import Iterator

_CORRELATION_ID: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "chatdigest.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 10

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_correlation_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def get_correlation_id() -> str:
    return _CORRELATION_ID.get()


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    token = _CORRELATION_ID.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _CORRELATION_ID.reset(token)


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _CORRELATION_ID.get()
        return True


def configure_logging(level: str = "info", log_dir: str | None = "./logs") -> None:
    """Install console and rotating-file handlers on the root logger.

    ``trace`` is accepted as an alias for DEBUG. File logging is skipped when
    ``log_dir`` is None.
    """
    level_name = level.upper()
    if level_name == "TRACE":
        level_name = "DEBUG"
    numeric_level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    correlation_filter = CorrelationIdFilter()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                os.path.join(log_dir, LOG_FILE_NAME),
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        handler.addFilter(correlation_filter)

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)
