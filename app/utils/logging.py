"""Centralized logging configuration."""

import logging
import os
import sys
from typing import Any, MutableMapping, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Falls back to the LOG_LEVEL environment variable, then INFO.

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Avoid duplicate handlers
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level, logging.INFO))
        console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)
        logger.propagate = False

    return logger


class JobLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the generation job it belongs to.

    The job id and client id are also merged into ``extra`` so structured
    handlers can index on them.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        job_id = extra.get("job_id")
        prefix = f"[job {job_id}] " if job_id else ""
        return f"{prefix}{msg}", kwargs


def get_job_logger(logger: logging.Logger, job_id: Optional[str], **context: Any) -> JobLoggerAdapter:
    """Wrap a module logger with generation job context."""
    return JobLoggerAdapter(logger, {"job_id": job_id, **context})
