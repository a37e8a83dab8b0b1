"""Job board logging configuration.

Everything goes to one stdout handler configured through
``logging.config.dictConfig``. Two formats are available:

- ``dev``: one readable line per record
- ``structured``: one JSON object per record, including the request context
  (account, job, application ids) passed through ``extra=``

Signed tokens never reach the output: the handler masks anything shaped like
a JWT, except in the console email sender, whose whole purpose in development
is to show the links it would have mailed.
"""

import json
import logging
import logging.config
import re
from typing import Any, Literal

# Human-readable format for development
DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEV_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Record attributes copied into structured output when a caller sets them
CONTEXT_FIELDS = ("account_id", "job_id", "application_id", "path", "status_code")

# Third-party loggers and the level they are held at outside DEBUG
QUIET_LOGGERS = {
    "uvicorn": logging.WARNING,
    "uvicorn.error": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "pymongo": logging.WARNING,
    "motor": logging.WARNING,
    "redis": logging.WARNING,
}
# Loggers that follow the app level when it is DEBUG
DEBUG_FOLLOWERS = frozenset({"pymongo", "motor"})

REDACTION_EXEMPT = frozenset({"jobboard.services.email"})
REDACTED = "[redacted-token]"
_JWT = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")


class JSONFormatter(logging.Formatter):
    """One JSON object per log line, with every field escaped by json.dumps()."""

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class TokenRedactionFilter(logging.Filter):
    """Mask JWT-shaped strings in log messages.

    Attached to the handler so it sees records from every logger. The
    formatted message replaces ``msg``/``args`` only when something was masked.
    """

    def __init__(self, exempt: frozenset[str] = REDACTION_EXEMPT):
        super().__init__()
        self.exempt = exempt

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name in self.exempt:
            return True
        message = record.getMessage()
        masked = _JWT.sub(REDACTED, message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def build_config(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> dict[str, Any]:
    """The ``dictConfig`` mapping for a level and output format."""
    level = level.upper()
    loggers = {}
    for name, quiet_level in QUIET_LOGGERS.items():
        if level == "DEBUG" and name in DEBUG_FOLLOWERS:
            loggers[name] = {"level": level}
        else:
            loggers[name] = {"level": logging.getLevelName(quiet_level)}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "dev": {"format": DEV_FORMAT, "datefmt": DEV_DATEFMT},
            "structured": {"()": JSONFormatter},
        },
        "filters": {
            "redact_tokens": {"()": TokenRedactionFilter},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": format_type,
                "filters": ["redact_tokens"],
            },
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": ["stdout"]},
    }


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format - 'structured' for JSON, 'dev' for readable
    """
    logging.config.dictConfig(build_config(level, format_type))

    logger = logging.getLogger("jobboard")
    logger.info(f"Logging configured: level={level}, format={format_type}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the jobboard prefix."""
    return logging.getLogger(f"jobboard.{name}")
