"""Plotdesk Logging Configuration.

Tokens must never reach the logs. ``TokenRedactionFilter`` is attached to
every handler installed here and masks anything shaped like a JWT, so a
stray ``f"{token}"`` in a log call cannot leak a usable credential.
"""

import json
import logging
import re
import sys
from typing import Literal

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# header.payload.signature, each part base64url; headers always start with "eyJ"
_JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")
REDACTED = "[REDACTED TOKEN]"

# Libraries whose INFO output only repeats what our own loggers say
_QUIET_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "aiosqlite")


def redact_tokens(text: str) -> str:
    return _JWT_PATTERN.sub(REDACTED, text)


class TokenRedactionFilter(logging.Filter):
    """Replace JWTs in the rendered message before any formatter sees it."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_tokens(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Fields are serialized with json.dumps() so quotes, backslashes and
    newlines in messages never produce malformed output.
    """

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = redact_tokens(self.formatException(record.exc_info))
        return json.dumps(log_entry, default=str)


def _build_handler(format_type: Literal["structured", "dev"]) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(TokenRedactionFilter())
    return handler


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
    numeric_level = getattr(logging, level.upper())
    logging.root.handlers = [_build_handler(format_type)]
    logging.root.setLevel(numeric_level)

    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    # SQL statements carry token digests and password hashes; only at DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if numeric_level == logging.DEBUG else logging.WARNING
    )

    logging.getLogger("plotdesk").info(f"Logging configured: level={level}, format={format_type}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the plotdesk prefix."""
    return logging.getLogger(f"plotdesk.{name}")
