"""Logging setup for the APIAuth verifier.

Records emitted while a verified request is being handled carry the
caller's access ID, taken from :data:`access_id_var`, so handler logs can
be tied to a credential without passing it around.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import TextIO

# Access ID of the request being handled, set by the auth middleware
access_id_var: ContextVar[str | None] = ContextVar("access_id", default=None)

_REQUEST_FIELDS = ("method", "path", "status", "duration_ms")
_AUTH_FIELDS = ("access_id", "scheme", "error_code")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class AuthContextFilter(logging.Filter):
    """Stamps ``access_id`` from the current context onto records lacking one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "access_id", None) is None:
            record.access_id = access_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields: timestamp, level, logger, message, then any request and auth
    attributes that are set on the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _REQUEST_FIELDS + _AUTH_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class AuthTextFormatter(logging.Formatter):
    """Human-readable lines with a ``[access_id=... scheme=...]`` suffix."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        pairs = [
            f"{key}={getattr(record, key)}"
            for key in _AUTH_FIELDS
            if getattr(record, key, None) is not None
        ]
        if pairs:
            line = f"{line} [{' '.join(pairs)}]"
        return line


def configure_logging(level: str = "INFO", fmt: str = "text", stream: TextIO | None = None) -> None:
    """Replace the root handlers with one stream handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        fmt: 'json' for structured entries, anything else for text.
        stream: Destination, stderr by default.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(numeric_level)
    handler.addFilter(AuthContextFilter())
    handler.setFormatter(JSONFormatter() if fmt == "json" else AuthTextFormatter())
    root.addHandler(handler)
