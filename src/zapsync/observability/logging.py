"""Structured JSON logging with correlation ID support.

Every line carries the WhatsApp bridge session it was emitted for
(WPP_SESSION), so logs of several tenants can share one sink. Message and
exception text are scrubbed with redact_string: driver and bridge errors
may quote phone numbers or JIDs verbatim.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .correlation import get_correlation_id
from .redaction import redact_string

_DEFAULT_LEVEL = "INFO"
SERVICE_NAME = "zapsync"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; `extra_fields` are merged at the top level."""

    def __init__(self, session: str | None = None) -> None:
        super().__init__()
        self.session = os.environ.get("WPP_SESSION", "") if session is None else session

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": SERVICE_NAME,
            "message": redact_string(record.getMessage()),
        }
        if self.session:
            log_obj["session"] = self.session

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        if record.exc_info:
            log_obj["exception"] = redact_string(self.formatException(record.exc_info))

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_obj.update(extra_fields)

        return json.dumps(log_obj, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured for JSON output on stdout.

    The level comes from LOG_LEVEL (default INFO).
    """
    logger = logging.getLogger(name)

    # Only configure if no handlers (avoid duplicate handlers)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(os.environ.get("LOG_LEVEL", _DEFAULT_LEVEL).upper())
        logger.propagate = False

    return logger
