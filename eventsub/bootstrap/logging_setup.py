"""JSON logging for the webhook listener.

Every line is one JSON object carrying the correlation ID of the connection
that produced it, the component (``router``, ``server``...) and a short
``event`` tag, plus whichever of the structured fields below the call site
passed through ``extra``.
"""

import json
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from eventsub.domain.correlation_id import NO_CORRELATION_ID, CorrelationLoggerAdapter

LOGGER_NAME = "eventsub"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5
REDACTED = "[REDACTED]"

# Webhook messages.
MESSAGE_FIELDS = ("message_id", "message_type", "subscription_type", "status_code")
# Sockets and the connection state machine.
CONNECTION_FIELDS = ("client", "connection_id", "bytes_in", "bytes_out", "open_connections")
# Listener lifecycle and startup settings.
LISTENER_FIELDS = (
    "from_state",
    "to_state",
    "host",
    "port",
    "signal",
    "log_destination",
    "log_level",
    "max_message_age_seconds",
    "max_request_bytes",
)
FAILURE_FIELDS = ("error", "error_type")

# Only ``error`` carries text we did not write ourselves.
FREE_TEXT_FIELDS = frozenset({"error"})

# A leaked secret shows up as a signature header, an HMAC digest or a token.
SENSITIVE_PATTERNS = [
    re.compile(r"(?i)(authorization|token|signature|password|secret|sha256=)"),
    re.compile(r"\b[A-Fa-f0-9]{32,}\b"),
    re.compile(r"\b[A-Za-z0-9+/]{32,}={0,2}\b"),
]


def redact_sensitive(value: str) -> str:
    """Replace a value that looks like key material with a placeholder."""
    if value and any(pattern.search(value) for pattern in SENSITIVE_PATTERNS):
        return REDACTED
    return value


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Ensure correlation_id field exists in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """Render records as sorted JSON objects."""

    structured_fields = MESSAGE_FIELDS + CONNECTION_FIELDS + LISTENER_FIELDS + FAILURE_FIELDS

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        if hasattr(record, "event"):
            log_data["event"] = record.event
        log_data.update(self._structured(record))
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, sort_keys=True, default=str)

    def _structured(self, record: logging.LogRecord) -> dict:
        fields = {}
        for key in self.structured_fields:
            if not hasattr(record, key):
                continue
            value = getattr(record, key)
            if key in FREE_TEXT_FIELDS and isinstance(value, str):
                value = redact_sensitive(value)
            fields[key] = value
        return fields


def _resolve_level(level_name: str) -> int:
    level = getattr(logging, level_name.upper(), None)
    if isinstance(level, int):
        return level
    return logging.INFO


def _build_handler(destination: Optional[str], level: int) -> logging.Handler:
    """Create a stdout or rotating file handler emitting JSON lines."""
    if destination and destination.lower() != "stdout":
        target_path = Path(destination)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            target_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter(datefmt=DATE_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    return handler


def configure_logging(
    level: str = "INFO", destination: Optional[str] = None
) -> CorrelationLoggerAdapter:
    """Point the ``eventsub`` logger at one JSON handler and return an adapter.

    Calling it again replaces the previous handler, closing it first so a
    rotating file is not left open.
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.addHandler(_build_handler(destination, numeric_level))

    adapter = CorrelationLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "log_level": logging.getLevelName(numeric_level),
            "log_destination": destination or "stdout",
        },
    )
    return adapter
