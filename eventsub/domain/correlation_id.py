"""Per-connection correlation IDs carried through log records."""

import contextvars
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping, Optional

LOGGER_PREFIX = "eventsub."
NO_CORRELATION_ID = "-"

_current_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "eventsub_correlation_id", default=None
)


def new_correlation_id(connection_id: int) -> str:
    """Return an ID naming the connection plus a random suffix.

    Connection ids restart at zero with every server, so the suffix keeps
    IDs unique across restarts in the same log file.
    """
    return f"conn-{connection_id}-{uuid.uuid4().hex[:12]}"


def current_correlation_id() -> Optional[str]:
    return _current_correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Bind ``correlation_id`` for the duration of the block, then restore."""
    token = _current_correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _current_correlation_id.reset(token)


def component_name(logger_name: str) -> str:
    """Strip the project prefix: ``eventsub.transport.server`` -> ``transport.server``."""
    if logger_name.startswith(LOGGER_PREFIX):
        return logger_name[len(LOGGER_PREFIX) :]
    return logger_name


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Adds ``correlation_id`` and ``component`` to every record's extras."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("correlation_id", current_correlation_id() or NO_CORRELATION_ID)
        extra["component"] = component_name(self.logger.name)
        kwargs["extra"] = extra
        return msg, kwargs
