"""RFC3339 timestamp parsing for message headers and payload fields."""

import re
from datetime import datetime

_RFC3339_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC3339 instant into an aware datetime.

    Fractional seconds of any precision are accepted and truncated to
    microseconds. A timezone designator is required.
    """
    match = _RFC3339_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid RFC3339 timestamp: {value!r}")
    base = match.group("base").replace("t", "T")
    fraction = (match.group("fraction") or "0")[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset in ("Z", "z"):
        offset = "+00:00"
    return datetime.fromisoformat(f"{base}.{fraction}{offset}")
