"""HMAC-SHA256 signing of EventSub messages."""

import hashlib
import hmac
from typing import Union

from eventsub.domain.errors import InvalidSignature

SIGNATURE_PREFIX = "sha256="


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(
    secret: Union[str, bytes],
    message_id: str,
    timestamp: str,
    body: Union[str, bytes],
) -> str:
    """Return the ``sha256=<hex>`` signature for the given message fields.

    The timestamp is signed exactly as received; it is never reparsed here.
    """
    payload = message_id.encode("utf-8") + timestamp.encode("utf-8") + _to_bytes(body)
    digest = hmac.new(_to_bytes(secret), payload, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(
    signature: str,
    message_id: str,
    timestamp: str,
    body: Union[str, bytes],
    secret: Union[str, bytes],
) -> None:
    """Raise InvalidSignature unless ``signature`` matches the computed one."""
    expected = compute_signature(secret, message_id, timestamp, body)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise InvalidSignature("Message signature mismatch")
