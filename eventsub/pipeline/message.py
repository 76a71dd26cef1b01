"""Authenticate inbound webhook requests and decode them into typed messages.

Both entry points converge on ``message_from_headers`` which runs the gates
in a fixed order, stopping at the first failure:

1. the four EventSub headers are present,
2. the timestamp is within ``max_message_age`` (when configured),
3. the message ID has not been seen (when a duplicate check is supplied),
4. the signature matches,
5. the body decodes into the variant named by the message type header.

The signature is checked even when the optional gates are disabled, and the
body is only interpreted once the message is authenticated.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional, Union

from eventsub.domain.correlation_id import CorrelationLoggerAdapter
from eventsub.domain.errors import (
    DuplicateMessageId,
    InvalidTimestamp,
    UnexpectedFormat,
    UnknownMessageType,
)
from eventsub.domain.events import EventResolver, decode_notification, default_resolver
from eventsub.domain.models import Message, WebhookCallbackVerification
from eventsub.domain.signing import verify_signature
from eventsub.domain.timestamps import parse_timestamp

MESSAGE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("eventsub.message"), {})

SIGNATURE_HEADER = "twitch-eventsub-message-signature"
MESSAGE_ID_HEADER = "twitch-eventsub-message-id"
TIMESTAMP_HEADER = "twitch-eventsub-message-timestamp"
MESSAGE_TYPE_HEADER = "twitch-eventsub-message-type"

VERIFICATION_MESSAGE_TYPE = "webhook_callback_verification"
NOTIFICATION_MESSAGE_TYPE = "notification"

REQUEST_LINE = ("POST", "/", "HTTP/1.1")

DuplicateCheck = Callable[[str, Optional[datetime]], bool]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Split header lines at the first colon into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if not separator:
            continue
        parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_raw_http_request(raw_request: str) -> tuple[dict[str, str], str]:
    """Split raw ``POST / HTTP/1.1`` text into headers and the first body line."""
    lines = raw_request.split("\r\n")
    if lines[0].split(" ") != list(REQUEST_LINE):
        raise UnexpectedFormat("Request line must be 'POST / HTTP/1.1'")
    try:
        blank_index = lines.index("", 1)
    except ValueError as exc:
        raise UnexpectedFormat("Missing blank line after headers") from exc
    if blank_index + 1 >= len(lines):
        raise UnexpectedFormat("Missing body after blank line")
    headers = parse_headers(lines[1:blank_index])
    return headers, lines[blank_index + 1]


def _check_timestamp(
    timestamp: str, max_message_age: timedelta, clock: Clock
) -> datetime:
    try:
        sent_at = parse_timestamp(timestamp)
    except ValueError as exc:
        raise InvalidTimestamp(f"Unparseable timestamp: {timestamp!r}") from exc
    if sent_at < clock() - max_message_age:
        raise InvalidTimestamp(f"Message timestamp too old: {timestamp}")
    return sent_at


def _timestamp_or_none(timestamp: str) -> Optional[datetime]:
    try:
        return parse_timestamp(timestamp)
    except ValueError:
        return None


def _decode_body(
    message_type: str, body: bytes, resolver: EventResolver
) -> Message:
    if message_type not in (VERIFICATION_MESSAGE_TYPE, NOTIFICATION_MESSAGE_TYPE):
        raise UnknownMessageType(message_type)
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise UnexpectedFormat("Body is not valid JSON") from exc
    if message_type == VERIFICATION_MESSAGE_TYPE:
        return WebhookCallbackVerification.from_dict(payload)
    return decode_notification(payload, resolver)


def message_from_headers(
    headers: Mapping[str, str],
    body: Union[str, bytes],
    secret: str,
    max_message_age: Optional[timedelta] = None,
    is_duplicate: Optional[DuplicateCheck] = None,
    resolver: Optional[EventResolver] = None,
    clock: Clock = _utc_now,
) -> Message:
    """Verify a request given as headers and raw body, then decode it.

    ``is_duplicate`` is called with the message ID and its parsed timestamp
    (None if unparseable) and must record the ID as a side effect, answering
    True if it had already been recorded. The timestamp lets it remember
    future-dated IDs until they are stale.
    """
    normalized = {name.lower(): value for name, value in headers.items()}
    try:
        signature = normalized[SIGNATURE_HEADER]
        message_id = normalized[MESSAGE_ID_HEADER]
        timestamp = normalized[TIMESTAMP_HEADER]
        message_type = normalized[MESSAGE_TYPE_HEADER]
    except KeyError as exc:
        raise UnexpectedFormat(f"Missing header {exc.args[0]}") from exc

    sent_at = None
    if max_message_age is not None:
        sent_at = _check_timestamp(timestamp, max_message_age, clock)

    if is_duplicate is not None:
        if sent_at is None:
            sent_at = _timestamp_or_none(timestamp)
        if is_duplicate(message_id, sent_at):
            raise DuplicateMessageId(message_id)

    raw_body = body.encode("utf-8") if isinstance(body, str) else body
    verify_signature(signature, message_id, timestamp, raw_body, secret)

    MESSAGE_LOGGER.debug(
        "Message authenticated",
        extra={"event": "message_authenticated", "message_type": message_type},
    )
    return _decode_body(message_type, raw_body, resolver or default_resolver())


def message_from_raw_http(
    raw_request: str,
    secret: str,
    max_message_age: Optional[timedelta] = None,
    is_duplicate: Optional[DuplicateCheck] = None,
    resolver: Optional[EventResolver] = None,
    clock: Clock = _utc_now,
) -> Message:
    """Parse raw HTTP request text and verify it like ``message_from_headers``."""
    headers, body = parse_raw_http_request(raw_request)
    return message_from_headers(
        headers,
        body,
        secret,
        max_message_age=max_message_age,
        is_duplicate=is_duplicate,
        resolver=resolver,
        clock=clock,
    )
