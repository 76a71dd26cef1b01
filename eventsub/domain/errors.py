"""Failures raised while turning an inbound request into an EventSub message."""

from typing import Optional


class MessageError(Exception):
    """Base class for every rejection produced by message construction."""


class UnexpectedFormat(MessageError):
    """Raised for malformed HTTP text, missing headers, or an undecodable payload."""


class InvalidTimestamp(MessageError):
    """Raised when the message timestamp is unparseable or older than allowed."""


class DuplicateMessageId(MessageError):
    """Raised when the message ID has already been accepted."""

    def __init__(self, message_id: str) -> None:
        super().__init__(f"Duplicate message id: {message_id}")
        self.message_id = message_id


class InvalidSignature(MessageError):
    """Raised when the declared signature does not match the computed one."""


class UnknownMessageType(MessageError):
    """Raised for an authenticated message whose type header is not recognised."""

    def __init__(self, message_type: Optional[str]) -> None:
        super().__init__(f"Unknown message type: {message_type!r}")
        self.message_type = message_type
