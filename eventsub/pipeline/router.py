"""Choose the response for one inbound webhook request."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from eventsub.domain.correlation_id import CorrelationLoggerAdapter
from eventsub.domain.errors import (
    DuplicateMessageId,
    InvalidSignature,
    InvalidTimestamp,
    UnexpectedFormat,
    UnknownMessageType,
)
from eventsub.domain.events import EventResolver
from eventsub.domain.http_types import HttpResponse
from eventsub.domain.models import Message, Notification, WebhookCallbackVerification
from eventsub.domain.replay_cache import ReplayCache
from eventsub.domain.response_builders import (
    challenge_response,
    forbidden_response,
    notification_response,
)
from eventsub.pipeline.message import message_from_raw_http

ROUTER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("eventsub.router"), {})


@dataclass
class RouteResult:
    """Outcome of handling one request: what to send back and what was decoded."""

    response: Optional[HttpResponse]
    message: Optional[Message] = None


def route_request(
    raw_request: str,
    secret: str,
    replay_cache: ReplayCache,
    max_message_age: timedelta,
    resolver: Optional[EventResolver] = None,
) -> RouteResult:
    """Authenticate ``raw_request`` and map the outcome to a response.

    Only handshakes, notifications and bad signatures are answered; every
    other rejection is logged and left unanswered.
    """
    try:
        message = message_from_raw_http(
            raw_request,
            secret,
            max_message_age=max_message_age,
            is_duplicate=replay_cache.check_and_insert,
            resolver=resolver,
        )
    except InvalidSignature:
        ROUTER_LOGGER.warning(
            "Received invalid message signature",
            extra={"event": "invalid_signature", "status_code": 403},
        )
        return RouteResult(forbidden_response())
    except InvalidTimestamp as error:
        ROUTER_LOGGER.warning(
            "Received message that was too old",
            extra={"event": "invalid_timestamp", "error": str(error)},
        )
        return RouteResult(None)
    except DuplicateMessageId as error:
        ROUTER_LOGGER.warning(
            "Received duplicate message id",
            extra={"event": "duplicate_message", "message_id": error.message_id},
        )
        return RouteResult(None)
    except UnknownMessageType as error:
        ROUTER_LOGGER.warning(
            "Received unknown message type",
            extra={"event": "unknown_message_type", "message_type": error.message_type},
        )
        return RouteResult(None)
    except UnexpectedFormat as error:
        ROUTER_LOGGER.warning(
            "Message parse error",
            extra={"event": "unexpected_format", "error": str(error)},
        )
        return RouteResult(None)

    if isinstance(message, WebhookCallbackVerification):
        ROUTER_LOGGER.info(
            "Answering callback verification",
            extra={
                "event": "callback_verification",
                "subscription_type": message.subscription.type.value,
                "status_code": 200,
            },
        )
        return RouteResult(challenge_response(message.challenge), message)

    if isinstance(message, Notification):
        ROUTER_LOGGER.info(
            "Received notification",
            extra={
                "event": "notification",
                "subscription_type": message.subscription.type.value,
                "status_code": 204,
            },
        )
        return RouteResult(notification_response(), message)

    raise TypeError(f"Unhandled message variant: {type(message).__name__}")
