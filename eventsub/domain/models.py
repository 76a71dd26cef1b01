"""Typed EventSub payload records: subscriptions, handshakes and notifications."""

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Type, TypeVar, Union

from eventsub.domain.errors import UnexpectedFormat
from eventsub.domain.timestamps import parse_timestamp

RecordT = TypeVar("RecordT")


def decode_record(record_type: Type[RecordT], data: Any) -> RecordT:
    """Build a flat dataclass from a JSON object, ignoring unknown keys."""
    if not isinstance(data, dict):
        raise UnexpectedFormat(f"Expected an object for {record_type.__name__}")
    values = {}
    for record_field in dataclasses.fields(record_type):
        if record_field.name in data:
            values[record_field.name] = data[record_field.name]
        elif (
            record_field.default is dataclasses.MISSING
            and record_field.default_factory is dataclasses.MISSING
        ):
            raise UnexpectedFormat(
                f"Missing field {record_field.name!r} for {record_type.__name__}"
            )
    return record_type(**values)


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data:
        raise UnexpectedFormat(f"Missing field {key!r}")
    return data[key]


class SubscriptionType(str, Enum):
    """Type tags of EventSub subscriptions."""

    CHANNEL_UPDATE = "channel.update"
    CHANNEL_FOLLOW = "channel.follow"
    CHANNEL_SUBSCRIBE = "channel.subscribe"
    CHANNEL_SUBSCRIPTION_END = "channel.subscription.end"
    CHANNEL_SUBSCRIPTION_GIFT = "channel.subscription.gift"
    CHANNEL_SUBSCRIPTION_MESSAGE = "channel.subscription.message"
    CHANNEL_CHEER = "channel.cheer"
    CHANNEL_RAID = "channel.raid"
    CHANNEL_BAN = "channel.ban"
    CHANNEL_UNBAN = "channel.unban"
    CHANNEL_MODERATOR_ADD = "channel.moderator.add"
    CHANNEL_MODERATOR_REMOVE = "channel.moderator.remove"
    CHANNEL_POINTS_CUSTOM_REWARD_ADD = "channel.channel_points_custom_reward.add"
    CHANNEL_POINTS_CUSTOM_REWARD_UPDATE = "channel.channel_points_custom_reward.update"
    CHANNEL_POINTS_CUSTOM_REWARD_REMOVE = "channel.channel_points_custom_reward.remove"
    CHANNEL_POINTS_CUSTOM_REWARD_REDEMPTION_ADD = (
        "channel.channel_points_custom_reward_redemption.add"
    )
    CHANNEL_POINTS_CUSTOM_REWARD_REDEMPTION_UPDATE = (
        "channel.channel_points_custom_reward_redemption.update"
    )
    CHANNEL_POLL_BEGIN = "channel.poll.begin"
    CHANNEL_POLL_PROGRESS = "channel.poll.progress"
    CHANNEL_POLL_END = "channel.poll.end"
    CHANNEL_PREDICTION_BEGIN = "channel.prediction.begin"
    CHANNEL_PREDICTION_PROGRESS = "channel.prediction.progress"
    CHANNEL_PREDICTION_LOCK = "channel.prediction.lock"
    CHANNEL_PREDICTION_END = "channel.prediction.end"
    DROP_ENTITLEMENT_GRANT = "drop.entitlement.grant"
    EXTENSION_BITS_TRANSACTION_CREATE = "extension.bits_transaction.create"
    CHANNEL_GOALS_BEGIN = "channel.goals.begin"
    CHANNEL_GOALS_PROGRESS = "channel.goals.progress"
    CHANNEL_GOALS_END = "channel.goals.end"
    HYPE_TRAIN_BEGIN = "channel.hype_train.begin"
    HYPE_TRAIN_PROGRESS = "channel.hype_train.progress"
    HYPE_TRAIN_END = "channel.hype_train.end"
    STREAM_ONLINE = "stream.online"
    STREAM_OFFLINE = "stream.offline"
    USER_AUTHORIZATION_GRANT = "user.authorization.grant"
    USER_AUTHORIZATION_REVOKE = "user.authorization.revoke"
    USER_UPDATE = "user.update"

    @property
    def is_batching_enabled(self) -> bool:
        return self is SubscriptionType.DROP_ENTITLEMENT_GRANT


class SubscriptionStatus(str, Enum):
    """Delivery status of a subscription."""

    ENABLED = "enabled"
    WEBHOOK_CALLBACK_VERIFICATION_PENDING = "webhook_callback_verification_pending"
    WEBHOOK_CALLBACK_VERIFICATION_FAILED = "webhook_callback_verification_failed"
    NOTIFICATION_FAILURES_EXCEEDED = "notification_failures_exceeded"
    AUTHORIZATION_REVOKED = "authorization_revoked"
    USER_REMOVED = "user_removed"


class TransportMethod(str, Enum):
    """How notifications are delivered. Webhooks are the only supported method."""

    WEBHOOK = "webhook"


@dataclass(frozen=True)
class Transport:
    """Delivery configuration of a subscription."""

    method: TransportMethod
    callback: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Transport":
        if not isinstance(data, dict):
            raise UnexpectedFormat("Expected an object for transport")
        try:
            method = TransportMethod(_require(data, "method"))
        except ValueError as exc:
            raise UnexpectedFormat(f"Unknown transport method: {data['method']!r}") from exc
        callback = data.get("callback")
        if callback is not None and not isinstance(callback, str):
            raise UnexpectedFormat("Transport callback must be a string")
        return cls(method=method, callback=callback)


@dataclass(frozen=True)
class Subscription:
    """A registered interest in a category of events."""

    id: str
    status: SubscriptionStatus
    type: SubscriptionType
    version: str
    condition: dict[str, Any]
    transport: Transport
    created_at: datetime
    cost: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Subscription":
        """Decode a subscription object; the type tag is validated first."""
        if not isinstance(data, dict):
            raise UnexpectedFormat("Expected an object for subscription")
        try:
            subscription_type = SubscriptionType(_require(data, "type"))
        except ValueError as exc:
            raise UnexpectedFormat(
                f"Unknown subscription type: {data['type']!r}"
            ) from exc
        try:
            status = SubscriptionStatus(_require(data, "status"))
        except ValueError as exc:
            raise UnexpectedFormat(
                f"Unknown subscription status: {data['status']!r}"
            ) from exc
        condition = _require(data, "condition")
        if not isinstance(condition, dict):
            raise UnexpectedFormat("Expected an object for condition")
        try:
            created_at = parse_timestamp(str(_require(data, "created_at")))
        except ValueError as exc:
            raise UnexpectedFormat("Invalid subscription created_at") from exc
        cost = data.get("cost")
        if cost is not None and (isinstance(cost, bool) or not isinstance(cost, int)):
            raise UnexpectedFormat("Subscription cost must be an integer")
        return cls(
            id=str(_require(data, "id")),
            status=status,
            type=subscription_type,
            version=str(_require(data, "version")),
            condition=dict(condition),
            transport=Transport.from_dict(_require(data, "transport")),
            created_at=created_at,
            cost=cost,
        )


@dataclass(frozen=True)
class WebhookCallbackVerification:
    """Handshake sent to confirm control of the callback endpoint."""

    subscription: Subscription
    challenge: str

    @classmethod
    def from_dict(cls, data: Any) -> "WebhookCallbackVerification":
        if not isinstance(data, dict):
            raise UnexpectedFormat("Expected an object for verification payload")
        subscription = Subscription.from_dict(_require(data, "subscription"))
        challenge = _require(data, "challenge")
        if not isinstance(challenge, str) or not challenge:
            raise UnexpectedFormat("Challenge must be a non-empty string")
        return cls(subscription=subscription, challenge=challenge)


@dataclass(frozen=True)
class Notification:
    """An authenticated event payload for a subscription."""

    subscription: Subscription
    event: Any


Message = Union[WebhookCallbackVerification, Notification]
