"""Event shapes delivered inside notifications, keyed by subscription type."""

from dataclasses import dataclass
from typing import Any, Optional, Type

from eventsub.domain.errors import UnexpectedFormat
from eventsub.domain.models import (
    Notification,
    Subscription,
    SubscriptionType,
    decode_record,
)


@dataclass(frozen=True)
class ChannelUpdate:
    broadcaster_user_id: str
    broadcaster_user_name: str
    title: str
    language: str
    category_id: str
    category_name: str
    is_mature: bool
    broadcaster_user_login: Optional[str] = None


@dataclass(frozen=True)
class ChannelFollow:
    user_id: str
    user_name: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    user_login: Optional[str] = None
    broadcaster_user_login: Optional[str] = None
    followed_at: Optional[str] = None


@dataclass(frozen=True)
class ChannelSubscribe:
    """A new (non-resubscription) subscriber. ``tier`` is "1000", "2000" or "3000"."""

    user_id: str
    user_name: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    tier: str
    is_gift: bool


@dataclass(frozen=True)
class ChannelCheer:
    is_anonymous: bool
    broadcaster_user_id: str
    broadcaster_user_name: str
    message: str
    bits: int
    user_id: Optional[str] = None
    user_name: Optional[str] = None


@dataclass(frozen=True)
class ChannelRaid:
    from_broadcaster_user_id: str
    from_broadcaster_user_login: str
    from_broadcaster_user_name: str
    to_broadcaster_user_id: str
    to_broadcaster_user_login: str
    to_broadcaster_user_name: str
    viewers: int


@dataclass(frozen=True)
class ChannelBan:
    user_id: str
    user_name: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    reason: Optional[str] = None
    ends_at: Optional[str] = None
    is_permanent: Optional[bool] = None


@dataclass(frozen=True)
class ChannelUnban:
    user_id: str
    user_name: str
    broadcaster_user_id: str
    broadcaster_user_name: str


@dataclass(frozen=True)
class ChannelModeratorChange:
    """Moderator privileges added to or removed from a user."""

    broadcaster_user_id: str
    broadcaster_user_login: str
    broadcaster_user_name: str
    user_id: str
    user_login: str
    user_name: str


@dataclass(frozen=True)
class StreamOnline:
    id: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    type: str
    started_at: Optional[str] = None


@dataclass(frozen=True)
class StreamOffline:
    broadcaster_user_id: str
    broadcaster_user_name: str


@dataclass(frozen=True)
class UserAuthorizationRevoke:
    client_id: str
    user_id: str
    user_name: Optional[str] = None


@dataclass(frozen=True)
class UserUpdate:
    user_id: str
    user_name: str
    description: str
    email: Optional[str] = None


@dataclass(frozen=True)
class ChannelSubscriptionEnd:
    user_id: str
    user_name: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    tier: str
    is_gift: bool
    user_login: Optional[str] = None
    broadcaster_user_login: Optional[str] = None


@dataclass(frozen=True)
class ChannelSubscriptionGift:
    """Gifted subscriptions. User fields are None when the gifter is anonymous."""

    broadcaster_user_id: str
    broadcaster_user_name: str
    total: int
    tier: str
    is_anonymous: bool
    user_id: Optional[str] = None
    user_login: Optional[str] = None
    user_name: Optional[str] = None
    broadcaster_user_login: Optional[str] = None
    cumulative_total: Optional[int] = None


@dataclass(frozen=True)
class ChannelSubscriptionMessage:
    """A resubscription chat message; ``message`` holds ``text`` and ``emotes``."""

    user_id: str
    user_name: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    tier: str
    message: dict[str, Any]
    duration_months: int
    user_login: Optional[str] = None
    broadcaster_user_login: Optional[str] = None
    cumulative_months: Optional[int] = None
    streak_months: Optional[int] = None


@dataclass(frozen=True)
class ChannelPointsCustomReward:
    """A custom reward as added, updated or removed.

    The nested ``max_per_stream``, ``max_per_user_per_stream`` and
    ``global_cooldown`` objects keep their wire form (``is_enabled`` plus
    ``value`` or ``seconds``).
    """

    id: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    is_enabled: bool
    is_paused: bool
    is_in_stock: bool
    title: str
    cost: int
    prompt: str
    is_user_input_required: bool
    should_redemptions_skip_request_queue: bool
    max_per_stream: dict[str, Any]
    max_per_user_per_stream: dict[str, Any]
    background_color: str
    global_cooldown: dict[str, Any]
    broadcaster_user_login: Optional[str] = None
    image: Optional[dict[str, Any]] = None
    default_image: Optional[dict[str, Any]] = None
    cooldown_expires_at: Optional[str] = None
    redemptions_redeemed_current_stream: Optional[int] = None


@dataclass(frozen=True)
class ChannelPointsCustomRewardRedemption:
    """``status`` is unfulfilled, fulfilled, canceled or unknown."""

    id: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    user_id: str
    user_name: str
    user_input: str
    status: str
    reward: dict[str, Any]
    redeemed_at: str
    broadcaster_user_login: Optional[str] = None
    user_login: Optional[str] = None


@dataclass(frozen=True)
class ChannelPoll:
    """A poll that began or progressed; ``choices`` carry running vote counts."""

    id: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    title: str
    choices: list[dict[str, Any]]
    bits_voting: dict[str, Any]
    channel_points_voting: dict[str, Any]
    started_at: str
    ends_at: str
    broadcaster_user_login: Optional[str] = None


@dataclass(frozen=True)
class ChannelPollEnd:
    """``status`` is completed, archived or terminated."""

    id: str
    broadcaster_user_id: str
    broadcaster_user_name: str
    title: str
    choices: list[dict[str, Any]]
    bits_voting: dict[str, Any]
    channel_points_voting: dict[str, Any]
    status: str
    started_at: str
    ended_at: str
    broadcaster_user_login: Optional[str] = None


@dataclass(frozen=True)
class HypeTrainBegin:
    """Contributions are objects with ``user_id``, ``user_name``, ``type`` and ``total``."""

    broadcaster_user_id: str
    broadcaster_user_name: str
    total: int
    goal: int
    top_contributions: list[dict[str, Any]]
    last_contribution: dict[str, Any]
    started_at: str
    expires_at: str
    progress: Optional[int] = None
    level: Optional[int] = None
    broadcaster_user_login: Optional[str] = None


@dataclass(frozen=True)
class HypeTrainProgress:
    broadcaster_user_id: str
    broadcaster_user_name: str
    level: int
    total: int
    progress: int
    goal: int
    top_contributions: list[dict[str, Any]]
    last_contribution: dict[str, Any]
    started_at: str
    expires_at: str
    broadcaster_user_login: Optional[str] = None


@dataclass(frozen=True)
class HypeTrainEnd:
    broadcaster_user_id: str
    broadcaster_user_name: str
    level: int
    total: int
    top_contributions: list[dict[str, Any]]
    started_at: str
    ended_at: str
    cooldown_ends_at: str
    broadcaster_user_login: Optional[str] = None


@dataclass(frozen=True)
class UserAuthorizationGrant:
    client_id: str
    user_id: str
    user_login: str
    user_name: str


class EventResolver:
    """Maps subscription type tags to the record type their events decode into."""

    def __init__(self, shapes: Optional[dict[SubscriptionType, Type[Any]]] = None):
        self._shapes: dict[SubscriptionType, Type[Any]] = dict(shapes or {})

    def register(self, subscription_type: SubscriptionType, shape: Type[Any]) -> None:
        self._shapes[subscription_type] = shape

    def shape_for(self, subscription_type: SubscriptionType) -> Optional[Type[Any]]:
        return self._shapes.get(subscription_type)

    def decode_event(self, subscription_type: SubscriptionType, data: Any) -> Any:
        """Decode ``data`` with the shape registered for ``subscription_type``."""
        shape = self.shape_for(subscription_type)
        if shape is None:
            raise UnexpectedFormat(
                f"No event shape registered for {subscription_type.value}"
            )
        return decode_record(shape, data)


DEFAULT_EVENT_SHAPES: dict[SubscriptionType, Type[Any]] = {
    SubscriptionType.CHANNEL_UPDATE: ChannelUpdate,
    SubscriptionType.CHANNEL_FOLLOW: ChannelFollow,
    SubscriptionType.CHANNEL_SUBSCRIBE: ChannelSubscribe,
    SubscriptionType.CHANNEL_CHEER: ChannelCheer,
    SubscriptionType.CHANNEL_RAID: ChannelRaid,
    SubscriptionType.CHANNEL_BAN: ChannelBan,
    SubscriptionType.CHANNEL_UNBAN: ChannelUnban,
    SubscriptionType.CHANNEL_MODERATOR_ADD: ChannelModeratorChange,
    SubscriptionType.CHANNEL_MODERATOR_REMOVE: ChannelModeratorChange,
    SubscriptionType.STREAM_ONLINE: StreamOnline,
    SubscriptionType.STREAM_OFFLINE: StreamOffline,
    SubscriptionType.USER_AUTHORIZATION_REVOKE: UserAuthorizationRevoke,
    SubscriptionType.USER_UPDATE: UserUpdate,
    SubscriptionType.USER_AUTHORIZATION_GRANT: UserAuthorizationGrant,
    SubscriptionType.CHANNEL_SUBSCRIPTION_END: ChannelSubscriptionEnd,
    SubscriptionType.CHANNEL_SUBSCRIPTION_GIFT: ChannelSubscriptionGift,
    SubscriptionType.CHANNEL_SUBSCRIPTION_MESSAGE: ChannelSubscriptionMessage,
    SubscriptionType.CHANNEL_POINTS_CUSTOM_REWARD_ADD: ChannelPointsCustomReward,
    SubscriptionType.CHANNEL_POINTS_CUSTOM_REWARD_UPDATE: ChannelPointsCustomReward,
    SubscriptionType.CHANNEL_POINTS_CUSTOM_REWARD_REMOVE: ChannelPointsCustomReward,
    SubscriptionType.CHANNEL_POINTS_CUSTOM_REWARD_REDEMPTION_ADD: (
        ChannelPointsCustomRewardRedemption
    ),
    SubscriptionType.CHANNEL_POINTS_CUSTOM_REWARD_REDEMPTION_UPDATE: (
        ChannelPointsCustomRewardRedemption
    ),
    SubscriptionType.CHANNEL_POLL_BEGIN: ChannelPoll,
    SubscriptionType.CHANNEL_POLL_PROGRESS: ChannelPoll,
    SubscriptionType.CHANNEL_POLL_END: ChannelPollEnd,
    SubscriptionType.HYPE_TRAIN_BEGIN: HypeTrainBegin,
    SubscriptionType.HYPE_TRAIN_PROGRESS: HypeTrainProgress,
    SubscriptionType.HYPE_TRAIN_END: HypeTrainEnd,
}


def default_resolver() -> EventResolver:
    """Return a resolver preloaded with the built-in event shapes."""
    return EventResolver(DEFAULT_EVENT_SHAPES)


def decode_notification(data: Any, resolver: EventResolver) -> Notification:
    """Decode a notification in two passes: subscription first, then its event.

    The event shape depends on the subscription's type tag, so the event is
    never looked at until the subscription has decoded successfully.
    """
    if not isinstance(data, dict):
        raise UnexpectedFormat("Expected an object for notification payload")
    if "subscription" not in data:
        raise UnexpectedFormat("Missing field 'subscription'")
    subscription = Subscription.from_dict(data["subscription"])
    if "event" not in data:
        raise UnexpectedFormat("Missing field 'event'")
    event = resolver.decode_event(subscription.type, data["event"])
    return Notification(subscription=subscription, event=event)
