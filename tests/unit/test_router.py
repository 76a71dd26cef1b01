"""Unit tests for mapping authenticated messages to responses."""

import logging
from datetime import timedelta

import pytest

from eventsub.domain.events import ChannelFollow, HypeTrainBegin
from eventsub.domain.models import Notification, WebhookCallbackVerification
from eventsub.domain.replay_cache import ReplayCache
from eventsub.pipeline.router import route_request
from tests.utils.messages import (
    TEST_SECRET,
    notification_body,
    raw_request,
    signed_headers,
    utc_timestamp,
    verification_body,
)

MAX_AGE = timedelta(minutes=10)


@pytest.fixture(name="replay_cache")
def fixture_replay_cache() -> ReplayCache:
    return ReplayCache(MAX_AGE.total_seconds())


def _route(text: str, replay_cache: ReplayCache):
    return route_request(text, TEST_SECRET, replay_cache, MAX_AGE)


def test_handshake_answered_with_challenge(replay_cache):
    """A signed handshake gets 200 with exactly the challenge as body."""
    body = verification_body("ping-token")
    headers = signed_headers(body, message_type="webhook_callback_verification")

    result = _route(raw_request(headers, body), replay_cache)

    assert result.response.status_code == 200
    assert result.response.body == "ping-token"
    assert isinstance(result.message, WebhookCallbackVerification)


def test_notification_acknowledged_with_204(replay_cache):
    body = notification_body()
    result = _route(raw_request(signed_headers(body), body), replay_cache)

    assert result.response.status_code == 204
    assert result.response.body == "No content"
    assert isinstance(result.message, Notification)
    assert isinstance(result.message.event, ChannelFollow)


def test_hype_train_notification_acknowledged_with_204(replay_cache):
    """Event types beyond the common channel events are acknowledged too."""
    event = {
        "id": "1b0AsbInCHZW2SQFQkCzqN07Ib2",
        "broadcaster_user_id": "1337",
        "broadcaster_user_login": "cool_user",
        "broadcaster_user_name": "Cool_User",
        "total": 137,
        "progress": 137,
        "goal": 500,
        "top_contributions": [],
        "last_contribution": {
            "user_id": "123",
            "user_name": "PogChamp",
            "type": "bits",
            "total": 50,
        },
        "level": 1,
        "started_at": "2020-07-15T17:16:03.17106713Z",
        "expires_at": "2020-07-15T17:16:11.17106713Z",
    }
    body = notification_body("channel.hype_train.begin", event)
    result = _route(raw_request(signed_headers(body), body), replay_cache)

    assert result.response.status_code == 204
    assert isinstance(result.message.event, HypeTrainBegin)


def test_bad_signature_gets_403(replay_cache, caplog):
    body = notification_body()
    headers = signed_headers(body, secret="wrong-secret")

    with caplog.at_level(logging.WARNING, logger="eventsub"):
        result = _route(raw_request(headers, body), replay_cache)

    assert result.response.status_code == 403
    assert result.response.body == "Forbidden"
    assert result.message is None
    assert any(
        getattr(record, "event", None) == "invalid_signature" for record in caplog.records
    )


def test_stale_message_gets_no_response(replay_cache, caplog):
    body = notification_body()
    headers = signed_headers(body, timestamp=utc_timestamp(-timedelta(minutes=30)))

    with caplog.at_level(logging.WARNING, logger="eventsub"):
        result = _route(raw_request(headers, body), replay_cache)

    assert result.response is None
    assert any(
        getattr(record, "event", None) == "invalid_timestamp" for record in caplog.records
    )


def test_duplicate_gets_no_response(replay_cache, caplog):
    """The first delivery is acknowledged; the replay is silently dropped."""
    body = notification_body()
    text = raw_request(signed_headers(body, message_id="abc-123"), body)

    assert _route(text, replay_cache).response.status_code == 204
    with caplog.at_level(logging.WARNING, logger="eventsub"):
        replay = _route(text, replay_cache)

    assert replay.response is None
    duplicates = [
        record for record in caplog.records
        if getattr(record, "event", None) == "duplicate_message"
    ]
    assert duplicates and duplicates[0].message_id == "abc-123"


def test_unknown_type_gets_no_response(replay_cache):
    body = notification_body()
    headers = signed_headers(body, message_type="revocation")
    assert _route(raw_request(headers, body), replay_cache).response is None


def test_malformed_request_gets_no_response(replay_cache):
    assert _route("GET / HTTP/1.1\r\n\r\n", replay_cache).response is None


def test_undecodable_body_gets_no_response(replay_cache):
    body = notification_body("channel.teleport")
    assert _route(raw_request(signed_headers(body), body), replay_cache).response is None
