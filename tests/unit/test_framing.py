"""Unit tests for request framing over partial reads."""

import pytest

from eventsub.pipeline.framing import (
    RequestFramer,
    RequestTooLarge,
    determine_content_length,
)

REQUEST = (
    b"POST / HTTP/1.1\r\n"
    b"Host: localhost\r\n"
    b"Content-Length: 11\r\n"
    b"\r\n"
    b"hello world"
)


def test_complete_request_in_one_chunk():
    framer = RequestFramer(1024)
    assert framer.feed(REQUEST) == REQUEST


def test_request_split_across_chunks():
    """Partial reads are buffered until the declared body has arrived."""
    framer = RequestFramer(1024)
    split_points = [5, 20, len(REQUEST) - 3]
    previous = 0
    for point in split_points:
        assert framer.feed(REQUEST[previous:point]) is None
        previous = point
    assert framer.feed(REQUEST[previous:]) == REQUEST


def test_bytes_after_body_are_dropped():
    framer = RequestFramer(1024)
    assert framer.feed(REQUEST + b"GET / HTTP/1.1\r\n\r\n") == REQUEST


def test_request_without_content_length_ends_at_headers():
    framer = RequestFramer(1024)
    request = b"POST / HTTP/1.1\r\nHost: a\r\n\r\n"
    assert framer.feed(request) == request


def test_buffer_limit_is_enforced_before_headers_complete():
    framer = RequestFramer(16)
    with pytest.raises(RequestTooLarge):
        framer.feed(b"POST / HTTP/1.1\r\nHost: localhost")


def test_declared_length_over_limit_is_rejected_early():
    framer = RequestFramer(64)
    with pytest.raises(RequestTooLarge):
        framer.feed(b"POST / HTTP/1.1\r\nContent-Length: 4096\r\n\r\n")


def test_buffered_reports_pending_bytes():
    framer = RequestFramer(1024)
    framer.feed(b"POST / ")
    assert framer.buffered == 7


@pytest.mark.parametrize(
    "header_block, expected",
    [
        (b"POST / HTTP/1.1\r\nContent-Length: 42", 42),
        (b"POST / HTTP/1.1\r\ncontent-length:7", 7),
        (b"POST / HTTP/1.1\r\nHost: a", 0),
    ],
)
def test_determine_content_length(header_block, expected):
    assert determine_content_length(header_block) == expected


@pytest.mark.parametrize("value", [b"abc", b"-1"])
def test_determine_content_length_rejects_invalid(value):
    with pytest.raises(ValueError):
        determine_content_length(b"POST / HTTP/1.1\r\nContent-Length: " + value)
