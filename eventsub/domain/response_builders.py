"""Pure builders for the three responses the webhook endpoint ever sends."""

from eventsub.domain.http_types import HttpResponse

NOTIFICATION_BODY = "No content"
FORBIDDEN_BODY = "Forbidden"


def _plain_text_response(status_line: str, body: str) -> HttpResponse:
    headers = {
        "Content-Length": str(len(body.encode("utf-8"))),
        "Connection": "Closed",
        "Content-Type": "text/plain",
    }
    return HttpResponse(status_line, headers, body)


def challenge_response(challenge: str) -> HttpResponse:
    """Return a 200 OK echoing the handshake challenge verbatim."""
    return _plain_text_response("HTTP/1.1 200 OK", challenge)


def notification_response() -> HttpResponse:
    """Return the acknowledgement for a notification.

    The provider only looks at the status code; the short body is kept even
    though 204 responses normally carry none.
    """
    return _plain_text_response("HTTP/1.1 204 No Content", NOTIFICATION_BODY)


def forbidden_response() -> HttpResponse:
    """Return a 403 for a message whose signature failed verification."""
    return _plain_text_response("HTTP/1.1 403 Forbidden", FORBIDDEN_BODY)
