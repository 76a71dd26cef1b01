"""Accumulate received bytes until one complete HTTP request is available."""

from typing import Optional

HEADER_DELIMITER = b"\r\n\r\n"


class RequestTooLarge(Exception):
    """Raised when buffered request bytes exceed the configured limit."""


def determine_content_length(header_block: bytes) -> int:
    """Return the declared Content-Length, or 0 when the header is absent."""
    for line in header_block.split(b"\r\n")[1:]:
        name, separator, value = line.partition(b":")
        if not separator or name.strip().lower() != b"content-length":
            continue
        try:
            content_length = int(value.strip())
        except ValueError as exc:
            raise ValueError("Invalid Content-Length") from exc
        if content_length < 0:
            raise ValueError("Negative Content-Length")
        return content_length
    return 0


class RequestFramer:
    """Buffers a single request until its headers and declared body are complete."""

    def __init__(self, max_request_bytes: int) -> None:
        self._max_request_bytes = max_request_bytes
        self._buffer = b""
        self._expected_length: Optional[int] = None

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> Optional[bytes]:
        """Add ``chunk`` and return the complete request bytes once available.

        Bytes past the declared body are dropped; one request per connection.
        """
        self._buffer += chunk
        if len(self._buffer) > self._max_request_bytes:
            raise RequestTooLarge(
                f"Request exceeds {self._max_request_bytes} bytes"
            )

        if self._expected_length is None:
            header_end = self._buffer.find(HEADER_DELIMITER)
            if header_end == -1:
                return None
            content_length = determine_content_length(self._buffer[:header_end])
            self._expected_length = header_end + len(HEADER_DELIMITER) + content_length
            if self._expected_length > self._max_request_bytes:
                raise RequestTooLarge(
                    f"Declared request size exceeds {self._max_request_bytes} bytes"
                )

        if len(self._buffer) < self._expected_length:
            return None
        return self._buffer[: self._expected_length]
