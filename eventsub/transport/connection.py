"""One accepted TCP stream, driven by the server's event loop."""

import logging
import selectors
import socket
from typing import Optional

from eventsub.domain.correlation_id import (
    CorrelationLoggerAdapter,
    correlation_scope,
    new_correlation_id,
)
from eventsub.pipeline.framing import RequestFramer, RequestTooLarge
from eventsub.transport.observers import ConnectionObserver

CONNECTION_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("eventsub.transport.connection"), {}
)

RECEIVE_CHUNK_SIZE = 1 << 16


class Connection:
    """Receives one request from a client socket and writes back one response.

    Every method must be called from the thread running the selector loop.
    """

    def __init__(
        self,
        connection_id: int,
        client_socket: socket.socket,
        client_address: tuple[str, int],
        selector: selectors.BaseSelector,
        observer: Optional[ConnectionObserver],
        max_request_bytes: int,
    ) -> None:
        self.id = connection_id
        self.client_socket = client_socket
        self.client_address = client_address
        self.correlation_id = new_correlation_id(connection_id)
        self._selector = selector
        self._observer = observer
        self._framer = RequestFramer(max_request_bytes)
        self._outbound = b""
        self._delivered = False
        self._finishing = False
        self._stopped = False

    @property
    def client(self) -> str:
        return f"{self.client_address[0]}:{self.client_address[1]}"

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def _log_extra(self, event: str, **fields) -> dict:
        return {"event": event, "connection_id": self.id, "client": self.client, **fields}

    def start(self) -> None:
        """Register with the selector so the loop starts receiving."""
        CONNECTION_LOGGER.debug(
            "Connection will start", extra=self._log_extra("connection_starting")
        )
        self.client_socket.setblocking(False)
        self._selector.register(self.client_socket, selectors.EVENT_READ, self)

    def clear_observer(self) -> None:
        self._observer = None

    def handle_event(self, mask: int) -> None:
        """Dispatch a selector readiness event for this connection."""
        with correlation_scope(self.correlation_id):
            if mask & selectors.EVENT_READ and not self._stopped:
                self._receive()
            if mask & selectors.EVENT_WRITE and not self._stopped:
                self._flush()

    def _receive(self) -> None:
        try:
            chunk = self.client_socket.recv(RECEIVE_CHUNK_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as error:
            self._fail(error)
            return

        if not chunk:
            CONNECTION_LOGGER.debug(
                "Connection did end", extra=self._log_extra("connection_ended")
            )
            self.stop()
            return

        if self._delivered:
            return

        try:
            request = self._framer.feed(chunk)
        except (RequestTooLarge, ValueError) as error:
            self._fail(error)
            return
        if request is None:
            return

        try:
            message = request.decode("utf-8")
        except UnicodeDecodeError as error:
            self._fail(error)
            return

        self._delivered = True
        CONNECTION_LOGGER.debug(
            "Connection did receive request",
            extra=self._log_extra("request_received", bytes_in=len(request)),
        )
        if self._observer is not None:
            self._observer.connection_did_receive(self, message)

    def send(self, data: bytes) -> None:
        """Write ``data``, queueing whatever the socket cannot take right away."""
        if self._stopped:
            CONNECTION_LOGGER.warning(
                "Dropping send on stopped connection",
                extra=self._log_extra("send_after_stop", bytes_out=len(data)),
            )
            return
        self._outbound += data
        self._flush()

    def _flush(self) -> None:
        try:
            sent = self.client_socket.send(self._outbound) if self._outbound else 0
        except (BlockingIOError, InterruptedError):
            sent = 0
        except OSError as error:
            self._fail(error)
            return

        if sent:
            CONNECTION_LOGGER.debug(
                "Connection did send",
                extra=self._log_extra("response_sent", bytes_out=sent),
            )
        self._outbound = self._outbound[sent:]

        if self._outbound:
            self._selector.modify(
                self.client_socket, selectors.EVENT_READ | selectors.EVENT_WRITE, self
            )
            return
        self._selector.modify(self.client_socket, selectors.EVENT_READ, self)
        if self._finishing:
            self.stop()

    def finish(self) -> None:
        """Stop once every queued byte has been written."""
        self._finishing = True
        if not self._outbound and not self._stopped:
            self.stop()

    def _fail(self, error: BaseException) -> None:
        CONNECTION_LOGGER.warning(
            "Connection did fail",
            extra=self._log_extra("connection_failed", error_type=type(error).__name__),
        )
        self.stop(error)

    def stop(self, error: Optional[BaseException] = None) -> None:
        """Close the socket and notify the observer; later calls do nothing."""
        if self._stopped:
            return
        self._stopped = True
        self._outbound = b""

        try:
            self._selector.unregister(self.client_socket)
        except (KeyError, ValueError):
            pass
        try:
            self.client_socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        self.client_socket.close()

        CONNECTION_LOGGER.debug(
            "Connection stopped", extra=self._log_extra("connection_stopped")
        )
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.connection_did_stop(self, error)
