"""Webhook server: listener, event loop, connection table and replay cache.

The listener and every connection are multiplexed by one selector running on
a single loop thread. The connection table and replay cache are only touched
from that thread.
"""

import itertools
import logging
import selectors
import socket
import threading
from datetime import timedelta
from typing import Optional

from eventsub.bootstrap.config import DEFAULT_MAX_REQUEST_BYTES
from eventsub.bootstrap.socket_factory import (
    create_listener_socket,
    is_network_unavailable,
)
from eventsub.domain.correlation_id import CorrelationLoggerAdapter, correlation_scope
from eventsub.domain.events import EventResolver
from eventsub.domain.models import Notification
from eventsub.domain.replay_cache import ReplayCache
from eventsub.lifecycle.state import ListenerLifecycle, ListenerState, ListenerStatus
from eventsub.pipeline.router import route_request
from eventsub.security.secrets import SecretHolder
from eventsub.transport.connection import Connection
from eventsub.transport.observers import ListenerObserver, ServerObserver

SERVER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("eventsub.transport.server"), {}
)

DEFAULT_MAX_MESSAGE_AGE = timedelta(minutes=10)
POLL_INTERVAL_SECONDS = 0.2


class InvalidPort(ValueError):
    """Raised when the configured port is outside 0-65535."""

    def __init__(self, port: int) -> None:
        super().__init__(f"Invalid port: {port}")
        self.port = port


class ListenerError(RuntimeError):
    """Raised when the listener cannot be started."""


class Server:
    """Accepts EventSub webhook deliveries and answers each one exactly once."""

    def __init__(
        self,
        secret_holder: SecretHolder,
        port: int,
        host: str = "0.0.0.0",
        max_message_age: timedelta = DEFAULT_MAX_MESSAGE_AGE,
        max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES,
        resolver: Optional[EventResolver] = None,
        observer: Optional[ServerObserver] = None,
        listener_observer: Optional[ListenerObserver] = None,
    ) -> None:
        if not 0 <= port <= 65535:
            raise InvalidPort(port)
        self.secret_holder = secret_holder
        self.host = host
        self.port = port
        self.max_message_age = max_message_age
        self.max_request_bytes = max_request_bytes
        self.resolver = resolver
        self.observer = observer
        self.listener_observer = listener_observer
        self.lifecycle = ListenerLifecycle()
        self.replay_cache = ReplayCache(max_message_age.total_seconds())
        self._connections: dict[int, Connection] = {}
        self._connection_ids = itertools.count()
        self._selector: Optional[selectors.BaseSelector] = None
        self._listener_socket: Optional[socket.socket] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._address: Optional[tuple[str, int]] = None

    @property
    def state(self) -> ListenerState:
        return self.lifecycle.state

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """The bound ``(host, port)`` once the listener is ready."""
        return self._address

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def _set_state(
        self, state: ListenerState, error: Optional[BaseException] = None
    ) -> None:
        status = self.lifecycle.transition(state, error)
        self.state_did_change(status)

    def state_did_change(self, status: ListenerStatus) -> None:
        """Log a listener transition and forward it to the listener observer."""
        if status.state is ListenerState.READY:
            SERVER_LOGGER.info(
                "Server ready",
                extra={
                    "event": "server_listening",
                    "host": self._address[0] if self._address else self.host,
                    "port": self._address[1] if self._address else self.port,
                },
            )
        elif status.state is ListenerState.FAILED:
            SERVER_LOGGER.error(
                "Server failure",
                extra={
                    "event": "server_failed",
                    "error_type": type(status.error).__name__,
                    "error": str(status.error),
                },
            )
        elif status.state is ListenerState.WAITING:
            SERVER_LOGGER.warning(
                "Server waiting for network",
                extra={"event": "server_waiting", "error": str(status.error)},
            )
        if self.listener_observer is not None:
            self.listener_observer.listener_state_did_change(status)

    def start(self) -> None:
        """Bind the listener and start the event loop thread."""
        if self.state is not ListenerState.SETUP:
            raise ListenerError(f"Cannot start server in state {self.state.value}")
        try:
            listener_socket = create_listener_socket(self.host, self.port)
        except OSError as error:
            if is_network_unavailable(error):
                self._set_state(ListenerState.WAITING, error)
            else:
                self._set_state(ListenerState.FAILED, error)
            raise ListenerError(f"Could not listen on {self.host}:{self.port}") from error

        self._listener_socket = listener_socket
        self._address = listener_socket.getsockname()[:2]
        self._selector = selectors.DefaultSelector()
        self._selector.register(listener_socket, selectors.EVENT_READ, None)
        self._set_state(ListenerState.READY)

        self._loop_thread = threading.Thread(
            target=self._run_loop, name="eventsub-loop", daemon=True
        )
        self._loop_thread.start()

    def _run_loop(self) -> None:
        selector = self._selector
        try:
            while not self.lifecycle.should_stop():
                for key, mask in selector.select(timeout=POLL_INTERVAL_SECONDS):
                    if key.data is None:
                        self._accept()
                    else:
                        key.data.handle_event(mask)
        except Exception as error:  # pylint: disable=broad-except
            SERVER_LOGGER.error(
                "Event loop crashed",
                extra={"event": "loop_error", "error_type": type(error).__name__},
                exc_info=True,
            )
            if not self.lifecycle.should_stop():
                self._set_state(ListenerState.FAILED, error)
        finally:
            self._teardown()

    def _accept(self) -> None:
        try:
            client_socket, client_address = self._listener_socket.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as error:
            SERVER_LOGGER.error(
                "Socket accept failed",
                extra={"event": "accept_error", "error_type": type(error).__name__},
            )
            return

        connection = Connection(
            next(self._connection_ids),
            client_socket,
            client_address[:2],
            self._selector,
            self,
            self.max_request_bytes,
        )
        self._connections[connection.id] = connection

        with correlation_scope(connection.correlation_id):
            self._start_connection(connection)

    def _start_connection(self, connection: Connection) -> None:
        try:
            if self.observer is not None:
                self.observer.server_did_accept(connection)
            connection.start()
            SERVER_LOGGER.debug(
                "Server did open connection",
                extra={
                    "event": "connection_opened",
                    "connection_id": connection.id,
                    "client": connection.client,
                    "open_connections": len(self._connections),
                },
            )
        except Exception as error:  # pylint: disable=broad-except
            SERVER_LOGGER.error(
                "Failed to start connection",
                extra={"event": "connection_start_error", "connection_id": connection.id},
                exc_info=True,
            )
            connection.stop(error)

    def connection_did_receive(self, connection: Connection, message: str) -> None:
        """Answer the single request of ``connection``, then finish it."""
        try:
            result = route_request(
                message,
                self.secret_holder.client_secret,
                self.replay_cache,
                self.max_message_age,
                self.resolver,
            )
            if result.response is not None:
                connection.send(result.response.encode())
            if isinstance(result.message, Notification) and self.observer is not None:
                self.observer.server_did_receive_notification(result.message)
        except Exception:  # pylint: disable=broad-except
            SERVER_LOGGER.error(
                "Unexpected error handling request",
                extra={"event": "request_error", "connection_id": connection.id},
                exc_info=True,
            )
        finally:
            connection.finish()

    def connection_did_stop(
        self, connection: Connection, error: Optional[BaseException]
    ) -> None:
        self._connections.pop(connection.id, None)
        SERVER_LOGGER.debug(
            "Server did close connection",
            extra={
                "event": "connection_closed",
                "connection_id": connection.id,
                "error_type": type(error).__name__ if error is not None else None,
                "open_connections": len(self._connections),
            },
        )

    def _teardown(self) -> None:
        for connection in list(self._connections.values()):
            connection.clear_observer()
            connection.stop()
        self._connections.clear()

        if self._selector is not None:
            self._selector.close()
        if self._listener_socket is not None:
            self._listener_socket.close()

        if self.lifecycle.should_stop() and self.lifecycle.can_transition(
            ListenerState.CANCELLED
        ):
            self._set_state(ListenerState.CANCELLED)
        SERVER_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})

    def stop(self) -> None:
        """Cancel the listener and drop every open connection immediately.

        In-flight writes are abandoned. Safe to call from any thread; when
        called off the loop thread it returns after teardown has finished.
        """
        self.observer = None
        self.listener_observer = None
        self.lifecycle.request_stop()

        thread = self._loop_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        if thread is None or not thread.is_alive():
            if self.lifecycle.can_transition(ListenerState.CANCELLED):
                self._set_state(ListenerState.CANCELLED)
