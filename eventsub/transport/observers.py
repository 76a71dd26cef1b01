"""Narrow observer interfaces connecting connections, listener and server."""

from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from eventsub.domain.models import Notification
    from eventsub.lifecycle.state import ListenerStatus
    from eventsub.transport.connection import Connection


class ConnectionObserver(Protocol):
    """Receives the events of one connection."""

    def connection_did_receive(self, connection: "Connection", message: str) -> None:
        """Called once with the complete request text."""

    def connection_did_stop(
        self, connection: "Connection", error: Optional[BaseException]
    ) -> None:
        """Called exactly once when the connection stops, with the cause if any."""


class ListenerObserver(Protocol):  # pylint: disable=too-few-public-methods
    """Receives listener state transitions."""

    def listener_state_did_change(self, status: "ListenerStatus") -> None:
        """Called after every listener state transition."""


class ServerObserver(Protocol):
    """Optional hooks for applications embedding the server."""

    def server_did_accept(self, connection: "Connection") -> None:
        """Called for every accepted connection before it starts receiving."""

    def server_did_receive_notification(self, notification: "Notification") -> None:
        """Called for every authenticated notification."""
